"""SITEWIRE command-line interface."""
