"""Tests for SITEWIRE."""
