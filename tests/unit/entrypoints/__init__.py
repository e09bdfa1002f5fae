"""Unit tests for entrypoints."""
