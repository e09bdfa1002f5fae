"""Unit tests for adapters."""
