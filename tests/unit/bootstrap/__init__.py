"""Unit tests for bootstrap."""
