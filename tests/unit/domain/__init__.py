"""Unit tests for domain."""
