"""Unit tests for service layer."""
