"""Small, dependency-free helpers shared across layers."""
