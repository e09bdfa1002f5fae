"""Alembic migration scripts for the default SITEWIRE tables."""
