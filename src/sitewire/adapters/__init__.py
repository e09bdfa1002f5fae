"""Concrete collaborators.

Each adapter implements one `sitewire.interfaces` port on top of a concrete
library: SQLAlchemy for persistence, aiohttp for the network-facing servers,
Jinja for templates.
"""
