"""Collaborator ports.

Framework-light contracts for the subsystems a site is composed of. The
bootstrap layer only talks to collaborators through these interfaces; the
concrete implementations live in `sitewire.adapters`.

Layering & dependency rules:
- Do NOT import from adapters, bootstrap, or entrypoints.
- Safe to import from the service layer and adapters.
"""
