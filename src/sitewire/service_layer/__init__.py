"""Service layer: pure composition logic.

- `resolver` maps a configuration to a build plan (and the field set it yields).
- `readiness` provides the settle-once readiness signal.

Nothing here touches collaborators; see `sitewire.bootstrap` for the wiring.
"""
