"""Domain layer: the configuration model and the project-wide errors.

Nothing in here performs I/O. The configuration model is a plain, immutable
value describing *which* subsystems a site should have.
"""
