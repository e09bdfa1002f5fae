"""Composition root: build a `Site` from a `SiteConfig`."""

from .collaborators import Collaborators
from .site import InitStatus, Site

__all__ = ["Collaborators", "InitStatus", "Site"]
