"""Tri-state handling for optional configuration sections.

This module defines the ``UNSET`` sentinel, the `Unsettable` type alias,
and small helpers used to interpret optional sections of a site
configuration.

A field of type ``Unsettable[T]`` can take three states:

* ``UNSET``: the section was not supplied at all.
* ``None``: the section was explicitly disabled.
* concrete ``T``: the section was supplied with these settings.

The difference between ``UNSET`` and ``None`` only matters where a parent
section is present: ``realtime.subscriptions`` left out means "on with
defaults", while ``realtime.subscriptions = None`` switches them off.
"""

from dataclasses import dataclass
from typing import TypeVar, overload


def _get_unset() -> "_UnsetType":
    # Factory used by pickle to retrieve the one true instance.
    return UNSET


@dataclass(frozen=True)
class _UnsetType:
    """Sentinel to mark configuration sections that were never supplied.

    This is distinct from `None`, which indicates an explicit opt-out.
    """

    def __bool__(self) -> bool:  # falsy to simplify conditionals
        return False

    def __repr__(self) -> str:
        return "UNSET"

    def __reduce__(self):  # keep singleton on pickle
        return (_get_unset, ())


# Singleton instance
UNSET = _UnsetType()

T = TypeVar("T")
type Unsettable[T] = T | _UnsetType | None


def is_unset(value: object) -> bool:
    """Return True if *value* is the ``UNSET`` sentinel."""
    return isinstance(value, _UnsetType)


def is_present(value: object) -> bool:
    """Return True if a section was supplied and not explicitly disabled.

    ``False`` counts as an explicit opt-out, the same as ``None``.
    """
    return not is_unset(value) and value is not None and value is not False


def is_disabled(value: object) -> bool:
    """Return True if a section was explicitly switched off (``None`` or ``False``)."""
    return value is None or value is False


@overload
def resolve(value: "T | None | _UnsetType", default: T) -> T: ...
@overload
def resolve(value: "T | None | _UnsetType", default: None) -> T | None: ...
def resolve(value, default):
    """Resolve a tri-state value against a default.

    Args:
        value: The configured value (may be UNSET, None, or a concrete value).
        default: The value used when *value* is UNSET.

    Returns:
        The default if *value* is UNSET, otherwise *value* itself (which may be
        None when the section was explicitly disabled).
    """
    if is_unset(value):
        return default
    return value
