"""Config store interface.

A config store is a read-mostly mapping of settings declared by a schema
(name -> default value). Values are persisted so they survive restarts.
"""

import abc
from collections.abc import Mapping
from typing import Any


class ConfigStore(Mapping[str, Any], abc.ABC):
    """Persisted settings with schema defaults."""

    @abc.abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Persist a new value for *key*.

        Raises:
            UnknownSettingError: If *key* is not declared in the schema.
            InvalidSettingError: If *value* does not match the default's type.
        """

    @abc.abstractmethod
    async def reset(self, key: str) -> None:
        """Restore *key* to its schema default.

        Raises:
            UnknownSettingError: If *key* is not declared in the schema.
        """
