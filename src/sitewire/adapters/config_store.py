"""SQLAlchemy-backed config store.

Settings are declared by a schema mapping each name to its default value. The
store reads the persisted values once at init, then serves reads from memory;
writes go to the ``config`` table and update the cache.

Keys not declared by the schema are rejected on write and ignored on load, so
removing a setting from the schema simply hides its stale row.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, insert, select

from sitewire.domain.errors import InvalidSettingError, UnknownSettingError
from sitewire.interfaces.config_store import ConfigStore

from .db.sa_types import utcnow
from .db.schema import DEFAULT_SETTINGS, settings_table

if TYPE_CHECKING:
    from sqlalchemy import Table
    from sqlalchemy.engine import Engine

    from sitewire.interfaces.database import Collections

logger = logging.getLogger(__name__)


def _check_type(key: str, default: Any, value: Any) -> None:
    if default is None or value is None:
        return
    expected = type(default)
    if expected is float and isinstance(value, int) and not isinstance(value, bool):
        return
    if isinstance(value, bool) is not isinstance(default, bool) or not isinstance(
        value, expected
    ):
        raise InvalidSettingError(key, expected, type(value))


class SqlAlchemyConfigStore(ConfigStore):
    """Settings persisted in a SQL table."""

    def __init__(
        self,
        engine: Engine,
        table: Table,
        schema: Mapping[str, Any],
        values: Mapping[str, Any],
    ) -> None:
        self.engine = engine
        self.table = table
        self.schema = dict(schema)
        self._values = {key: values.get(key, default) for key, default in schema.items()}

    @classmethod
    async def init(
        cls,
        collections: Collections,
        schema: Mapping[str, Any],
        *,
        name: str = DEFAULT_SETTINGS,
    ) -> SqlAlchemyConfigStore:
        """Load the persisted settings declared by *schema*.

        Args:
            collections: Collections of the site database.
            schema: Setting names mapped to their default values.
            name: Name of the settings table.

        Returns:
            The initialized store.
        """
        table = await collections.ensure(settings_table(collections.metadata, name))
        stored = await asyncio.to_thread(_load, collections.engine, table)
        values: dict[str, Any] = {}
        for key, value in stored.items():
            if key not in schema:
                continue
            try:
                _check_type(key, schema[key], value)
            except InvalidSettingError as e:
                logger.warning("Ignoring stored value: %s", e)
                continue
            values[key] = value
        logger.debug("Loaded %d stored setting(s) from %s", len(values), name)
        return cls(collections.engine, table, schema, values)

    def __getitem__(self, key: str) -> Any:
        if key not in self.schema:
            raise UnknownSettingError(key)
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.schema)

    def __len__(self) -> int:
        return len(self.schema)

    async def set(self, key: str, value: Any) -> None:
        if key not in self.schema:
            raise UnknownSettingError(key)
        _check_type(key, self.schema[key], value)
        await asyncio.to_thread(_store, self.engine, self.table, key, value)
        self._values[key] = value
        logger.info("Setting %s updated", key)

    async def reset(self, key: str) -> None:
        if key not in self.schema:
            raise UnknownSettingError(key)
        await asyncio.to_thread(_remove, self.engine, self.table, key)
        self._values[key] = self.schema[key]
        logger.info("Setting %s reset to default", key)


def _load(engine: Engine, table: Table) -> dict[str, Any]:
    with engine.connect() as conn:
        rows = conn.execute(select(table.c.key, table.c.value)).all()
    return {row.key: row.value for row in rows}


def _store(engine: Engine, table: Table, key: str, value: Any) -> None:
    # delete + insert keeps the upsert portable across dialects
    with engine.begin() as conn:
        conn.execute(delete(table).where(table.c.key == key))
        conn.execute(
            insert(table).values(
                key=key, value=value, updated_at=utcnow()
            )
        )


def _remove(engine: Engine, table: Table, key: str) -> None:
    with engine.begin() as conn:
        conn.execute(delete(table).where(table.c.key == key))
