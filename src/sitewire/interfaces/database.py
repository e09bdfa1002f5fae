"""Database collaborator interface.

A database connection is exposed to the rest of the site as three handles:

- ``client``: the SQLAlchemy `Engine`.
- ``database``: the logical database, a `MetaData` collecting the site's tables.
- ``collections``: named tables, created on demand.
"""

from __future__ import annotations

import abc
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sqlalchemy import MetaData, Table
    from sqlalchemy.engine import Engine

    from sitewire.domain.options import DatabaseOptions


class Collections(Mapping[str, "Table"], abc.ABC):
    """Named tables of a logical database."""

    engine: Engine
    metadata: MetaData

    @abc.abstractmethod
    async def ensure(self, table: Table) -> Table:
        """Make sure *table* exists in the database and return it.

        Args:
            table: A table attached to ``self.metadata``.

        Returns:
            The same table, now registered under its name.
        """


@dataclass(frozen=True, slots=True)
class DatabaseHandle:
    """What a successful connection yields."""

    client: Engine
    database: MetaData
    collections: Collections


type Connect = Callable[[DatabaseOptions], Awaitable[DatabaseHandle]]
