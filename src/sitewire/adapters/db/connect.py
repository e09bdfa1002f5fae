"""Connect to a database and expose it as client / database / collections.

SQLAlchemy's engine is synchronous; the blocking parts (the connectivity
check, table creation) run in a worker thread so ``connect`` can be awaited
from the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.exc import ArgumentError, OperationalError

from sitewire.domain.errors import DatabaseConnectionError
from sitewire.interfaces.database import Collections, DatabaseHandle

from .engine import make_engine, sanitize_url
from .metadata import make_metadata

if TYPE_CHECKING:
    from sqlalchemy import MetaData, Table
    from sqlalchemy.engine import Engine

    from sitewire.domain.options import DatabaseOptions

logger = logging.getLogger(__name__)


class SqlAlchemyCollections(Collections):
    """Tables of one logical database, created on demand.

    Args:
        engine: Engine the tables live in.
        metadata: Metadata the tables are defined on.
        create_tables: When False, `ensure` only registers the table and
            relies on migrations having created it.
    """

    def __init__(
        self, engine: Engine, metadata: MetaData, *, create_tables: bool = True
    ) -> None:
        self.engine = engine
        self.metadata = metadata
        self.create_tables = create_tables
        self._ensured: dict[str, Table] = {}

    def __getitem__(self, name: str) -> Table:
        return self._ensured[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._ensured)

    def __len__(self) -> int:
        return len(self._ensured)

    async def ensure(self, table: Table) -> Table:
        if table.name in self._ensured:
            return self._ensured[table.name]
        if table.metadata is not self.metadata:
            raise ValueError(f"Table {table.name!r} belongs to another database")
        if self.create_tables:
            await asyncio.to_thread(table.create, self.engine, checkfirst=True)
            logger.debug("Ensured table %s", table.name)
        self._ensured[table.name] = table
        return table


def _check_connection(engine: Engine) -> None:
    stmt = text("SELECT 1")  # pragma: no mutate
    with engine.connect() as conn:
        conn.execute(stmt)


async def connect(options: DatabaseOptions) -> DatabaseHandle:
    """Open a database connection.

    Args:
        options: Connection settings.

    Returns:
        DatabaseHandle: engine, metadata and collections of the database.

    Raises:
        DatabaseConnectionError: If the URL is invalid or the database is not
            reachable.
    """
    try:
        url = sanitize_url(options.url)
    except ArgumentError as e:
        raise DatabaseConnectionError("<invalid url>") from e
    try:
        engine = make_engine(options.url, echo=options.echo)
        await asyncio.to_thread(_check_connection, engine)
    except (ArgumentError, OperationalError) as e:
        raise DatabaseConnectionError(url) from e

    logger.info("Connected to database %s", url)
    metadata = make_metadata()
    return DatabaseHandle(
        client=engine,
        database=metadata,
        collections=SqlAlchemyCollections(
            engine, metadata, create_tables=options.create_tables
        ),
    )
