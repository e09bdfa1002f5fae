"""Engines for the site database.

Every engine the site, the ``db`` commands and the migrations use comes from
`make_engine`, so SQLite connections are always tuned the same way:

- foreign keys enforced
- WAL journal for file databases
- ``synchronous=NORMAL`` and in-memory temp storage

In-memory SQLite databases live on a single shared connection, because the
site runs its database work in worker threads.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, make_url
from sqlalchemy.pool import StaticPool

if TYPE_CHECKING:
    from sqlite3 import Connection as SQLiteConnection

    from sqlalchemy.engine import Engine

SQLITE_NAMES = {"sqlite", "sqlite+pysqlite"}
MEMORY_DATABASES = {None, "", ":memory:"}

SQLITE_PRAGMAS = ("foreign_keys=ON", "synchronous=NORMAL", "temp_store=MEMORY")
FILE_PRAGMAS = ("journal_mode=WAL",)


def is_sqlite(url: str | URL) -> bool:
    """Return True if *url* points at a SQLite database."""
    return make_url(str(url)).get_backend_name() in SQLITE_NAMES


def is_sqlite_memory(url: str | URL) -> bool:
    """Return True for SQLite URLs pointing at an in-memory database."""
    u = make_url(str(url))
    return is_sqlite(u) and u.database in MEMORY_DATABASES


def sanitize_url(url: str | URL) -> str:
    """Render a database URL with its password redacted (as ``***``)."""
    return make_url(str(url)).render_as_string(hide_password=True)


def make_engine(url: str | URL, *, echo: bool = False) -> Engine:
    """Create an Engine for *url*, tuned for its backend.

    Args:
        url: Database URL.
        echo: Log every SQL statement.
    """
    memory = is_sqlite_memory(url)
    kwargs: dict[str, Any] = {}
    if memory:
        kwargs = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    engine = create_engine(url, echo=echo, **kwargs)

    if is_sqlite(url):
        pragmas = SQLITE_PRAGMAS if memory else SQLITE_PRAGMAS + FILE_PRAGMAS

        @event.listens_for(engine, "connect")
        def _apply_pragmas(dbapi_conn: SQLiteConnection, conn_record):  # type: ignore #pylint: disable=W0613
            cur = dbapi_conn.cursor()
            for pragma in pragmas:
                cur.execute(f"PRAGMA {pragma};")
            cur.close()

    return engine
