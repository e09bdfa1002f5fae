"""``sitewire db``: migrations for the default site tables.

Sites that set ``create_tables = false`` in their ``[database]`` section rely
on these commands to create and upgrade the ``users``, ``sessions`` and
``config`` tables. Only forward operations are offered.

Alembic writes to stdout; notices from this module go to stderr. Commands that
need the database read its URL from ``SITEWIRE_DB_URL``.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import click
import click_extra as clickx
from alembic import command
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import inspect, text
from sqlalchemy.exc import ArgumentError, OperationalError

from sitewire import config
from sitewire.adapters.db.engine import make_engine
from sitewire.adapters.db.schema import DEFAULT_SESSIONS, DEFAULT_SETTINGS, DEFAULT_USERS

from .helpers import error, sanitize_url, success, warn

if TYPE_CHECKING:
    from alembic.config import Config
    from sqlalchemy.engine import Engine

SITE_TABLES = (DEFAULT_USERS, DEFAULT_SESSIONS, DEFAULT_SETTINGS)

EXAMPLE_URL = "sqlite:///site.db"

MISSING_DB_URL_MSG = (
    f"{config.DB_URL_ENV} is not set.\n\n"
    "Point it at the site database first, e.g.:\n"
    f"  export {config.DB_URL_ENV}='{EXAMPLE_URL}'\n"
    "  or in PowerShell:\n"
    f"  $env:{config.DB_URL_ENV}='{EXAMPLE_URL}'"
)
INVALID_URL_FORMAT_MSG = f"{config.DB_URL_ENV} is not a valid SQLAlchemy URL."
CANNOT_CONNECT_MSG = (
    f"Could not connect to the database in {config.DB_URL_ENV}.\n"
    "Check that it is running and that the URL is right."
)
UPGRADE_SCHEMA_WARNING = (
    "The site tables are about to be migrated to the latest revision.\n"
    "Back up the database first."
)
UPGRADE_SCHEMA_INSTRUCTIONS = "Run 'sitewire db upgrade' to migrate the site tables."

verbose_option = click.option(
    "--verbose", "-v", is_flag=True, help="Pass Alembic's verbose output through."
)


def _database_url() -> str:
    """``SITEWIRE_DB_URL``, once a connection to it has succeeded."""
    try:
        url = config.get_db_url()
    except config.DatabaseUrlNotSetError as e:
        raise click.ClickException(MISSING_DB_URL_MSG) from e
    try:
        engine = make_engine(url)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))  # pragma: no mutate
        engine.dispose()
    except ArgumentError as e:
        raise click.ClickException(INVALID_URL_FORMAT_MSG) from e
    except OperationalError as e:
        raise click.ClickException(CANNOT_CONNECT_MSG) from e
    return url


def _alembic(url: str | None = None) -> Config:
    return config.build_alembic_config(db_url=url, stdout=sys.stdout)


@click.group(cls=clickx.ExtraGroup)
def db() -> None:
    """Create and migrate the site tables."""


@db.command()
@verbose_option
def current(verbose: bool) -> None:
    """Show the revision the database is at."""
    command.current(_alembic(_database_url()), verbose=verbose)


@db.command()
@verbose_option
def heads(verbose: bool) -> None:
    """Show the latest revision shipped with sitewire."""
    command.heads(_alembic(), verbose=verbose)


@db.command()
@verbose_option
@click.option(
    "--indicate-current", "-i", is_flag=True, help="Mark the database's revision."
)
def history(verbose: bool, indicate_current: bool) -> None:
    """List the migrations shipped with sitewire."""
    cfg = _alembic(_database_url() if indicate_current else None)
    command.history(cfg, verbose=verbose, indicate_current=indicate_current)


@db.command()
@click.option("--sql", is_flag=True, help="Print the SQL instead of running it.")
@click.option("--force", is_flag=True, help="Do not ask for confirmation.")
def upgrade(sql: bool, force: bool) -> None:
    """Migrate the site tables to the latest revision."""
    url = _database_url()
    if not (force or sql):
        warn(UPGRADE_SCHEMA_WARNING)
        click.secho(f"db: {click.style(sanitize_url(url), underline=True)}")
        click.confirm("Are you sure you want to proceed?", abort=True)
    command.upgrade(_alembic(url), revision="head", sql=sql)
    success("Upgrade complete!")


class MigrationStatus(Enum):
    """Where the database stands relative to the shipped migrations."""

    UP_TO_DATE = "up to date"
    OUT_OF_DATE = "out of date"
    UNINITIALIZED = "uninitialized"


@dataclass(frozen=True)
class SchemaState:
    revision: str | None
    head: str | None
    tables: tuple[str, ...]

    @property
    def status(self) -> MigrationStatus:
        if self.revision == self.head:
            return MigrationStatus.UP_TO_DATE
        if self.revision is None:
            return MigrationStatus.UNINITIALIZED
        return MigrationStatus.OUT_OF_DATE

    def describe(self) -> str:
        if self.revision is None:
            return self.status.value
        return f"{self.revision} ({self.status.value})"


def read_schema_state(engine: Engine, cfg: Config) -> SchemaState:
    """Compare the database's revision and tables with the shipped migrations."""
    with engine.connect() as conn:
        revision = MigrationContext.configure(conn).get_current_revision()
        existing = set(inspect(conn).get_table_names())
    heads_ = ScriptDirectory.from_config(cfg).get_heads()
    return SchemaState(
        revision=revision,
        head=heads_[0] if heads_ else None,
        tables=tuple(name for name in SITE_TABLES if name in existing),
    )


@db.command()
def status() -> None:
    """Check the connection and how far the site tables are migrated."""
    try:
        url = _database_url()
    except click.ClickException as e:
        error("Cannot connect to database")
        click.echo(e.format_message())
        return

    engine = make_engine(url)
    try:
        state = read_schema_state(engine, _alembic(url))
    finally:
        engine.dispose()

    success("Database reachable")
    click.echo(f"Backend : {engine.dialect.name}")
    click.echo(f"URL     : {sanitize_url(url)}")
    click.echo(f"Schema  : {state.describe()}")
    click.echo(f"Tables  : {', '.join(state.tables) or '<none>'}")
    if state.status is not MigrationStatus.UP_TO_DATE:
        warn(UPGRADE_SCHEMA_INSTRUCTIONS)
