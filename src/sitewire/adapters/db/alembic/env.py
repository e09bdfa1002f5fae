"""Alembic environment for the site tables.

The URL comes from ``-x url=...``, then the Alembic config (set by
`sitewire.config.build_alembic_config`), then ``SITEWIRE_DB_URL``. Online
migrations go through `make_engine`, so SQLite gets the same PRAGMAs as at
runtime, and batch mode for its ALTER TABLE emulation.
"""

from logging.config import fileConfig
from typing import Any

from alembic import context

# the default tables must be defined before autogenerate inspects the metadata
import sitewire.adapters.db.schema  # noqa: F401 # pylint: disable=unused-import
from sitewire.adapters.db.engine import make_engine
from sitewire.adapters.db.metadata import metadata
from sitewire.config import ALEMBIC_URL_KEY, DatabaseUrlNotSetError, get_db_url

# pylint: disable=no-member

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# drift checks shared by both modes
COMPARE: dict[str, Any] = {"compare_type": True, "compare_server_default": True}


def migration_url() -> str:
    url = context.get_x_argument(as_dictionary=True).get("url")
    url = url or config.get_main_option(ALEMBIC_URL_KEY)
    if url and "%(" not in url:
        return url
    try:
        return get_db_url()
    except DatabaseUrlNotSetError as e:
        raise RuntimeError("Set SITEWIRE_DB_URL to your database URL.") from e


def run_offline() -> None:
    """Write the migration SQL instead of running it."""
    context.configure(
        url=migration_url(),
        target_metadata=metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **COMPARE,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_online() -> None:
    engine = make_engine(migration_url())
    try:
        with engine.connect() as connection:
            context.configure(
                connection=connection,
                target_metadata=metadata,
                render_as_batch=connection.dialect.name == "sqlite",
                **COMPARE,
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_offline()
else:
    run_online()
