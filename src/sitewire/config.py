"""Configuration utilities for SITEWIRE.

This module centralizes small helpers and constants related to application
configuration: the database URL used by the ``db`` commands, the packaged
Alembic migrations, and loading a site configuration from a TOML file.
"""

import os
import sys
import tomllib
from importlib.resources import files
from pathlib import Path
from typing import TextIO

from alembic.config import Config

from sitewire.domain.errors import ConfigurationError
from sitewire.domain.options import SiteConfig

DB_URL_ENV = "SITEWIRE_DB_URL"  # pragma: no mutate
ALEMBIC_URL_KEY = "sqlalchemy.url"  # pragma: no mutate
ALEMBIC_SCRIPT_LOCATION_KEY = "script_location"  # pragma: no mutate


class DatabaseUrlNotSetError(Exception):
    """Raised when the SITEWIRE_DB_URL environment variable is not set."""


def get_db_url() -> str:
    """Get the database URL from the environment.

    Returns:
        The value of the `SITEWIRE_DB_URL` environment variable.

    Raises:
        DatabaseUrlNotSetError: If `SITEWIRE_DB_URL` is not set.
    """
    if not (url := os.environ.get(DB_URL_ENV)):
        raise DatabaseUrlNotSetError
    return url


def build_alembic_config(
    db_url: str | None = None, stdout: TextIO = sys.stdout
) -> Config:
    """Build an Alembic `Config` object for SITEWIRE's migrations.

    Sets only Alembic "main" options:
    - `sqlalchemy.url` → the database URL you pass
    - `script_location` → SITEWIRE's packaged Alembic scripts

    Args:
        db_url: SQLAlchemy database URL. Can be `None` (default) only in
            contexts where Alembic won't need to connect to the DB.
        stdout: Text stream Alembic will write status lines to.

    Returns:
        An `alembic.config.Config` pointing to SITEWIRE's migration scripts.
    """
    cfg = Config(stdout=stdout)
    if db_url is not None:
        cfg.set_main_option(ALEMBIC_URL_KEY, db_url)
    cfg.set_main_option(
        ALEMBIC_SCRIPT_LOCATION_KEY,
        str(files("sitewire.adapters.db.alembic")),
    )
    return cfg


def load_site_config(path: Path | str) -> SiteConfig:
    """Read a site configuration from a TOML file.

    Args:
        path: The TOML file. Its top-level tables are the `SiteConfig`
            sections, e.g. ``[database]``, ``[realtime]``, ``[http]``.

    Returns:
        The parsed configuration.

    Raises:
        ConfigurationError: If the file is not valid TOML or does not describe
            a valid configuration.
    """
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(str(path), str(e)) from e
    return SiteConfig.from_mapping(data)
