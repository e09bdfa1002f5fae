"""Table definitions for the built-in collaborators.

Tables are created through factories so each logical database (each
`MetaData`) gets its own copies, and so the users layer can be configured
with a custom table name.

| Table       | Owner                 | Purpose                                   |
|-------------|-----------------------|-------------------------------------------|
| ``users``   | users layer           | accounts, password hashes, roles, avatar  |
| ``sessions``| networked users layer | session tokens with expiry                |
| ``config``  | config store          | persisted settings (JSON values)          |

The module-level `users`, `sessions` and `config` tables are the defaults the
Alembic migrations create.
"""

from __future__ import annotations

from sqlalchemy import (
    Column,
    ForeignKey,
    Identity,
    Index,
    LargeBinary,
    MetaData,
    String,
    Table,
    text,
)

from .metadata import metadata
from .sa_types import ID, JSON_VALUE, UTCDateTime

__all__ = ["users_table", "sessions_table", "settings_table"]

DEFAULT_USERS = "users"
DEFAULT_SESSIONS = "sessions"
DEFAULT_SETTINGS = "config"


def users_table(meta: MetaData, name: str = DEFAULT_USERS) -> Table:
    """Return the users table called *name*, defining it on first use."""
    if name in meta.tables:
        return meta.tables[name]
    return Table(
        name,
        meta,
        Column(
            "id",
            ID,
            Identity(start=1),
            primary_key=True,
            comment="Surrogate account id.",
        ),
        Column(
            "email",
            String(320),
            nullable=False,
            unique=True,
            comment="Login email, stored lower-cased.",
        ),
        Column(
            "password_hash",
            String(255),
            nullable=False,
            comment="PBKDF2 hash: '<algorithm>$<iterations>$<salt>$<digest>'.",
        ),
        Column("roles", JSON_VALUE, nullable=False, comment="List of role names."),
        Column("avatar", LargeBinary, nullable=True, comment="Uploaded avatar bytes."),
        Column(
            "created_at",
            UTCDateTime(),
            nullable=False,
            server_default=text("CURRENT_TIMESTAMP"),
        ),
        comment="Registered accounts.",
    )


def sessions_table(
    meta: MetaData, name: str = DEFAULT_SESSIONS, users_name: str = DEFAULT_USERS
) -> Table:
    """Return the sessions table called *name*, defining it on first use.

    Sessions reference the users table called *users_name*, which is defined
    as well if needed.
    """
    if name in meta.tables:
        return meta.tables[name]
    users_table(meta, users_name)
    return Table(
        name,
        meta,
        Column("token", String(64), primary_key=True, comment="Opaque session token."),
        Column(
            "user_id",
            ID,
            ForeignKey(f"{users_name}.id", ondelete="CASCADE"),
            nullable=False,
        ),
        Column(
            "created_at",
            UTCDateTime(),
            nullable=False,
            server_default=text("CURRENT_TIMESTAMP"),
        ),
        Column("expires_at", UTCDateTime(), nullable=False),
        Index(None, "user_id"),
        comment="Open sessions of the networked users layer.",
    )


def settings_table(meta: MetaData, name: str = DEFAULT_SETTINGS) -> Table:
    """Return the settings table called *name*, defining it on first use."""
    if name in meta.tables:
        return meta.tables[name]
    return Table(
        name,
        meta,
        Column("key", String(200), primary_key=True),
        Column("value", JSON_VALUE, nullable=True, comment="JSON-encoded value."),
        Column(
            "updated_at",
            UTCDateTime(),
            nullable=False,
            server_default=text("CURRENT_TIMESTAMP"),
        ),
        comment="Persisted site settings.",
    )


users = users_table(metadata)
sessions = sessions_table(metadata)
config = settings_table(metadata)
