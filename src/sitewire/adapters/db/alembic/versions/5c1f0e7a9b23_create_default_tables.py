"""create users, sessions and config tables

Revision ID: 5c1f0e7a9b23
Revises:
Create Date: 2026-10-19 09:14:27.512804

"""

# pylint: disable=invalid-name

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

from sitewire.adapters.db.sa_types import ID, JSON_VALUE, UTCDateTime

# pylint: disable=no-member

# revision identifiers, used by Alembic.
revision: str = "5c1f0e7a9b23"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade schema."""

    op.create_table(
        "users",
        sa.Column(
            "id",
            ID,
            sa.Identity(start=1),
            nullable=False,
            comment="Surrogate account id.",
        ),
        sa.Column(
            "email",
            sa.String(length=320),
            nullable=False,
            comment="Login email, stored lower-cased.",
        ),
        sa.Column(
            "password_hash",
            sa.String(length=255),
            nullable=False,
            comment="PBKDF2 hash: '<algorithm>$<iterations>$<salt>$<digest>'.",
        ),
        sa.Column("roles", JSON_VALUE, nullable=False, comment="List of role names."),
        sa.Column("avatar", sa.LargeBinary(), nullable=True, comment="Uploaded avatar bytes."),
        sa.Column(
            "created_at",
            UTCDateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_users")),
        sa.UniqueConstraint("email", name=op.f("uq_users_email")),
        comment="Registered accounts.",
    )
    op.create_table(
        "sessions",
        sa.Column(
            "token",
            sa.String(length=64),
            nullable=False,
            comment="Opaque session token.",
        ),
        sa.Column("user_id", ID, nullable=False),
        sa.Column(
            "created_at",
            UTCDateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("expires_at", UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name=op.f("fk_sessions_user_id_users"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("token", name=op.f("pk_sessions")),
        comment="Open sessions of the networked users layer.",
    )
    op.create_index(op.f("ix_sessions_user_id"), "sessions", ["user_id"])
    op.create_table(
        "config",
        sa.Column("key", sa.String(length=200), nullable=False),
        sa.Column("value", JSON_VALUE, nullable=True, comment="JSON-encoded value."),
        sa.Column(
            "updated_at",
            UTCDateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("key", name=op.f("pk_config")),
        comment="Persisted site settings.",
    )


def downgrade() -> None:
    """Downgrade schema."""

    op.drop_table("config")
    op.drop_index(op.f("ix_sessions_user_id"), table_name="sessions")
    op.drop_table("sessions")
    op.drop_table("users")
