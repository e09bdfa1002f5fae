"""Accounts stored in the site database."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError

from sitewire.adapters.db.schema import users_table
from sitewire.domain.errors import InvalidCredentialsError, UserExistsError
from sitewire.interfaces.users import User, UsersService

from .passwords import hash_password, verify_password

if TYPE_CHECKING:
    from sqlalchemy import Row, Table
    from sqlalchemy.engine import Engine

    from sitewire.domain.options import UsersOptions
    from sitewire.interfaces.database import Collections

logger = logging.getLogger(__name__)


def _normalize(email: str) -> str:
    return email.strip().lower()


def to_user(row: Row[Any]) -> User:
    """Build a `User` from a users table row."""
    return User(
        id=row.id,
        email=row.email,
        roles=tuple(row.roles or ()),
        created_at=row.created_at,
    )


class Users(UsersService):
    """The plain users layer.

    Args:
        engine: Engine of the site database.
        table: The users table.
        options: Users settings.
    """

    def __init__(self, engine: Engine, table: Table, options: UsersOptions) -> None:
        self.engine = engine
        self.table = table
        self.options = options

    @classmethod
    async def init(cls, collections: Collections, options: UsersOptions) -> Users:
        """Ensure the users table exists and return the users layer."""
        table = await collections.ensure(users_table(collections.metadata, options.name))
        return cls(collections.engine, table, options)

    async def create(
        self, email: str, password: str, *, roles: tuple[str, ...] = ()
    ) -> User:
        if len(password) < self.options.min_password_length:
            raise ValueError(
                f"Password must be at least {self.options.min_password_length} characters"
            )
        email = _normalize(email)
        password_hash = await asyncio.to_thread(hash_password, password)
        try:
            row = await asyncio.to_thread(
                self._insert, email, password_hash, list(roles)
            )
        except IntegrityError as e:
            raise UserExistsError(email) from e
        logger.info("User %s created", email)
        return to_user(row)

    async def get(self, email: str) -> User | None:
        row = await asyncio.to_thread(self._select, _normalize(email))
        return to_user(row) if row is not None else None

    async def authenticate(self, email: str, password: str) -> User:
        row = await asyncio.to_thread(self._select, _normalize(email))
        if row is None or not await asyncio.to_thread(
            verify_password, password, row.password_hash
        ):
            raise InvalidCredentialsError("Invalid email or password")
        return to_user(row)

    async def set_avatar(self, user_id: int, data: bytes | None) -> None:
        """Store (or with ``None`` remove) the avatar of account *user_id*."""
        await asyncio.to_thread(self._update, user_id, {"avatar": data})

    async def get_avatar(self, user_id: int) -> bytes | None:
        """Return the stored avatar of account *user_id*, if any."""

        def load() -> bytes | None:
            stmt = select(self.table.c.avatar).where(self.table.c.id == user_id)
            with self.engine.connect() as conn:
                return conn.execute(stmt).scalar_one_or_none()

        return await asyncio.to_thread(load)

    def _insert(self, email: str, password_hash: str, roles: list[str]) -> Row[Any]:
        stmt = (
            insert(self.table)
            .values(email=email, password_hash=password_hash, roles=roles)
            .returning(*self._columns())
        )
        with self.engine.begin() as conn:
            return conn.execute(stmt).one()

    def _select(self, email: str) -> Row[Any] | None:
        stmt = select(*self._columns(), self.table.c.password_hash).where(
            self.table.c.email == email
        )
        with self.engine.connect() as conn:
            return conn.execute(stmt).one_or_none()

    def _update(self, user_id: int, values: dict[str, Any]) -> None:
        stmt = update(self.table).where(self.table.c.id == user_id).values(**values)
        with self.engine.begin() as conn:
            conn.execute(stmt)

    def _columns(self) -> tuple[Any, ...]:
        c = self.table.c
        return (c.id, c.email, c.roles, c.created_at)
