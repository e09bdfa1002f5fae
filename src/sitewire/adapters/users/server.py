"""The users layer exposed over the real-time server.

Registered message types:

- ``users.login`` ``{"email", "password"}``: opens a session and binds it to
  the connection.
- ``users.session`` ``{"token"}``: binds an existing session (e.g. one opened
  over HTTP) to the connection.
- ``users.logout``: revokes the connection's session.

Each of them is answered with a ``users.session`` envelope carrying the bound
session, or ``null`` once logged out. With an incoming transport, logged-in
clients can also upload their avatar as an ``avatar`` transfer.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, insert, select

from sitewire.adapters.db.sa_types import utcnow
from sitewire.adapters.db.schema import sessions_table
from sitewire.domain.errors import InvalidCredentialsError
from sitewire.interfaces.users import Session, User, UsersServer

from .users import Users

if TYPE_CHECKING:
    from sqlalchemy import Table
    from sqlalchemy.engine import Engine

    from sitewire.adapters.realtime.transports import IncomingTransport, Transfer
    from sitewire.domain.options import UsersOptions, UsersServerOptions
    from sitewire.interfaces.database import Collections
    from sitewire.interfaces.realtime import RealtimeClient, RealtimeServer

logger = logging.getLogger(__name__)

LOGIN = "users.login"
LOGOUT = "users.logout"
SESSION = "users.session"
AVATAR = "avatar"


def _describe(session: Session | None) -> dict[str, Any] | None:
    if session is None:
        return None
    return {
        "token": session.token,
        "expires_at": session.expires_at.isoformat(),
        "user": {
            "id": session.user.id,
            "email": session.user.email,
            "roles": list(session.user.roles),
        },
    }


class NetworkedUsers(UsersServer):
    """Users with sessions, reachable from real-time clients.

    Args:
        users: The plain users layer the accounts live in.
        sessions: The sessions table.
        options: Session settings.
        public: Whether the site is public.
    """

    def __init__(
        self,
        users: Users,
        sessions: Table,
        options: UsersServerOptions,
        *,
        public: bool = False,
    ) -> None:
        self.users = users
        self.sessions = sessions
        self.options = options
        self.public = public

    @property
    def engine(self) -> Engine:
        return self.users.engine

    @classmethod
    async def init(
        cls,
        *,
        users: UsersOptions,
        server: UsersServerOptions,
        wss: RealtimeServer,
        collections: Collections,
        incoming_transport: IncomingTransport | None = None,
        public: bool = False,
    ) -> NetworkedUsers:
        """Build the users layer and register its message handlers on *wss*."""
        plain = await Users.init(collections, users)
        sessions = await collections.ensure(
            sessions_table(collections.metadata, server.sessions_name, users.name)
        )
        self = cls(plain, sessions, server, public=public)
        wss.on_message(LOGIN, self._on_login)
        wss.on_message(LOGOUT, self._on_logout)
        wss.on_message(SESSION, self._on_session)
        if incoming_transport is not None:
            incoming_transport.on_transfer(AVATAR, self._on_avatar)
        return self

    async def login(self, email: str, password: str) -> Session:
        user = await self.users.authenticate(email, password)
        session = Session(
            token=secrets.token_urlsafe(32),
            user=user,
            expires_at=utcnow()
            + timedelta(seconds=self.options.session_ttl),
        )
        await asyncio.to_thread(self._insert, session)
        logger.info("User %s logged in", user.email)
        return session

    async def session(self, token: str) -> Session | None:
        return await asyncio.to_thread(self._select, token)

    async def logout(self, token: str) -> None:
        await asyncio.to_thread(self._delete, token)

    async def _on_login(self, client: RealtimeClient, payload: Any) -> None:
        if not isinstance(payload, dict):
            raise InvalidCredentialsError("Invalid email or password")
        client.session = await self.login(
            str(payload.get("email", "")), str(payload.get("password", ""))
        )
        await client.send(SESSION, _describe(client.session))

    async def _on_session(self, client: RealtimeClient, payload: Any) -> None:
        token = payload.get("token") if isinstance(payload, dict) else None
        session = await self.session(token) if isinstance(token, str) else None
        if session is None:
            raise InvalidCredentialsError("Unknown or expired session")
        client.session = session
        await client.send(SESSION, _describe(session))

    async def _on_logout(self, client: RealtimeClient, payload: Any) -> None:  # pylint: disable=unused-argument
        if client.session is not None:
            await self.logout(client.session.token)
        client.session = None
        await client.send(SESSION, None)

    async def _on_avatar(self, client: RealtimeClient, transfer: Transfer) -> None:
        if client.session is None:
            raise InvalidCredentialsError("Log in to upload an avatar")
        await self.users.set_avatar(client.session.user.id, bytes(transfer.data))

    def _insert(self, session: Session) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                insert(self.sessions).values(
                    token=session.token,
                    user_id=session.user.id,
                    expires_at=session.expires_at,
                )
            )

    def _select(self, token: str) -> Session | None:
        s, u = self.sessions.c, self.users.table.c
        stmt = (
            select(u.id, u.email, u.roles, u.created_at, s.expires_at)
            .join_from(self.sessions, self.users.table, s.user_id == u.id)
            .where(s.token == token)
        )
        with self.engine.connect() as conn:
            row = conn.execute(stmt).one_or_none()
        if row is None or row.expires_at <= utcnow():
            return None
        user = User(
            id=row.id, email=row.email, roles=tuple(row.roles or ()), created_at=row.created_at
        )
        return Session(token=token, user=user, expires_at=row.expires_at)

    def _delete(self, token: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(delete(self.sessions).where(self.sessions.c.token == token))
