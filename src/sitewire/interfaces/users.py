"""Users layer interfaces.

- `UsersService`: accounts stored in the database (plain users layer).
- `UsersServer`: the users layer exposed over the real-time server, with
  sessions that can also back an HTTP session cookie.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True, slots=True)
class User:
    """A registered account."""

    id: int
    email: str
    roles: tuple[str, ...] = ()
    created_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class Session:
    """An authenticated session."""

    token: str = field(repr=False)
    user: User
    expires_at: datetime


class UsersService(abc.ABC):
    """Account management."""

    @abc.abstractmethod
    async def create(
        self, email: str, password: str, *, roles: tuple[str, ...] = ()
    ) -> User:
        """Register a new account.

        Raises:
            UserExistsError: If the email is already registered.
            ValueError: If the password is too short.
        """

    @abc.abstractmethod
    async def get(self, email: str) -> User | None:
        """Return the account registered under *email*, if any."""

    @abc.abstractmethod
    async def authenticate(self, email: str, password: str) -> User:
        """Return the account if the password matches.

        Raises:
            InvalidCredentialsError: On unknown email or wrong password.
        """


class UsersServer(abc.ABC):
    """Users exposed over the real-time server."""

    users: UsersService
    public: bool

    @abc.abstractmethod
    async def login(self, email: str, password: str) -> Session:
        """Authenticate and open a new session.

        Raises:
            InvalidCredentialsError: On unknown email or wrong password.
        """

    @abc.abstractmethod
    async def session(self, token: str) -> Session | None:
        """Return the live session for *token*, or None if unknown/expired."""

    @abc.abstractmethod
    async def logout(self, token: str) -> None:
        """Revoke the session for *token*; unknown tokens are ignored."""
