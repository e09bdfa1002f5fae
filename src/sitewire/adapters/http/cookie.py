"""Signed session cookie backed by the networked users layer.

The cookie value is ``<token>.<signature>`` where the signature is an
HMAC-SHA256 of the session token under the configured secret, urlsafe-base64
encoded without padding. Tampered values are treated as absent.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from typing import TYPE_CHECKING

from sitewire.interfaces.http import CookieSetter

if TYPE_CHECKING:
    from aiohttp import web

    from sitewire.domain.options import CookieOptions
    from sitewire.interfaces.users import Session, UsersServer


class SignedCookieSetter(CookieSetter):
    """Write and read the session cookie.

    Args:
        options: Cookie attributes and signing secret.
        users_server: Resolves session tokens.
    """

    def __init__(self, options: CookieOptions, users_server: UsersServer) -> None:
        self.options = options
        self.users_server = users_server
        self.name = options.name
        self._key = options.secret.encode("utf-8")

    def _signature(self, token: str) -> str:
        digest = hmac.new(self._key, token.encode("utf-8"), hashlib.sha256).digest()
        return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")

    def sign(self, token: str) -> str:
        return f"{token}.{self._signature(token)}"

    def verify(self, value: str) -> str | None:
        token, sep, signature = value.rpartition(".")
        if not sep or not token:
            return None
        if not hmac.compare_digest(signature, self._signature(token)):
            return None
        return token

    async def resolve(self, value: str | None) -> Session | None:
        if not value or (token := self.verify(value)) is None:
            return None
        return await self.users_server.session(token)

    def set(self, response: web.StreamResponse, session: Session) -> None:
        o = self.options
        response.set_cookie(
            self.name,
            self.sign(session.token),
            max_age=o.max_age,
            path=o.path,
            domain=o.domain,
            secure=o.secure,
            httponly=o.http_only,
            samesite=o.same_site,
        )

    def clear(self, response: web.StreamResponse) -> None:
        response.del_cookie(self.name, path=self.options.path, domain=self.options.domain)
