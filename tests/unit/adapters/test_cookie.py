"""Unit tests for the signed session cookie."""

from datetime import datetime, timedelta, timezone

import pytest
from aiohttp import web

from sitewire.adapters.http import SignedCookieSetter
from sitewire.domain.options import CookieOptions
from sitewire.interfaces.users import Session, User

# mypy: disable-error-code=no-untyped-def

USER = User(id=1, email="ada@example.org")


class StubUsersServer:
    """Knows exactly one session token."""

    def __init__(self) -> None:
        self.session_obj = Session(
            token="tok123",
            user=USER,
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        )

    async def session(self, token):
        return self.session_obj if token == self.session_obj.token else None


@pytest.fixture
def setter():
    return SignedCookieSetter(
        CookieOptions(name="sid", secret="s3cret", max_age=60, secure=True),
        StubUsersServer(),
    )


def test_sign_and_verify(setter):
    value = setter.sign("tok123")
    assert value.startswith("tok123.")
    assert "=" not in value
    assert setter.verify(value) == "tok123"


@pytest.mark.parametrize("value", ["tok123", "tok123.", ".sig", "tok124.{sig}"])
def test_tampered_values_are_rejected(setter, value):
    sig = setter.sign("tok123").rpartition(".")[2]
    assert setter.verify(value.format(sig=sig)) is None


def test_other_secret_does_not_verify(setter):
    other = SignedCookieSetter(CookieOptions(secret="different"), StubUsersServer())
    assert other.verify(setter.sign("tok123")) is None


@pytest.mark.asyncio
async def test_resolve(setter):
    assert (await setter.resolve(setter.sign("tok123"))).user == USER
    assert await setter.resolve(setter.sign("unknown")) is None
    assert await setter.resolve("garbage") is None
    assert await setter.resolve(None) is None


def test_set_writes_cookie_attributes(setter):
    response = web.Response()
    setter.set(response, setter.users_server.session_obj)
    morsel = response.cookies["sid"]
    assert setter.verify(morsel.value) == "tok123"
    assert morsel["max-age"] == "60"
    assert morsel["path"] == "/"
    assert morsel["secure"] is True
    assert morsel["httponly"] is True
    assert morsel["samesite"] == "Lax"


def test_clear_expires_the_cookie(setter):
    response = web.Response()
    setter.clear(response)
    morsel = response.cookies["sid"]
    assert morsel.value == ""
    assert morsel["max-age"] == "0"
