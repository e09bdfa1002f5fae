"""Unit tests for `Site`: exactly-once initialization, readiness and shape."""

import asyncio
import logging
from dataclasses import replace

import pytest

from sitewire.bootstrap import Collaborators, InitStatus, Site
from sitewire.domain.errors import InitializationCancelledError, SubsystemNotBuiltError
from sitewire.domain.options import (
    DatabaseOptions,
    NetworkOptions,
    RealtimeOptions,
    SiteConfig,
    UsersOptions,
    UsersServerOptions,
)
from sitewire.service_layer.resolver import project_fields
from tests.fixtures.fakes import CallLog, FakeUsersServer, fake_collaborators

# mypy: disable-error-code=no-untyped-def
# pylint: disable=protected-access

DB = DatabaseOptions(url="sqlite://")

FULL = SiteConfig(
    database=DB,
    config_store={"theme": "dark"},
    network=NetworkOptions(port=9000),
    realtime=RealtimeOptions(outgoing_transport=True),
    users=UsersOptions(server=UsersServerOptions()),
    http=True,
)


@pytest.mark.asyncio
async def test_create_builds_exactly_the_projected_fields(fakes):
    site = await Site.create(FULL, collaborators=fakes)
    assert site.status is InitStatus.READY
    assert site.fields == project_fields(FULL)
    for name in site.fields:
        assert hasattr(site, name)


@pytest.mark.asyncio
async def test_missing_fields_raise_not_built(fakes):
    site = await Site.create(SiteConfig(database=DB), collaborators=fakes)
    assert site.has("db")
    assert not site.has("http")
    assert not hasattr(site, "http")
    with pytest.raises(SubsystemNotBuiltError) as excinfo:
        site.cookie  # pylint: disable=pointless-statement
    assert excinfo.value.subsystem == "cookie"
    with pytest.raises(AttributeError):
        site.not_a_field  # pylint: disable=pointless-statement


@pytest.mark.asyncio
async def test_empty_config_is_ready_with_nothing_built(fakes, call_log):
    site = await Site.create(SiteConfig(), collaborators=fakes)
    assert site.fields == frozenset()
    assert site.status is InitStatus.READY
    assert not call_log.calls


@pytest.mark.asyncio
async def test_concurrent_initialize_builds_once():
    log = CallLog()
    site = Site(
        FULL, collaborators=fake_collaborators(log, delay=0.01), autostart=False
    )
    first, second = await asyncio.gather(site.initialize(), site.initialize())
    assert first is second is site
    assert log.count("connect") == 1
    assert log.count("users_server") == 1
    assert await site.initialize() is site
    assert log.count("connect") == 1


@pytest.mark.asyncio
async def test_status_moves_through_in_progress():
    log = CallLog()
    site = Site(
        SiteConfig(database=DB),
        collaborators=fake_collaborators(log, delay=0.01),
        autostart=False,
    )
    assert site.status is InitStatus.NOT_STARTED
    task = asyncio.create_task(site.initialize())
    await asyncio.sleep(0)
    assert site.status is InitStatus.IN_PROGRESS
    await task
    assert site.status is InitStatus.READY


@pytest.mark.asyncio
async def test_autostart_inside_a_running_loop(fakes, call_log):
    site = Site(SiteConfig(database=DB), collaborators=fakes)
    assert await site.when_ready() is site
    assert call_log.count("connect") == 1


def test_no_autostart_outside_a_loop(fakes, call_log):
    site = Site(SiteConfig(database=DB), collaborators=fakes)
    assert site.status is InitStatus.NOT_STARTED
    assert not call_log.calls


@pytest.mark.asyncio
async def test_on_ready_runs_now_or_later(fakes):
    seen: list[Site] = []
    site = Site(SiteConfig(database=DB), collaborators=fakes, autostart=False)
    site.on_ready(seen.append)
    assert not seen
    await site.initialize()
    site.on_ready(seen.append)
    assert seen == [site, site]


def _failing_users(log: CallLog) -> Collaborators:
    async def users_server(**kwargs):
        log.record("users_server", **kwargs)
        raise RuntimeError("users unavailable")

    return replace(fake_collaborators(log), users_server=users_server)


@pytest.mark.asyncio
async def test_builder_failure_rejects_readiness_without_rollback(caplog):
    log = CallLog()
    site = Site(FULL, collaborators=_failing_users(log), autostart=False)
    called: list[Site] = []
    site.on_ready(called.append)

    with caplog.at_level(logging.ERROR, logger="sitewire.bootstrap.site"):
        with pytest.raises(RuntimeError, match="users unavailable"):
            await site.initialize()

    assert site.status is InitStatus.FAILED
    assert "users_server failed" in caplog.text
    with pytest.raises(RuntimeError, match="users unavailable"):
        await site.when_ready()
    with pytest.raises(RuntimeError, match="users unavailable"):
        await site.initialize()
    assert not called
    # earlier stages stay built, later ones never ran
    assert {"db", "wss", "http"} <= site.fields
    assert not site.has("cookie")
    assert log.count("cookie") == 0
    assert log.count("users_server") == 1


@pytest.mark.asyncio
async def test_waiters_see_the_same_failure():
    log = CallLog()
    site = Site(FULL, collaborators=_failing_users(log), autostart=False)
    results = await asyncio.gather(
        site.initialize(), site.when_ready(), return_exceptions=True
    )
    assert [type(r) for r in results] == [RuntimeError, RuntimeError]


@pytest.mark.asyncio
async def test_cancelled_initialization_rejects_readiness():
    log = CallLog()
    site = Site(FULL, collaborators=fake_collaborators(log, delay=0.05), autostart=False)
    waiter = asyncio.create_task(site.when_ready())
    with pytest.raises(TimeoutError):
        async with asyncio.timeout(0.01):
            await site.initialize()

    assert site.status is InitStatus.FAILED
    with pytest.raises(InitializationCancelledError):
        await waiter
    with pytest.raises(InitializationCancelledError):
        await site.when_ready()
    # no second attempt
    with pytest.raises(InitializationCancelledError):
        await site.initialize()
    assert log.count("connect") == 1


@pytest.mark.asyncio
async def test_failed_autostart_does_not_leak_unretrieved_errors():
    log = CallLog()
    site = Site(FULL, collaborators=_failing_users(log))
    with pytest.raises(RuntimeError):
        await site.when_ready()
    await asyncio.sleep(0)
    assert site.status is InitStatus.FAILED


@pytest.mark.asyncio
async def test_builders_receive_earlier_outputs(fakes, call_log):
    site = await Site.create(FULL, collaborators=fakes)
    assert call_log.args["realtime"]["binding"] is site.binding
    assert call_log.args["http"]["binding"] is site.binding
    assert call_log.args["subscriptions"] == {
        "wss": site.wss,
        "with_persistence": True,
    }
    kwargs = call_log.args["users_server"]
    assert kwargs["wss"] is site.wss
    assert kwargs["collections"] is site.collections
    assert kwargs["incoming_transport"] is site.incoming_transport
    assert kwargs["public"] is False
    assert call_log.args["cookie"]["users_server"] is site.users_server
    assert call_log.args["config_store"]["schema"] == {"theme": "dark"}


@pytest.mark.asyncio
async def test_users_server_exposes_its_users(fakes):
    site = await Site.create(FULL, collaborators=fakes)
    assert isinstance(site.users_server, FakeUsersServer)
    assert site.users is site.users_server.users


@pytest.mark.asyncio
async def test_cookie_is_attached_to_http(fakes):
    site = await Site.create(FULL, collaborators=fakes)
    assert site.http.cookie is site.cookie


@pytest.mark.asyncio
async def test_subscriptions_without_database(fakes, call_log):
    await Site.create(SiteConfig(realtime=RealtimeOptions()), collaborators=fakes)
    assert call_log.args["subscriptions"]["with_persistence"] is False


@pytest.mark.asyncio
async def test_bindings_are_deduplicated(fakes):
    shared = await Site.create(FULL, collaborators=fakes)
    assert shared.bindings == (shared.binding,)

    own = await Site.create(
        SiteConfig(realtime=RealtimeOptions(port=9001), http=True),
        collaborators=fakes,
    )
    assert own.bindings == (own.wss.binding, own.http.binding)
    assert own.wss.binding.port == 9001


@pytest.mark.asyncio
async def test_realtime_events_are_re_emitted(fakes, caplog):
    site = await Site.create(SiteConfig(realtime=RealtimeOptions()), collaborators=fakes)
    errors: list[BaseException] = []
    closed: list[bool] = []
    site.on("error", errors.append)
    site.on("close", lambda: closed.append(True))

    with caplog.at_level(logging.WARNING, logger="sitewire.bootstrap.site"):
        boom = OSError("socket")
        site.wss.emit("error", boom)
        site.wss.emit("close")

    assert errors == [boom]
    assert closed == [True]
    assert "Real-time server error: socket" in caplog.text
    assert "Real-time server closed" in caplog.text


class _Client:
    id = "c1"
    session = None


@pytest.mark.parametrize("verbose, logged", [(True, True), (False, False)])
@pytest.mark.asyncio
async def test_connection_logs_follow_the_verbose_flag(fakes, caplog, verbose, logged):
    options = SiteConfig(realtime=RealtimeOptions(), verbose_connection_logs=verbose)
    site = await Site.create(options, collaborators=fakes)
    with caplog.at_level(logging.INFO, logger="sitewire.bootstrap.site"):
        site.wss.emit("client-connect", _Client())
    assert ("Real-time client connected: c1" in caplog.text) is logged


def test_repr_lists_the_plan(fakes):
    site = Site(SiteConfig(database=DB), collaborators=fakes, autostart=False)
    assert repr(site) == "<Site not-started [database]>"
