"""Unit tests for the subsystem builders."""

import pytest

from sitewire.bootstrap.builders import (
    BUILDERS,
    build_http,
    build_incoming_transport,
    build_middlewares,
    build_realtime,
    inject_dependencies,
)
from sitewire.domain.options import (
    CookieMiddlewareOptions,
    CookieOptions,
    HTTPOptions,
    IncomingTransportOptions,
    NetworkOptions,
    RealtimeOptions,
    SiteConfig,
    StaticOptions,
    TemplateOptions,
    TLSOptions,
)
from sitewire.service_layer.resolver import Subsystem
from tests.fixtures.fakes import FakeBinding, FakeMiddleware

# mypy: disable-error-code=no-untyped-def


def custom_middleware(request, handler):  # pragma: no cover
    return handler(request)


def kinds(middlewares) -> list[str]:
    return [m.kind if isinstance(m, FakeMiddleware) else "custom" for m in middlewares]


def test_every_subsystem_has_a_builder():
    assert set(BUILDERS) == set(Subsystem)


@pytest.mark.asyncio
async def test_inject_dependencies_passes_only_declared_parameters():
    async def builder(a, b=None):
        return {"a": a, "b": b}

    call = inject_dependencies(builder, {"a": 1, "c": 3})
    assert await call() == {"a": 1, "b": None}


def test_middleware_order_is_cookie_static_template_custom(fakes):
    cfg = SiteConfig(http=HTTPOptions(middlewares=(None, custom_middleware, False)))
    middlewares = build_middlewares(cfg, fakes)
    assert kinds(middlewares) == ["cookie", "static", "template", "custom"]
    assert middlewares[-1] is custom_middleware


def test_builtins_use_their_defaults(fakes):
    cookie, static, template = build_middlewares(SiteConfig(http=True), fakes)
    assert cookie.options == CookieMiddlewareOptions()
    assert static.options == StaticOptions()
    assert template.options == TemplateOptions()


def test_builtins_use_their_sections(fakes):
    cfg = SiteConfig(
        cookie=CookieOptions(middleware=CookieMiddlewareOptions(request_key="who")),
        http=HTTPOptions(static=StaticOptions(root="www")),
    )
    cookie, static, _ = build_middlewares(cfg, fakes)
    assert cookie.options.request_key == "who"
    assert static.options.root == "www"


@pytest.mark.parametrize(
    "cfg, expected",
    [
        (SiteConfig(http=True, cookie=None), ["static", "template"]),
        (SiteConfig(http=HTTPOptions(static=None)), ["cookie", "template"]),
        (SiteConfig(http=HTTPOptions(template=None)), ["cookie", "static"]),
        (
            SiteConfig(http=HTTPOptions(static=None, template=None), cookie=None),
            [],
        ),
    ],
)
def test_disabled_builtins_are_left_out(fakes, cfg, expected):
    assert kinds(build_middlewares(cfg, fakes)) == expected


@pytest.mark.asyncio
async def test_servers_reuse_the_shared_binding(fakes, call_log):
    shared = FakeBinding(NetworkOptions(port=80))
    cfg = SiteConfig(network=NetworkOptions(port=80), realtime=RealtimeOptions(), http=True)
    wss = (await build_realtime(cfg, fakes, shared))["wss"]
    http = (await build_http(cfg, fakes, shared))["http"]
    assert wss.binding is shared
    assert http.binding is shared
    assert call_log.count("binding") == 0


@pytest.mark.asyncio
async def test_local_port_gets_its_own_binding_over_shared_settings(fakes, call_log):
    tls = TLSOptions(cert="c.pem", key="k.pem")
    shared = FakeBinding(NetworkOptions(port=80))
    cfg = SiteConfig(
        network=NetworkOptions(host="10.0.0.1", port=80, ssl=tls),
        realtime=RealtimeOptions(port=81),
    )
    wss = (await build_realtime(cfg, fakes, shared))["wss"]
    assert wss.binding is not shared
    assert call_log.args["binding"]["options"] == NetworkOptions(
        host="10.0.0.1", port=81, ssl=tls
    )


@pytest.mark.asyncio
async def test_without_shared_binding_each_server_binds_alone(fakes, call_log):
    cfg = SiteConfig(http=HTTPOptions(host="127.0.0.1"))
    http = (await build_http(cfg, fakes))["http"]
    assert call_log.count("binding") == 1
    assert http.binding.host == "127.0.0.1"
    assert http.binding.port is None


@pytest.mark.asyncio
async def test_incoming_transport_options(fakes, call_log):
    limits = IncomingTransportOptions(max_size=10)
    cfg = SiteConfig(realtime=RealtimeOptions(incoming_transport=limits))
    await build_incoming_transport(cfg, fakes, wss="wss")
    assert call_log.args["incoming_transport"]["options"] is limits

    cfg = SiteConfig(realtime=RealtimeOptions(incoming_transport=True))
    await build_incoming_transport(cfg, fakes, wss="wss")
    assert call_log.args["incoming_transport"]["options"] == IncomingTransportOptions()
