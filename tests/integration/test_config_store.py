"""Integration tests for the SQL-backed config store."""

import logging

import pytest

from sitewire.adapters.config_store import SqlAlchemyConfigStore
from sitewire.domain.errors import InvalidSettingError, UnknownSettingError

# mypy: disable-error-code=no-untyped-def

SCHEMA = {"theme": "light", "max_users": 10, "ratio": 0.5, "banner": None}


@pytest.mark.asyncio
async def test_defaults_until_set(collections):
    store = await SqlAlchemyConfigStore.init(collections, SCHEMA)
    assert dict(store) == SCHEMA
    assert len(store) == 4
    assert "config" in collections


@pytest.mark.asyncio
async def test_set_persists_across_reloads(collections):
    store = await SqlAlchemyConfigStore.init(collections, SCHEMA)
    await store.set("theme", "dark")
    await store.set("theme", "solarized")
    await store.set("banner", {"text": "hi"})
    assert store["theme"] == "solarized"

    reloaded = await SqlAlchemyConfigStore.init(collections, SCHEMA)
    assert reloaded["theme"] == "solarized"
    assert reloaded["banner"] == {"text": "hi"}
    assert reloaded["max_users"] == 10


@pytest.mark.asyncio
async def test_reset_restores_the_default(collections):
    store = await SqlAlchemyConfigStore.init(collections, SCHEMA)
    await store.set("max_users", 99)
    await store.reset("max_users")
    assert store["max_users"] == 10
    assert (await SqlAlchemyConfigStore.init(collections, SCHEMA))["max_users"] == 10


@pytest.mark.asyncio
async def test_unknown_keys_are_rejected(collections):
    store = await SqlAlchemyConfigStore.init(collections, SCHEMA)
    with pytest.raises(UnknownSettingError):
        store["nope"]  # pylint: disable=pointless-statement
    with pytest.raises(UnknownSettingError):
        await store.set("nope", 1)
    with pytest.raises(UnknownSettingError):
        await store.reset("nope")
    assert store.get("nope") is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "key, value", [("max_users", "ten"), ("max_users", True), ("theme", 3), ("ratio", "x")]
)
async def test_values_must_match_the_default_type(collections, key, value):
    store = await SqlAlchemyConfigStore.init(collections, SCHEMA)
    with pytest.raises(InvalidSettingError):
        await store.set(key, value)


@pytest.mark.asyncio
async def test_ints_are_accepted_for_floats(collections):
    store = await SqlAlchemyConfigStore.init(collections, SCHEMA)
    await store.set("ratio", 1)
    assert store["ratio"] == 1


@pytest.mark.asyncio
async def test_stale_rows_are_ignored_on_load(collections, caplog):
    store = await SqlAlchemyConfigStore.init(collections, SCHEMA)
    await store.set("theme", "dark")
    await store.set("max_users", 5)

    with caplog.at_level(logging.WARNING):
        changed = await SqlAlchemyConfigStore.init(
            collections, {"theme": 0, "other": "x"}
        )
    assert dict(changed) == {"theme": 0, "other": "x"}
    assert "Ignoring stored value" in caplog.text
