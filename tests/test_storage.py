import aiosqlite
import pytest

import storage
from storage import MemoryStorage, SQLiteStorage


@pytest.fixture(params=["memory", "sqlite"])
async def backend(request, tmp_db):
    if request.param == "memory":
        return MemoryStorage("watched")
    await storage.init_db(tmp_db)
    return SQLiteStorage("watched", tmp_db)


async def test_init_db_creates_table(tmp_db):
    await storage.init_db(tmp_db)

    async with aiosqlite.connect(tmp_db) as db:
        async with db.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='kv'"
        ) as cursor:
            row = await cursor.fetchone()
    assert row is not None


async def test_set_and_get(backend):
    await backend.set("550", {"watchedOn": "2023-04-01", "title": "Fight Club"})
    assert await backend.get("550") == {"watchedOn": "2023-04-01", "title": "Fight Club"}
    assert await backend.get("27205") is None


async def test_set_overwrites_in_place(backend):
    await backend.set("1", {"watchedOn": "2024-01-01"})
    await backend.set("2", {"watchedOn": "2024-01-02"})
    await backend.set("1", {"watchedOn": "2024-02-01"})

    values = await backend.get_all()
    assert list(values) == ["1", "2"]
    assert values["1"] == {"watchedOn": "2024-02-01"}


async def test_remove_is_noop_when_missing(backend):
    await backend.set("1", {"watchedOn": "2024-01-01"})
    await backend.remove("1")
    await backend.remove("1")
    assert await backend.get_all() == {}


async def test_clear(backend):
    await backend.set("1", {"watchedOn": "2024-01-01"})
    await backend.set("2", {"watchedOn": "2024-01-02"})
    await backend.clear()
    assert await backend.get_all() == {}


async def test_replace_all_discards_previous_contents(backend):
    await backend.set("1", {"watchedOn": "2024-01-01"})
    await backend.replace_all({"3": {"watchedOn": "2022-01-01"}, "2": {"watchedOn": "2021-01-01"}})
    values = await backend.get_all()
    assert list(values) == ["3", "2"]


async def test_namespaces_are_isolated(tmp_db):
    await storage.init_db(tmp_db)
    watched = SQLiteStorage("watched", tmp_db)
    other = SQLiteStorage("other", tmp_db)

    await watched.set("1", {"watchedOn": "2024-01-01"})
    await other.set("1", {"value": 42})
    await other.clear()

    assert await watched.get("1") == {"watchedOn": "2024-01-01"}
    assert await other.get_all() == {}


async def test_memory_storage_returns_copies():
    backend = MemoryStorage("watched")
    await backend.set("1", {"watchedOn": "2024-01-01"})
    value = await backend.get("1")
    value["watchedOn"] = "1999-01-01"
    assert await backend.get("1") == {"watchedOn": "2024-01-01"}
