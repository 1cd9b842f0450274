import asyncio
import threading
from pathlib import Path

import pytest

from notekeeper.config import Settings
from notekeeper.domain import StorageFault
from notekeeper.storage import KeyLocks, MemoryStore, SQLiteStore, open_store


def test_memory_store_get_set_remove() -> None:
    async def run() -> None:
        store = MemoryStore()
        assert await store.get("k") is None
        await store.set("k", "v")
        assert await store.get("k") == "v"
        await store.remove("k")
        assert await store.get("k") is None
        await store.remove("k")

    asyncio.run(run())


def test_sqlite_store_persists_across_reopen(tmp_path: Path) -> None:
    db_path = str(tmp_path / "notes.db")

    async def write() -> None:
        store = SQLiteStore(db_path)
        await store.set("k", "v1")
        await store.set("k", "v2")
        await store.set("gone", "x")
        await store.remove("gone")
        await store.close()

    async def read() -> tuple:
        store = SQLiteStore(db_path)
        try:
            return await store.get("k"), await store.get("gone")
        finally:
            await store.close()

    asyncio.run(write())
    assert asyncio.run(read()) == ("v2", None)


def test_sqlite_store_faults_after_close(tmp_path: Path) -> None:
    store = SQLiteStore(str(tmp_path / "notes.db"))
    asyncio.run(store.close())

    with pytest.raises(StorageFault):
        asyncio.run(store.set("k", "v"))


def test_sqlite_store_unopenable_path_faults(tmp_path: Path) -> None:
    with pytest.raises(StorageFault):
        SQLiteStore(str(tmp_path / "no-such-dir" / "notes.db"))


def test_open_store_selects_sqlite(tmp_path: Path) -> None:
    selection = open_store(Settings(db_path=str(tmp_path / "notes.db"), backend="auto"))
    assert selection.backend == "sqlite"
    assert isinstance(selection.store, SQLiteStore)
    asyncio.run(selection.store.close())


def test_open_store_falls_back_to_memory(tmp_path: Path) -> None:
    selection = open_store(Settings(db_path=str(tmp_path / "no-such-dir" / "notes.db"), backend="auto"))
    assert selection.backend == "memory"
    assert isinstance(selection.store, MemoryStore)


def test_open_store_sqlite_only_does_not_fall_back(tmp_path: Path) -> None:
    with pytest.raises(StorageFault):
        open_store(Settings(db_path=str(tmp_path / "no-such-dir" / "notes.db"), backend="sqlite"))


def test_open_store_memory_requested() -> None:
    assert open_store(Settings(backend="memory")).backend == "memory"


def test_key_locks_serialize_same_key() -> None:
    events: list = []

    async def worker(locks: KeyLocks, name: str) -> None:
        async with locks.hold("k"):
            events.append(f"{name}-in")
            await asyncio.sleep(0)
            events.append(f"{name}-out")

    async def run(enabled: bool) -> list:
        events.clear()
        locks = KeyLocks(enabled=enabled)
        await asyncio.gather(worker(locks, "a"), worker(locks, "b"))
        return list(events)

    assert asyncio.run(run(True)) == ["a-in", "a-out", "b-in", "b-out"]
    assert asyncio.run(run(False)) == ["a-in", "b-in", "a-out", "b-out"]


def test_sqlite_close_runs_off_the_event_loop_thread(tmp_path: Path) -> None:
    store = SQLiteStore(str(tmp_path / "notes.db"))
    close_threads: list = []
    original = store._close

    def recording_close() -> None:
        close_threads.append(threading.get_ident())
        original()

    store._close = recording_close
    asyncio.run(store.close())

    assert close_threads and close_threads[0] != threading.get_ident()
