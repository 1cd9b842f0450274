"""
Key-value storage backends.

Every logical table lives under one string key as a JSON blob. Two
interchangeable backends implement the same async contract:

- SQLiteStore: durable, a single ``kv`` table in a SQLite file
- MemoryStore: volatile, lives as long as the process

``open_store`` picks one of them once at startup and reports which.
"""

import abc
import asyncio
import contextlib
import logging
import sqlite3
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import AsyncIterator, Dict, Literal, Optional

from .config import Settings
from .domain import StorageFault

logger = logging.getLogger(__name__)

class KeyValueStore(abc.ABC):
    """Asynchronous string-keyed store. Backend errors surface as StorageFault."""

    @abc.abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abc.abstractmethod
    async def set(self, key: str, value: str) -> None:
        ...

    @abc.abstractmethod
    async def remove(self, key: str) -> None:
        ...

    async def close(self) -> None:
        pass

class MemoryStore(KeyValueStore):
    """Process-lifetime store used when no durable backend is available."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        # yield once so callers interleave the way they would on real I/O
        await asyncio.sleep(0)
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.sleep(0)
        self._data[key] = value

    async def remove(self, key: str) -> None:
        await asyncio.sleep(0)
        self._data.pop(key, None)

class SQLiteStore(KeyValueStore):
    """
    Durable store backed by one SQLite table ``kv(key, value)``.

    sqlite3 is blocking, so each call runs on a worker thread through
    ``asyncio.to_thread``. A single connection is shared and guarded by a
    thread lock.

    Raises:
        StorageFault: from the constructor when the database file cannot be
            opened or initialised, and from any operation that fails.
    """

    def __init__(self, db_path: str = "notekeeper.db"):
        self.db_path = db_path
        self.lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(db_path, check_same_thread=False)
            self._conn.execute("PRAGMA journal_mode=WAL;")
            self._conn.execute("PRAGMA synchronous=FULL;")
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
            )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageFault(f"cannot open database: {e}", key=db_path) from e

    @contextlib.contextmanager
    def _cursor(self, key: str):
        with self.lock:
            try:
                cursor = self._conn.cursor()
                yield cursor
                self._conn.commit()
            except sqlite3.Error as e:
                with contextlib.suppress(sqlite3.Error):
                    self._conn.rollback()
                raise StorageFault(str(e), key=key) from e

    def _get(self, key: str) -> Optional[str]:
        with self._cursor(key) as cursor:
            cursor.execute("SELECT value FROM kv WHERE key = ?", (key,))
            row = cursor.fetchone()
        return row[0] if row else None

    def _set(self, key: str, value: str) -> None:
        with self._cursor(key) as cursor:
            cursor.execute(
                "INSERT INTO kv (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )

    def _remove(self, key: str) -> None:
        with self._cursor(key) as cursor:
            cursor.execute("DELETE FROM kv WHERE key = ?", (key,))

    async def get(self, key: str) -> Optional[str]:
        return await asyncio.to_thread(self._get, key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._set, key, value)
        logger.debug("stored %s (%d bytes)", key, len(value))

    async def remove(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)
        logger.debug("removed %s", key)

    def _close(self) -> None:
        with self.lock:
            self._conn.close()

    async def close(self) -> None:
        await asyncio.to_thread(self._close)

Backend = Literal["sqlite", "memory"]

@dataclass(frozen=True)
class StoreSelection:
    store: KeyValueStore
    backend: Backend

def open_store(settings: Settings) -> StoreSelection:
    """Select the process-wide backend.

    ``auto`` tries SQLite first and falls back to memory with a warning;
    ``sqlite`` propagates the StorageFault instead.
    """
    if settings.backend == "memory":
        return StoreSelection(MemoryStore(), "memory")
    try:
        store = SQLiteStore(settings.db_path)
    except StorageFault:
        if settings.backend == "sqlite":
            raise
        logger.warning("durable storage unavailable at %s, using in-memory storage", settings.db_path, exc_info=True)
        return StoreSelection(MemoryStore(), "memory")
    logger.info("using sqlite storage at %s", settings.db_path)
    return StoreSelection(store, "sqlite")

class KeyLocks:
    """One asyncio.Lock per storage key, held across a read-modify-write."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @contextlib.asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        if not self.enabled:
            yield
            return
        async with self._locks[key]:
            yield
