import itertools

import pytest

from notekeeper.domain import StorageFault
from notekeeper.services import NoteKeeper
from notekeeper.storage import MemoryStore


class FlakyStore(MemoryStore):
    """MemoryStore whose operations can be made to fault one by one."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_get = False
        self.fail_set = False
        self.fail_remove = False

    async def get(self, key):
        if self.fail_get:
            raise StorageFault("disk on fire", key=key)
        return await super().get(key)

    async def set(self, key, value):
        if self.fail_set:
            raise StorageFault("disk full", key=key)
        await super().set(key, value)

    async def remove(self, key):
        if self.fail_remove:
            raise StorageFault("permission denied", key=key)
        await super().remove(key)


@pytest.fixture(autouse=True)
def sequential_ids(monkeypatch: pytest.MonkeyPatch) -> None:
    # Timestamp ids collide when tests create records within one millisecond.
    counter = itertools.count(1)
    monkeypatch.setattr("notekeeper.services.make_id", lambda prefix: f"{prefix}_{next(counter)}")


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def flaky() -> FlakyStore:
    return FlakyStore()


@pytest.fixture
def keeper(store: MemoryStore) -> NoteKeeper:
    return NoteKeeper(store)
