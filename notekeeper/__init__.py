from .domain import (
    AuthenticationError,
    DuplicateUsernameError,
    NoteKeeperError,
    NotFoundError,
    StorageFault,
    ValidationError,
)
from .models import Account, Note, SessionPointer
from .services import NoteKeeper
from .storage import KeyValueStore, MemoryStore, SQLiteStore, StoreSelection, open_store

__all__ = [
    "Account",
    "AuthenticationError",
    "DuplicateUsernameError",
    "KeyValueStore",
    "MemoryStore",
    "Note",
    "NoteKeeper",
    "NoteKeeperError",
    "NotFoundError",
    "SQLiteStore",
    "SessionPointer",
    "StorageFault",
    "StoreSelection",
    "ValidationError",
    "open_store",
]
