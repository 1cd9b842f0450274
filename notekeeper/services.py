import logging
from typing import Any, List, Optional, Sequence

from .domain import (
    AuthenticationError,
    DuplicateUsernameError,
    NotFoundError,
    StorageFault,
    ValidationError,
)
from .models import (
    Account,
    Decoded,
    Note,
    SessionPointer,
    decode_accounts,
    decode_notes,
    decode_session,
    encode_accounts,
    encode_notes,
    encode_session,
)
from .storage import KeyLocks, KeyValueStore
from .utils import make_id, time_now

logger = logging.getLogger(__name__)

ACCOUNTS_KEY = "accounts"
SESSION_KEY = "current_session"
NOTES_KEY_PREFIX = "notes:"

SEED_ACCOUNT = Account(id="u_test", username="test", password="test123")

def notes_key(account_id: str) -> str:
    return f"{NOTES_KEY_PREFIX}{account_id}"

async def _read(store: KeyValueStore, key: str) -> Optional[str]:
    """Read a key, treating a backend fault as missing data."""
    try:
        return await store.get(key)
    except StorageFault:
        logger.warning("read of %s failed, treating as empty", key, exc_info=True)
        return None

def _log_default(key: str, raw: Optional[str], decoded: Decoded) -> None:
    if raw is not None and not decoded.ok:
        logger.warning("unreadable data under %s, treating as empty", key)
    elif decoded.unreadable:
        logger.warning("%d unreadable entries under %s kept as-is", len(decoded.unreadable), key)

def _entry_field(entry: Any, name: str) -> Any:
    return entry.get(name) if isinstance(entry, dict) else None

def check_credentials(username: str, password: str) -> str:
    """Return the trimmed username, or raise when either field is blank."""
    username = username.strip()
    if not username or not password.strip():
        raise ValidationError("Provide username and password")
    return username

async def bootstrap(store: KeyValueStore) -> bool:
    """Write the seed account on first run. Returns True when it did."""
    try:
        raw = await store.get(ACCOUNTS_KEY)
    except StorageFault:
        logger.warning("cannot check for existing accounts, skipping seed", exc_info=True)
        return False
    if raw is not None:
        return False
    await store.set(ACCOUNTS_KEY, encode_accounts([SEED_ACCOUNT]))
    logger.info("seeded account %r", SEED_ACCOUNT.username)
    return True

class AccountDirectory:
    """Registered accounts, stored as one JSON array under ``accounts``."""

    def __init__(self, store: KeyValueStore, locks: Optional[KeyLocks] = None):
        self.store = store
        self.locks = locks or KeyLocks(enabled=False)

    async def _load(self) -> Decoded[List[Account]]:
        raw = await _read(self.store, ACCOUNTS_KEY)
        decoded = decode_accounts(raw)
        _log_default(ACCOUNTS_KEY, raw, decoded)
        return decoded

    async def list_accounts(self) -> List[Account]:
        return (await self._load()).value

    async def register(self, username: str, password: str) -> Account:
        username = check_credentials(username, password)

        async with self.locks.hold(ACCOUNTS_KEY):
            decoded = await self._load()
            accounts = decoded.value
            taken = [a.username for a in accounts]
            taken += [_entry_field(e, "username") for e in decoded.unreadable]
            if username in taken:
                raise DuplicateUsernameError("Username already exists")
            account = Account(id=make_id("u"), username=username, password=password)
            accounts.append(account)
            await self.store.set(ACCOUNTS_KEY, encode_accounts(accounts, decoded.unreadable))

        logger.info("registered account %s", account.id)
        return account

    async def authenticate(self, username: str, password: str) -> Account:
        username = username.strip()
        for account in await self.list_accounts():
            if account.username == username and account.password == password:
                return account
        raise AuthenticationError()

class SessionStore:
    """The single logged-in slot under ``current_session``."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def resume(self) -> Optional[SessionPointer]:
        raw = await _read(self.store, SESSION_KEY)
        decoded = decode_session(raw)
        _log_default(SESSION_KEY, raw, decoded)
        return decoded.value

    async def start(self, account: Account) -> SessionPointer:
        pointer = SessionPointer.for_account(account)
        await self.store.set(SESSION_KEY, encode_session(pointer))
        return pointer

    async def end(self) -> None:
        await self.store.remove(SESSION_KEY)

class NoteRepository:
    """
    One note collection per account, each a JSON array under
    ``notes:<account_id>``.

    Every mutation reads the whole collection, changes it in memory and
    writes the whole collection back. Without ``locks`` two overlapping
    mutations of the same account are last-writer-wins. Entries that fail
    validation are not returned but are written back untouched.
    """

    def __init__(self, store: KeyValueStore, locks: Optional[KeyLocks] = None):
        self.store = store
        self.locks = locks or KeyLocks(enabled=False)

    async def _load(self, account_id: str) -> Decoded[List[Note]]:
        key = notes_key(account_id)
        raw = await _read(self.store, key)
        decoded = decode_notes(raw)
        _log_default(key, raw, decoded)
        return decoded

    async def list(self, account_id: str) -> List[Note]:
        """Return the collection in storage order (newest insert first)."""
        return (await self._load(account_id)).value

    async def _save(self, account_id: str, notes: List[Note], unreadable: Sequence[Any] = ()) -> List[Note]:
        await self.store.set(notes_key(account_id), encode_notes(notes, unreadable))
        return notes

    async def create(self, account_id: str, title: str, body: str = "") -> List[Note]:
        title = title.strip()
        if not title:
            raise ValidationError("Title required")
        note = Note(id=make_id("n"), title=title, body=body or "", created_at=time_now())

        async with self.locks.hold(notes_key(account_id)):
            decoded = await self._load(account_id)
            notes = decoded.value
            notes.insert(0, note)
            return await self._save(account_id, notes, decoded.unreadable)

    async def update(self, account_id: str, note_id: str, title: str, body: str = "") -> List[Note]:
        title = title.strip()
        if not title:
            raise ValidationError("Title required")

        async with self.locks.hold(notes_key(account_id)):
            decoded = await self._load(account_id)
            notes = decoded.value
            for i, note in enumerate(notes):
                if note.id == note_id:
                    notes[i] = note.model_copy(update={"title": title, "body": body or ""})
                    break
            else:
                raise NotFoundError("Note not found")
            return await self._save(account_id, notes, decoded.unreadable)

    async def delete(self, account_id: str, note_id: str) -> List[Note]:
        async with self.locks.hold(notes_key(account_id)):
            decoded = await self._load(account_id)
            notes = [n for n in decoded.value if n.id != note_id]
            unreadable = [e for e in decoded.unreadable if _entry_field(e, "id") != note_id]
            return await self._save(account_id, notes, unreadable)

def sort_for_display(notes: List[Note]) -> List[Note]:
    """Newest first by ``created_at``; ISO strings compare chronologically."""
    return sorted(notes, key=lambda n: n.created_at or "", reverse=True)

class NoteKeeper:
    """Entry point for the orchestration layer: accounts, session and notes."""

    def __init__(self, store: KeyValueStore, serialize_writes: bool = False):
        self.store = store
        locks = KeyLocks(enabled=serialize_writes)
        self.accounts = AccountDirectory(store, locks)
        self.sessions = SessionStore(store)
        self.notes = NoteRepository(store, locks)

    async def bootstrap(self) -> bool:
        return await bootstrap(self.store)

    async def register_account(self, username: str, password: str) -> Account:
        return await self.accounts.register(username, password)

    async def authenticate(self, username: str, password: str) -> Account:
        return await self.accounts.authenticate(username, password)

    async def resume_session(self) -> Optional[SessionPointer]:
        return await self.sessions.resume()

    async def start_session(self, account: Account) -> SessionPointer:
        return await self.sessions.start(account)

    async def end_session(self) -> None:
        await self.sessions.end()

    async def list_notes(self, account_id: str) -> List[Note]:
        return await self.notes.list(account_id)

    async def create_note(self, account_id: str, title: str, body: str = "") -> List[Note]:
        return await self.notes.create(account_id, title, body)

    async def update_note(self, account_id: str, note_id: str, title: str, body: str = "") -> List[Note]:
        return await self.notes.update(account_id, note_id, title, body)

    async def delete_note(self, account_id: str, note_id: str) -> List[Note]:
        return await self.notes.delete(account_id, note_id)
