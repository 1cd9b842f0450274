import logging
from typing import List, Optional, Tuple

from .config import Settings, get_settings
from .models import Note, SessionPointer
from .services import NoteKeeper, check_credentials, sort_for_display
from .storage import StoreSelection, open_store

logger = logging.getLogger(__name__)

_configured = False

def configure_logging(level: str = "INFO") -> None:
    global _configured
    if _configured:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root = logging.getLogger()
    root.setLevel(level.upper())
    root.addHandler(handler)
    _configured = True

class AppController:
    """
    Drives the application state the way the screens use it.

    With no session the app is in the authentication flow; with a session
    it holds the current account and that account's notes, newest first.
    Typed errors from NoteKeeper propagate so the caller can show them.
    """

    def __init__(self, keeper: NoteKeeper):
        self.keeper = keeper
        self.user: Optional[SessionPointer] = None
        self.notes: List[Note] = []

    @property
    def logged_in(self) -> bool:
        return self.user is not None

    async def start(self) -> None:
        """Seed storage, restore any saved session and load its notes."""
        await self.keeper.bootstrap()
        self.user = await self.keeper.resume_session()
        if self.user:
            logger.info("resumed session for %s", self.user.username)
            await self.refresh()

    async def refresh(self) -> List[Note]:
        self.notes = sort_for_display(await self.keeper.list_notes(self._account_id()))
        return self.notes

    async def register(self, username: str, password: str) -> None:
        await self.keeper.register_account(username, password)

    async def login(self, username: str, password: str) -> SessionPointer:
        check_credentials(username, password)
        account = await self.keeper.authenticate(username, password)
        self.user = await self.keeper.start_session(account)
        await self.refresh()
        return self.user

    async def logout(self) -> None:
        await self.keeper.end_session()
        self.user = None
        self.notes = []

    async def create_note(self, title: str, body: str = "") -> List[Note]:
        notes = await self.keeper.create_note(self._account_id(), title, body)
        self.notes = sort_for_display(notes)
        return self.notes

    async def edit_note(self, note_id: str, title: str, body: str = "") -> List[Note]:
        notes = await self.keeper.update_note(self._account_id(), note_id, title, body)
        self.notes = sort_for_display(notes)
        return self.notes

    async def delete_note(self, note_id: str) -> List[Note]:
        notes = await self.keeper.delete_note(self._account_id(), note_id)
        self.notes = sort_for_display(notes)
        return self.notes

    def _account_id(self) -> str:
        if self.user is None:
            raise RuntimeError("no active session")
        return self.user.id

def create_app(settings: Optional[Settings] = None) -> Tuple[AppController, StoreSelection]:
    """Open the store once and wire the controller to it."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    selection = open_store(settings)
    keeper = NoteKeeper(selection.store, serialize_writes=settings.serialize_writes)
    return AppController(keeper), selection
