from dataclasses import dataclass
from typing import Any, Generic, List, Literal, Optional, Sequence, Tuple, Type, TypeVar

from pydantic import BaseModel, ConfigDict, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticSerializationError

from .domain import ValidationError

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

class Account(BaseModel):
    """A registered identity. The password is kept verbatim, not hashed."""
    model_config = ConfigDict(extra="allow")

    id: str
    username: str
    password: str

class SessionPointer(BaseModel):
    """The logged-in account. Never carries credentials."""
    id: str
    username: str

    @classmethod
    def for_account(cls, account: Account) -> "SessionPointer":
        return cls(id=account.id, username=account.username)

class Note(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    title: str
    body: str = ""
    created_at: str = ""

@dataclass(frozen=True)
class Decoded(Generic[T]):
    """Outcome of decoding a stored blob.

    ``status`` is ``"decoded"`` when the blob parsed, and ``"default"`` when
    it was missing or not JSON of the right shape and ``value`` holds the
    empty default instead. Array entries that parse but fail validation are
    kept as-is in ``unreadable`` so a write-back does not drop them.
    """
    value: T
    status: Literal["decoded", "default"]
    unreadable: Tuple[Any, ...] = ()

    @property
    def ok(self) -> bool:
        return self.status == "decoded"

_entries = TypeAdapter(List[Any])

def _decode_list(model: Type[M], raw: Optional[str]) -> Decoded[List[M]]:
    if raw is None:
        return Decoded([], "default")
    try:
        entries = _entries.validate_json(raw)
    except PydanticValidationError:
        return Decoded([], "default")
    records, unreadable = [], []
    for entry in entries:
        try:
            records.append(model.model_validate(entry))
        except PydanticValidationError:
            unreadable.append(entry)
    return Decoded(records, "decoded", tuple(unreadable))

def _encode_list(records: Sequence[BaseModel], unreadable: Sequence[Any]) -> str:
    try:
        return _entries.dump_json([r.model_dump() for r in records] + list(unreadable)).decode("utf-8")
    except PydanticSerializationError as e:
        raise ValidationError(f"Text cannot be stored: {e}") from e

def decode_accounts(raw: Optional[str]) -> Decoded[List[Account]]:
    return _decode_list(Account, raw)

def decode_notes(raw: Optional[str]) -> Decoded[List[Note]]:
    return _decode_list(Note, raw)

def decode_session(raw: Optional[str]) -> Decoded[Optional[SessionPointer]]:
    if raw is None:
        return Decoded(None, "default")
    try:
        return Decoded(SessionPointer.model_validate_json(raw), "decoded")
    except PydanticValidationError:
        return Decoded(None, "default")

def encode_accounts(accounts: List[Account], unreadable: Sequence[Any] = ()) -> str:
    return _encode_list(accounts, unreadable)

def encode_notes(notes: List[Note], unreadable: Sequence[Any] = ()) -> str:
    return _encode_list(notes, unreadable)

def encode_session(pointer: SessionPointer) -> str:
    try:
        return pointer.model_dump_json()
    except PydanticSerializationError as e:
        raise ValidationError(f"Text cannot be stored: {e}") from e
