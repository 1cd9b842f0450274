from typing import Optional

class NoteKeeperError(Exception):
    """Base exception for this package."""

class ValidationError(NoteKeeperError):
    """A required field was empty after trimming."""

class DuplicateUsernameError(NoteKeeperError):
    """Registration used a username that already exists."""

class AuthenticationError(NoteKeeperError):
    """Unknown username or wrong password; the two are never told apart."""

    def __init__(self, message: str = "Invalid username or password"):
        super().__init__(message)

class NotFoundError(NoteKeeperError):
    """An operation referenced a note id missing from the collection."""

class StorageFault(NoteKeeperError):
    """The underlying key-value backend failed."""

    def __init__(self, message: str, *, key: Optional[str] = None):
        super().__init__(f"{key}: {message}" if key else message)
        self.key = key
