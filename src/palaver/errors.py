"""Exception types raised and absorbed across the engine."""

from typing import Optional


class PalaverError(Exception):
    """Base class for all engine errors."""

    pass


class NotFound(PalaverError):
    """Raised when a session id has no stored record."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class Corrupt(NotFound):
    """Raised when a stored record cannot be parsed. Handled like NotFound."""

    def __init__(self, session_id: str, reason: str = ""):
        PalaverError.__init__(self, f"Session record is corrupt: {session_id} ({reason})")
        self.session_id = session_id
        self.reason = reason


class StoreUnavailable(PalaverError):
    """Raised when no key-value collaborator exists in this environment."""

    pass


class GenerationFailed(PalaverError):
    """Raised when the response generator could not produce a reply."""

    def __init__(self, prompt: str, cause: Optional[BaseException] = None):
        message = "Response generation failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.prompt = prompt
        self.cause = cause


class InvalidEdit(PalaverError):
    """Raised when an edit targets a message that cannot be edited."""

    def __init__(self, message_id: str, reason: str):
        super().__init__(f"Cannot edit message {message_id}: {reason}")
        self.message_id = message_id
        self.reason = reason
