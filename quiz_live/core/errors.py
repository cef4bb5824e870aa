"""Exception types raised by the quiz engine."""

from __future__ import annotations


class QuizLiveError(Exception):
    """Base class for all quiz engine errors."""


class StoreUnavailableError(QuizLiveError):
    """Raised when the record store cannot be read or written."""


class SessionNotFoundError(QuizLiveError):
    """Raised when a session path yields no data."""

    def __init__(self, code: str) -> None:
        super().__init__(f"Session {code!r} does not exist.")
        self.code = code


class SubmissionRejectedError(QuizLiveError):
    """Raised when a participant action is refused before reaching the store."""


class SessionCodeError(QuizLiveError):
    """Raised when no free session code could be generated."""


class QuizImportError(QuizLiveError):
    """Raised when a quiz definition cannot be parsed."""


class InvalidPathError(QuizLiveError, ValueError):
    """Raised when a store path or player name contains illegal segments."""
