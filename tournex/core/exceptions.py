"""Error taxonomy raised by the service layer.

Each error carries the HTTP status it is rendered with at the API boundary,
so services never import FastAPI to signal failures.
"""

from typing import List, Optional


class TournexError(Exception):
    """Base exception for all tournament domain errors."""

    status_code = 400

    def __init__(self, message: str, errors: Optional[List[dict]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []


class NotFoundError(TournexError):
    """Raised when a referenced tournament, match, participant or user does not exist."""

    status_code = 404


class UnauthorizedError(TournexError):
    """Raised when the actor is neither the tournament owner nor a super admin."""

    status_code = 403


class InvalidStateError(TournexError):
    """Raised when an operation is attempted outside its legal lifecycle window."""

    status_code = 409


class ConcurrentModificationError(InvalidStateError):
    """Raised when a record changed underneath the current unit of work."""


class InvalidInputError(TournexError):
    """Raised for malformed winners, tied or inverted scores and other bad values."""

    status_code = 400


class CapacityExceededError(TournexError):
    """Raised when a registration would exceed the tournament's capacity."""

    status_code = 409
