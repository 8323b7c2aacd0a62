"""Domain errors raised by the service layer.

Each error carries the HTTP status it is rendered with; ``main`` installs a single
exception handler for :class:`FaithBlissError`.
"""

from typing import Any


class FaithBlissError(Exception):
    """Base class for user-visible failures."""

    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NotFoundError(FaithBlissError):
    """A user, match, preferences row or message does not exist."""

    status_code = 404


class ConflictError(FaithBlissError):
    """Duplicate like, duplicate match or duplicate account."""

    status_code = 409


class InvalidOperationError(FaithBlissError):
    """The request is well-formed but not allowed, e.g. liking yourself."""

    status_code = 400


class UnauthorizedError(FaithBlissError):
    """The caller is not a party to the match or message it acts on."""

    status_code = 403
