"""Error types raised by the dispatcher and the stream supervisor."""

from typing import Any


class AISStreamError(Exception):
    """Base error carrying the HTTP status it maps to."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON error payload."""
        return {"success": False, "message": self.message}


class ValidationError(AISStreamError):
    """Required input is missing or malformed."""

    status_code = 400


class NotFoundError(AISStreamError):
    """No connection is registered under the given id."""

    status_code = 404

    def __init__(self, message: str = "Connection not found"):
        super().__init__(message)


class InvalidStateError(AISStreamError):
    """The action is not valid for the connection's current status."""

    status_code = 400


class TransportError(AISStreamError):
    """Socket-level failure talking to the upstream stream."""

    status_code = 500
