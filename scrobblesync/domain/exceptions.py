"""Domain exceptions.

Every failure the sync engine can observe maps to one of these types. Per-track
rejections from Last.fm are *not* exceptions; they are ``Failed`` statuses.
"""

from enum import StrEnum
from typing import Any


class ScrobbleSyncError(Exception):
    """Base exception for all ScrobbleSync errors."""

    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class AuthFailureReason(StrEnum):
    """Why an authentication step did not produce a usable session."""

    INVALID_URL = "invalid_url"
    USER_CANCELLED = "user_cancelled"
    NO_TOKEN = "no_token"
    AUTH_FAILED = "auth_failed"
    NOT_AUTHENTICATED = "not_authenticated"


_AUTH_MESSAGES = {
    AuthFailureReason.INVALID_URL: "Invalid URL",
    AuthFailureReason.USER_CANCELLED: "Authentication was cancelled",
    AuthFailureReason.NO_TOKEN: "No authentication token received",
    AuthFailureReason.AUTH_FAILED: "Authentication failed",
    AuthFailureReason.NOT_AUTHENTICATED: "Not authenticated with Last.fm",
}


class AuthError(ScrobbleSyncError):
    """Raised when the Last.fm handshake fails or a call needs a session."""

    def __init__(self, reason: AuthFailureReason, detail: str | None = None) -> None:
        message = _AUTH_MESSAGES[reason]
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.reason = reason
        self.detail = detail


class TransportError(ScrobbleSyncError):
    """Raised on network failure, non-success HTTP status or undecodable body."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ApiError(ScrobbleSyncError):
    """Raised when the remote service rejects the call itself."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code

    def __str__(self) -> str:
        return f"Last.fm error {self.code}: {self.message}"


class PersistenceError(ScrobbleSyncError):
    """Raised when credentials cannot be written to the credential store."""


class NotAuthorizedError(ScrobbleSyncError):
    """Raised when the playback history provider is used without authorization."""

    def __init__(self, message: str = "Playback history access not authorized") -> None:
        super().__init__(message)
