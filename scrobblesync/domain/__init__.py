"""ScrobbleSync domain layer - pure business logic with zero external services."""

from . import dedup, entities, reconciliation, timestamps
from .entities import (
    FetchedPlay,
    PlayRecord,
    ScrobbleStatus,
    SubmissionResult,
    SyncReport,
    TrackOutcome,
)
from .exceptions import (
    ApiError,
    AuthError,
    AuthFailureReason,
    NotAuthorizedError,
    PersistenceError,
    ScrobbleSyncError,
    TransportError,
)

__all__ = [
    # Modules
    "dedup",
    "entities",
    "reconciliation",
    "timestamps",
    # Key domain types
    "FetchedPlay",
    "PlayRecord",
    "ScrobbleStatus",
    "SubmissionResult",
    "SyncReport",
    "TrackOutcome",
    # Errors
    "ApiError",
    "AuthError",
    "AuthFailureReason",
    "NotAuthorizedError",
    "PersistenceError",
    "ScrobbleSyncError",
    "TransportError",
]
