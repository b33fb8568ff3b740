"""Core domain entities representing plays and scrobble results."""

from .operations import (
    AuthSession,
    FetchedPlay,
    SkipReason,
    SubmissionResult,
    SyncReport,
    TrackOutcome,
)
from .scrobble import (
    PENDING,
    SUCCESS,
    Failed,
    Pending,
    PlayRecord,
    ScrobbleFilter,
    ScrobbleStatus,
    Success,
    status_from_label,
    status_label,
)
from .shared import ensure_utc, from_unix, to_unix, utc_now

__all__ = [
    # Scrobble entities
    "PENDING",
    "SUCCESS",
    "Failed",
    "Pending",
    "PlayRecord",
    "ScrobbleFilter",
    "ScrobbleStatus",
    "Success",
    "status_from_label",
    "status_label",
    # Operation entities
    "AuthSession",
    "FetchedPlay",
    "SkipReason",
    "SubmissionResult",
    "SyncReport",
    "TrackOutcome",
    # Shared utilities
    "ensure_utc",
    "from_unix",
    "to_unix",
    "utc_now",
]
