"""Operation-related domain entities.

Value objects exchanged between the sync engine and its collaborators.
"""

from datetime import datetime
from typing import Literal

from attrs import define, field

from .shared import ensure_utc


@define(frozen=True, slots=True)
class FetchedPlay:
    """A recently played item as returned by a playback history provider.

    ``last_played_at`` is None when the provider has no reliable timestamp
    for the play; the timestamp estimator fills those in.
    """

    title: str
    artist: str
    album: str
    source_id: str | None = None
    artwork_ref: str | None = None
    last_played_at: datetime | None = field(default=None, converter=ensure_utc)
    duration_seconds: float | None = None


@define(frozen=True, slots=True)
class AuthSession:
    """An authenticated Last.fm session."""

    session_key: str = field(repr=False)
    username: str
    subscriber: bool = False


@define(frozen=True, slots=True)
class TrackOutcome:
    """Last.fm's verdict for a single submitted play."""

    track_name: str
    artist_name: str
    accepted: bool
    ignored_code: int = 0
    error_message: str | None = None
    source_id: str | None = None
    record_id: str | None = None


@define(frozen=True, slots=True)
class SubmissionResult:
    """Aggregate result of one or more track.scrobble calls."""

    accepted: int = 0
    ignored: int = 0
    outcomes: list[TrackOutcome] = field(factory=list)

    @property
    def failed(self) -> int:
        """Outcomes that were not accepted, for any reason."""
        return sum(1 for outcome in self.outcomes if not outcome.accepted)

    def merge(self, other: "SubmissionResult") -> "SubmissionResult":
        """Combine two results, keeping outcome order."""
        return SubmissionResult(
            accepted=self.accepted + other.accepted,
            ignored=self.ignored + other.ignored,
            outcomes=[*self.outcomes, *other.outcomes],
        )


SkipReason = Literal[
    "already_syncing",
    "fetch_failed",
    "nothing_new",
    "not_authenticated",
    "submission_failed",
]


@define(frozen=True, slots=True)
class SyncReport:
    """Summary of one sync (or retry) cycle."""

    fetched: int = 0
    new: int = 0
    submitted: int = 0
    accepted: int = 0
    ignored: int = 0
    failed: int = 0
    skipped_reason: SkipReason | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        """True unless the cycle was aborted by an error."""
        return self.error is None and self.skipped_reason not in (
            "already_syncing",
            "fetch_failed",
        )
