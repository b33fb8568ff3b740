"""Scrobble-related domain entities.

Pure play representations and the scrobble status sum type.
"""

from datetime import datetime
from enum import StrEnum
from uuid import uuid4

import attrs
from attrs import define, field, validators

from .shared import ensure_utc


@define(frozen=True, slots=True)
class Success:
    """The play was accepted by Last.fm."""


@define(frozen=True, slots=True)
class Pending:
    """The play is waiting to be submitted (or is being submitted)."""


@define(frozen=True, slots=True)
class Failed:
    """The play was rejected or could not be delivered."""

    reason: str


ScrobbleStatus = Success | Pending | Failed

SUCCESS = Success()
PENDING = Pending()


def status_label(status: ScrobbleStatus) -> str:
    """Short lowercase name of a status, used for persistence and display."""
    match status:
        case Success():
            return "success"
        case Pending():
            return "pending"
        case Failed():
            return "failed"


def status_from_label(label: str, reason: str | None = None) -> ScrobbleStatus:
    """Inverse of :func:`status_label`."""
    match label:
        case "success":
            return SUCCESS
        case "pending":
            return PENDING
        case "failed":
            return Failed(reason or "Unknown error")
        case _:
            raise ValueError(f"Unknown scrobble status: {label!r}")


def _new_record_id() -> str:
    return str(uuid4())


@define(frozen=True, slots=True)
class PlayRecord:
    """A single play of a track, as kept in the local scrobble log.

    Records are immutable; status changes produce a new record with the
    same ``id`` through :meth:`with_status`.
    """

    track_name: str = field(validator=validators.instance_of(str))
    artist_name: str = field(validator=validators.instance_of(str))
    album_name: str = field(validator=validators.instance_of(str))
    timestamp: datetime = field(converter=ensure_utc)
    status: ScrobbleStatus = field(default=PENDING)
    artwork_ref: str | None = field(default=None)
    source_id: str | None = field(default=None)
    duration: float | None = field(default=None)  # seconds
    is_estimated: bool = field(default=False)
    id: str = field(factory=_new_record_id)

    @property
    def log_key(self) -> tuple[str, str, datetime]:
        """Identity of a play inside the local log."""
        return (self.track_name, self.artist_name, self.timestamp)

    @property
    def is_success(self) -> bool:
        return isinstance(self.status, Success)

    @property
    def is_pending(self) -> bool:
        return isinstance(self.status, Pending)

    @property
    def is_failed(self) -> bool:
        return isinstance(self.status, Failed)

    @property
    def error_message(self) -> str | None:
        match self.status:
            case Failed(reason=reason):
                return reason
            case _:
                return None

    def with_status(self, status: ScrobbleStatus) -> "PlayRecord":
        """Create a copy of this record with a new status."""
        return attrs.evolve(self, status=status)


class ScrobbleFilter(StrEnum):
    """History view filters."""

    ALL = "all"
    PENDING = "pending"
    FAILED = "failed"

    def matches(self, record: PlayRecord) -> bool:
        match self:
            case ScrobbleFilter.ALL:
                return True
            case ScrobbleFilter.PENDING:
                return record.is_pending
            case ScrobbleFilter.FAILED:
                return record.is_failed
