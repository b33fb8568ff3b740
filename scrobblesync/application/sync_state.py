"""Observable container for the sync engine's in-memory state.

The orchestrator is the only writer. Observers ``subscribe`` a callback and
receive a ``SyncEvent`` after every change.
"""

from collections.abc import Callable, Iterable
from datetime import datetime, timedelta

from attrs import define, field

from scrobblesync.config import get_logger, settings
from scrobblesync.domain.dedup import sort_log
from scrobblesync.domain.entities import (
    PlayRecord,
    ScrobbleFilter,
    SyncReport,
    utc_now,
)

logger = get_logger(__name__)


@define(frozen=True, slots=True)
class SyncStarted:
    """A sync or retry cycle began."""


@define(frozen=True, slots=True)
class SyncCompleted:
    report: SyncReport


@define(frozen=True, slots=True)
class SyncFailed:
    error: str


@define(frozen=True, slots=True)
class LogChanged:
    """The local log was replaced; ``count`` is its new length."""

    count: int


SyncEvent = SyncStarted | SyncCompleted | SyncFailed | LogChanged
Subscriber = Callable[[SyncEvent], None]


def _relative(delta: timedelta) -> str:
    seconds = int(delta.total_seconds())
    if seconds < 60:
        return "just now"
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if seconds >= size:
            count = seconds // size
            return f"{count} {unit}{'' if count == 1 else 's'} ago"
    return "just now"


@define(slots=True)
class SyncState:
    """Local log, sync flag and last sync time."""

    records: list[PlayRecord] = field(factory=list)
    is_syncing: bool = False
    last_sync_date: datetime | None = None
    _subscribers: list[Subscriber] = field(factory=list, init=False, repr=False)

    # -------------------------------------------------------------------------
    # Observation
    # -------------------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback``; the returned function unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def notify(self, event: SyncEvent) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception(f"Subscriber failed handling {type(event).__name__}")

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def replace_records(self, records: Iterable[PlayRecord]) -> None:
        self.records = sort_log(records)
        self.notify(LogChanged(len(self.records)))

    def find(self, record_id: str) -> PlayRecord | None:
        return next((r for r in self.records if r.id == record_id), None)

    # -------------------------------------------------------------------------
    # Derived views
    # -------------------------------------------------------------------------

    def today_count(self, now: datetime | None = None) -> int:
        """Records played on the current local calendar day."""
        today = (now or utc_now()).astimezone().date()
        return sum(1 for r in self.records if r.timestamp.astimezone().date() == today)

    def week_count(self, now: datetime | None = None) -> int:
        week_ago = (now or utc_now()) - timedelta(days=7)
        return sum(1 for r in self.records if r.timestamp >= week_ago)

    @property
    def pending_count(self) -> int:
        return sum(1 for r in self.records if r.is_pending)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.records if r.is_failed)

    def recent(self, count: int | None = None) -> list[PlayRecord]:
        return self.records[: count or settings.sync.recent_count]

    def filtered(self, scrobble_filter: ScrobbleFilter) -> list[PlayRecord]:
        return [r for r in self.records if scrobble_filter.matches(r)]

    def last_sync_description(self, now: datetime | None = None) -> str:
        if self.last_sync_date is None:
            return "Never synced"
        return f"Last synced {_relative((now or utc_now()) - self.last_sync_date)}"
