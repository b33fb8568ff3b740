"""Domain interfaces following Clean Architecture principles.

These interfaces define the contracts for persistence and for the two
external services without depending on infrastructure implementations.
"""

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Protocol

from scrobblesync.domain.entities import (
    AuthSession,
    FetchedPlay,
    PlayRecord,
    SubmissionResult,
)


class DedupStoreProtocol(Protocol):
    """Durable record of what has already been submitted."""

    async def purge_older_than(self, cutoff: datetime) -> int:
        """Remove ids submitted before ``cutoff``; return how many were removed."""
        ...

    async def find_submitted(self, keys: Iterable[str]) -> set[str]:
        """Return the subset of ``keys`` already in the store."""
        ...

    async def add_submitted(self, keys: Iterable[str], submitted_at: datetime) -> None:
        """Record ``keys`` as successfully submitted at ``submitted_at``."""
        ...

    async def get_watermark(self) -> datetime | None:
        """Last-sync watermark, or None before the first successful cycle."""
        ...

    async def set_watermark(self, watermark: datetime) -> None:
        """Advance the last-sync watermark."""
        ...

    async def clear_watermark(self) -> None:
        """Forget the watermark; submitted ids are kept."""
        ...


class ScrobbleLogStoreProtocol(Protocol):
    """Snapshot persistence for the local scrobble log."""

    async def load_log(self) -> list[PlayRecord]:
        """Load the last saved log."""
        ...

    async def save_log(self, records: Sequence[PlayRecord]) -> None:
        """Replace the saved log with ``records``."""
        ...


class AppStateStoreProtocol(Protocol):
    """Small persisted application flags."""

    async def is_onboarded(self) -> bool: ...

    async def set_onboarded(self, value: bool) -> None: ...


class CredentialStore(Protocol):
    """Secure storage for the Last.fm session."""

    def load(self) -> AuthSession | None:
        """Return the stored session, if any."""
        ...

    def save(self, session: AuthSession) -> None:
        """Persist the session. Raises PersistenceError on failure."""
        ...

    def clear(self) -> None:
        """Delete the stored session."""
        ...


class PlaybackHistoryProvider(Protocol):
    """Source of recently played tracks."""

    @property
    def is_authorized(self) -> bool: ...

    async def request_authorization(self) -> bool:
        """Ask the user for access; may suspend on an external prompt."""
        ...

    async def fetch_recent(self) -> list[FetchedPlay]:
        """Recently played items, most recent first.

        Raises NotAuthorizedError when called while unauthorized.
        """
        ...


class ScrobbleClient(Protocol):
    """Scrobble-submission service, as seen by the sync orchestrator."""

    @property
    def is_authenticated(self) -> bool: ...

    @property
    def username(self) -> str: ...

    async def scrobble(self, records: Sequence[PlayRecord]) -> SubmissionResult:
        """Submit plays and return one outcome per record, in order."""
        ...


class WebAuthFlow(Protocol):
    """Interactive redirect-based authorization."""

    async def obtain_token(self, auth_url: str, callback_url: str) -> str:
        """Resolve to the one-time token, or raise AuthError."""
        ...
