"""Shared fixtures for the ScrobbleSync test suite."""

from datetime import UTC, datetime

import pytest

from scrobblesync.domain.entities import FetchedPlay, PlayRecord
from scrobblesync.infrastructure.persistence.database import (
    create_db_engine,
    create_session_factory,
    init_db,
)

FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def now():
    """A fixed, whole-second UTC 'now' for deterministic tests."""
    return FIXED_NOW


@pytest.fixture
def make_record():
    """Factory for PlayRecord with sensible defaults."""

    def _make(
        track: str = "Song",
        artist: str = "Artist",
        timestamp: datetime = FIXED_NOW,
        **kwargs,
    ) -> PlayRecord:
        kwargs.setdefault("album_name", "Album")
        return PlayRecord(
            track_name=track, artist_name=artist, timestamp=timestamp, **kwargs
        )

    return _make


@pytest.fixture
def make_play():
    """Factory for FetchedPlay with sensible defaults."""

    def _make(
        title: str = "Song",
        artist: str = "Artist",
        last_played_at: datetime | None = FIXED_NOW,
        **kwargs,
    ) -> FetchedPlay:
        kwargs.setdefault("album", "Album")
        return FetchedPlay(
            title=title, artist=artist, last_played_at=last_played_at, **kwargs
        )

    return _make


@pytest.fixture
async def session_factory():
    """Session factory bound to a fresh in-memory SQLite database."""
    engine = create_db_engine("sqlite+aiosqlite:///:memory:")
    await init_db(engine)
    yield create_session_factory(engine)
    await engine.dispose()
