"""Timestamp estimation for plays the provider could not date.

Providers return recently played items most-recent-first, and some items carry
no play time. Those are placed by walking the list and projecting backwards
from the nearest known (anchor) time using track durations.
"""

from collections.abc import Sequence
from datetime import datetime, timedelta

from .entities import PENDING, FetchedPlay, PlayRecord, utc_now

DEFAULT_TRACK_DURATION = 210.0  # seconds


def _duration_of(play: FetchedPlay, default_duration: float) -> float:
    if play.duration_seconds is None or play.duration_seconds <= 0:
        return default_duration
    return play.duration_seconds


def estimate_timestamps(
    plays: Sequence[FetchedPlay],
    now: datetime | None = None,
    default_duration: float = DEFAULT_TRACK_DURATION,
) -> list[datetime]:
    """Return a play time for every entry, in input order.

    The cursor starts at ``now`` minus the first track's duration. Each entry
    with an authoritative time resets the cursor to that time; every entry
    takes the cursor value, then the cursor moves back by the entry's duration.
    """
    if not plays:
        return []

    now = now or utc_now()
    cursor = now - timedelta(seconds=_duration_of(plays[0], default_duration))

    timestamps = []
    for play in plays:
        if play.last_played_at is not None:
            cursor = play.last_played_at
        timestamps.append(cursor.replace(microsecond=0))
        cursor -= timedelta(seconds=_duration_of(play, default_duration))

    return timestamps


def build_play_records(
    plays: Sequence[FetchedPlay],
    now: datetime | None = None,
    default_duration: float = DEFAULT_TRACK_DURATION,
) -> list[PlayRecord]:
    """Convert fetched plays into pending log records with estimated times."""
    timestamps = estimate_timestamps(plays, now, default_duration)
    return [
        PlayRecord(
            track_name=play.title,
            artist_name=play.artist,
            album_name=play.album,
            timestamp=timestamp,
            status=PENDING,
            artwork_ref=play.artwork_ref,
            source_id=play.source_id,
            duration=play.duration_seconds,
            is_estimated=play.last_played_at is None,
        )
        for play, timestamp in zip(plays, timestamps, strict=True)
    ]
