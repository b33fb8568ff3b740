"""Deduplication rules for fetched plays and the local log.

Two independent guards keep a play from being submitted twice:

1. the time filter: plays at or before the last-sync watermark are dropped;
2. the identity filter: plays whose id is already in the submitted set are dropped.

The local log has its own, separate merge key ``(track, artist, timestamp)``.
"""

from collections.abc import Collection, Iterable, Sequence
from datetime import datetime
import hashlib

from .entities import PlayRecord


def play_fingerprint(record: PlayRecord, bucket_seconds: int) -> str:
    """Secondary identity for plays without a provider id.

    Plays of the same track by the same artist within one time bucket share a
    fingerprint.
    """
    bucket = int(record.timestamp.timestamp()) // bucket_seconds
    basis = f"{record.track_name.casefold()}|{record.artist_name.casefold()}|{bucket}"
    return "fp:" + hashlib.md5(basis.encode("utf-8"), usedforsecurity=False).hexdigest()


def identity_key(record: PlayRecord, fingerprint_bucket: int | None = None) -> str | None:
    """The key a play is recorded under in the submitted set, if any."""
    if record.source_id:
        return record.source_id
    if fingerprint_bucket:
        return play_fingerprint(record, fingerprint_bucket)
    return None


def identity_keys(
    records: Iterable[PlayRecord], fingerprint_bucket: int | None = None
) -> list[str]:
    """Identity keys of all records that have one, in order."""
    return [
        key
        for record in records
        if (key := identity_key(record, fingerprint_bucket)) is not None
    ]


def filter_new_plays(
    records: Sequence[PlayRecord],
    watermark: datetime | None,
    submitted_ids: Collection[str],
    fingerprint_bucket: int | None = None,
) -> list[PlayRecord]:
    """Keep only plays that pass both the time and the identity filter.

    Order is preserved. Without a watermark the time filter passes everything.
    """
    survivors = []
    for record in records:
        if watermark is not None and record.timestamp <= watermark:
            continue
        key = identity_key(record, fingerprint_bucket)
        if key is not None and key in submitted_ids:
            continue
        survivors.append(record)
    return survivors


def sort_log(records: Iterable[PlayRecord]) -> list[PlayRecord]:
    """Local log order: most recent first."""
    return sorted(records, key=lambda record: record.timestamp, reverse=True)


def merge_into_log(
    log: Sequence[PlayRecord], incoming: Iterable[PlayRecord]
) -> tuple[list[PlayRecord], list[PlayRecord]]:
    """Merge plays into the log without duplicating ``(track, artist, timestamp)``.

    Returns:
        Tuple of (new sorted log, records that were actually added)
    """
    seen = {record.log_key for record in log}
    added = []
    for record in incoming:
        if record.log_key in seen:
            continue
        seen.add(record.log_key)
        added.append(record)

    return sort_log([*log, *added]), added
