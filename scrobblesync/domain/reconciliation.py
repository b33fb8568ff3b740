"""Apply Last.fm verdicts back onto the local log."""

from collections.abc import Iterable, Sequence

from .entities import SUCCESS, Failed, PlayRecord, ScrobbleStatus, TrackOutcome


def find_match(log: Sequence[PlayRecord], outcome: TrackOutcome) -> int | None:
    """Index of the log record an outcome belongs to.

    Lookup order: the submitted record's own id, then ``source_id``, then the
    first record with the same track and artist name.
    """
    if outcome.record_id is not None:
        for index, record in enumerate(log):
            if record.id == outcome.record_id:
                return index

    if outcome.source_id is not None:
        for index, record in enumerate(log):
            if record.source_id == outcome.source_id:
                return index

    for index, record in enumerate(log):
        if (
            record.track_name == outcome.track_name
            and record.artist_name == outcome.artist_name
        ):
            return index

    return None


def outcome_status(outcome: TrackOutcome) -> ScrobbleStatus:
    if outcome.accepted:
        return SUCCESS
    return Failed(outcome.error_message or f"Unknown error (code {outcome.ignored_code})")


def apply_outcomes(
    log: Sequence[PlayRecord], outcomes: Iterable[TrackOutcome]
) -> tuple[list[PlayRecord], list[PlayRecord]]:
    """Set each matched record to Success or Failed.

    Returns:
        Tuple of (updated log, records that ended up accepted)
    """
    updated = list(log)
    accepted = []
    for outcome in outcomes:
        index = find_match(updated, outcome)
        if index is None:
            continue
        record = updated[index].with_status(outcome_status(outcome))
        updated[index] = record
        if outcome.accepted:
            accepted.append(record)
    return updated, accepted
