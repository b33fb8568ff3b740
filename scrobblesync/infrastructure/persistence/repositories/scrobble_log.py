"""Repository for the local scrobble log snapshot."""

from collections.abc import Sequence

from attrs import define
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from scrobblesync.config import get_logger
from scrobblesync.domain.entities import (
    PlayRecord,
    from_unix,
    status_from_label,
    status_label,
    to_unix,
)
from scrobblesync.infrastructure.persistence.database.db_models import DBScrobble
from scrobblesync.infrastructure.persistence.repositories.repo_decorator import (
    db_operation,
)

logger = get_logger(__name__)


@define(frozen=True, slots=True)
class ScrobbleMapper:
    """Maps between DBScrobble and PlayRecord domain models."""

    @staticmethod
    def to_domain(db_model: DBScrobble) -> PlayRecord:
        return PlayRecord(
            id=db_model.record_id,
            track_name=db_model.track_name,
            artist_name=db_model.artist_name,
            album_name=db_model.album_name,
            timestamp=from_unix(db_model.played_at),
            status=status_from_label(db_model.status, db_model.error_message),
            artwork_ref=db_model.artwork_ref,
            source_id=db_model.source_id,
            duration=db_model.duration,
            is_estimated=db_model.is_estimated,
        )

    @staticmethod
    def to_db(domain_model: PlayRecord) -> DBScrobble:
        return DBScrobble(
            record_id=domain_model.id,
            track_name=domain_model.track_name,
            artist_name=domain_model.artist_name,
            album_name=domain_model.album_name,
            played_at=to_unix(domain_model.timestamp),
            status=status_label(domain_model.status),
            error_message=domain_model.error_message,
            artwork_ref=domain_model.artwork_ref,
            source_id=domain_model.source_id,
            duration=domain_model.duration,
            is_estimated=domain_model.is_estimated,
        )


class ScrobbleLogRepository:
    """Whole-log snapshot reads and writes."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.mapper = ScrobbleMapper()

    @db_operation("load_scrobble_log")
    async def get_all(self) -> list[PlayRecord]:
        """All records, most recent first."""
        result = await self.session.execute(
            select(DBScrobble).order_by(DBScrobble.played_at.desc(), DBScrobble.id)
        )
        return [self.mapper.to_domain(row) for row in result.scalars()]

    @db_operation("replace_scrobble_log")
    async def replace_all(self, records: Sequence[PlayRecord]) -> int:
        """Replace the stored snapshot with ``records``."""
        await self.session.execute(delete(DBScrobble))
        self.session.add_all([self.mapper.to_db(record) for record in records])
        await self.session.flush()
        logger.debug(f"Saved scrobble log snapshot of {len(records)} records")
        return len(records)
