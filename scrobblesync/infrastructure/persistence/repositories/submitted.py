"""Repository for play ids that Last.fm has accepted."""

from collections.abc import Iterable

from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.ext.asyncio import AsyncSession

from scrobblesync.config import get_logger
from scrobblesync.infrastructure.persistence.database.db_models import DBSubmittedPlay
from scrobblesync.infrastructure.persistence.repositories.repo_decorator import (
    db_operation,
)

logger = get_logger(__name__)

# Keeps IN (...) lists below SQLite's bound parameter limit
_LOOKUP_CHUNK = 500


class SubmittedPlayRepository:
    """Submitted-id set with per-id submission time (unix seconds)."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @db_operation("find_submitted")
    async def find_submitted(self, keys: Iterable[str]) -> set[str]:
        """Return the subset of ``keys`` already recorded."""
        unique = list(dict.fromkeys(keys))
        found: set[str] = set()
        for start in range(0, len(unique), _LOOKUP_CHUNK):
            chunk = unique[start : start + _LOOKUP_CHUNK]
            result = await self.session.execute(
                select(DBSubmittedPlay.source_id).where(
                    DBSubmittedPlay.source_id.in_(chunk)
                )
            )
            found.update(result.scalars())
        return found

    @db_operation("add_submitted")
    async def add_submitted(self, keys: Iterable[str], submitted_at: int) -> int:
        """Record ``keys``; an id that is already present gets the new time."""
        rows = [
            {"source_id": key, "submitted_at": submitted_at}
            for key in dict.fromkeys(keys)
        ]
        if not rows:
            return 0

        stmt = insert(DBSubmittedPlay).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=[DBSubmittedPlay.source_id],
            set_={"submitted_at": stmt.excluded.submitted_at},
        )
        await self.session.execute(stmt)
        return len(rows)

    @db_operation("purge_submitted")
    async def purge_older_than(self, cutoff: int) -> int:
        """Delete ids submitted strictly before ``cutoff``."""
        result = await self.session.execute(
            delete(DBSubmittedPlay).where(DBSubmittedPlay.submitted_at < cutoff)
        )
        return result.rowcount or 0
