"""SQL-backed implementations of the domain store protocols.

Each store call runs in its own short transaction from the session factory,
so a failed cycle never leaves half-written state behind.
"""

from collections.abc import Iterable, Sequence
from datetime import datetime

from attrs import define, field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from scrobblesync.domain.entities import PlayRecord, from_unix, to_unix
from scrobblesync.infrastructure.persistence.database.db_connection import (
    get_session_factory,
    session_scope,
)
from scrobblesync.infrastructure.persistence.repositories import (
    IS_ONBOARDED,
    LAST_SYNC_DATE,
    ScrobbleLogRepository,
    SubmittedPlayRepository,
    SyncStateRepository,
)


@define(slots=True)
class SQLDedupStore:
    """Submitted ids and the last-sync watermark."""

    session_factory: async_sessionmaker[AsyncSession] = field(
        factory=get_session_factory
    )

    async def purge_older_than(self, cutoff: datetime) -> int:
        async with session_scope(self.session_factory) as session:
            return await SubmittedPlayRepository(session).purge_older_than(
                to_unix(cutoff)
            )

    async def find_submitted(self, keys: Iterable[str]) -> set[str]:
        async with session_scope(self.session_factory) as session:
            return await SubmittedPlayRepository(session).find_submitted(keys)

    async def add_submitted(self, keys: Iterable[str], submitted_at: datetime) -> None:
        async with session_scope(self.session_factory) as session:
            await SubmittedPlayRepository(session).add_submitted(
                keys, to_unix(submitted_at)
            )

    async def get_watermark(self) -> datetime | None:
        async with session_scope(self.session_factory) as session:
            value = await SyncStateRepository(session).get_value(LAST_SYNC_DATE)
        return from_unix(int(value)) if value else None

    async def set_watermark(self, watermark: datetime) -> None:
        async with session_scope(self.session_factory) as session:
            await SyncStateRepository(session).set_value(
                LAST_SYNC_DATE, str(to_unix(watermark))
            )

    async def clear_watermark(self) -> None:
        async with session_scope(self.session_factory) as session:
            await SyncStateRepository(session).delete_value(LAST_SYNC_DATE)


@define(slots=True)
class SQLScrobbleLogStore:
    """Snapshot of the local scrobble log."""

    session_factory: async_sessionmaker[AsyncSession] = field(
        factory=get_session_factory
    )

    async def load_log(self) -> list[PlayRecord]:
        async with session_scope(self.session_factory) as session:
            return await ScrobbleLogRepository(session).get_all()

    async def save_log(self, records: Sequence[PlayRecord]) -> None:
        async with session_scope(self.session_factory) as session:
            await ScrobbleLogRepository(session).replace_all(records)


@define(slots=True)
class SQLAppStateStore:
    """Onboarding flag."""

    session_factory: async_sessionmaker[AsyncSession] = field(
        factory=get_session_factory
    )

    async def is_onboarded(self) -> bool:
        async with session_scope(self.session_factory) as session:
            value = await SyncStateRepository(session).get_value(IS_ONBOARDED)
        return value == "1"

    async def set_onboarded(self, value: bool) -> None:
        async with session_scope(self.session_factory) as session:
            await SyncStateRepository(session).set_value(
                IS_ONBOARDED, "1" if value else "0"
            )
