"""Repository for key/value application state."""

from typing import Final

from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.ext.asyncio import AsyncSession

from scrobblesync.infrastructure.persistence.database.db_models import DBSyncState
from scrobblesync.infrastructure.persistence.repositories.repo_decorator import (
    db_operation,
)

LAST_SYNC_DATE: Final = "last_sync_date"
IS_ONBOARDED: Final = "is_onboarded"


class SyncStateRepository:
    """String values stored under well-known keys."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @db_operation("get_sync_state")
    async def get_value(self, key: str) -> str | None:
        result = await self.session.execute(
            select(DBSyncState.value).where(DBSyncState.key == key)
        )
        return result.scalar_one_or_none()

    @db_operation("set_sync_state")
    async def set_value(self, key: str, value: str) -> None:
        stmt = insert(DBSyncState).values(key=key, value=value)
        stmt = stmt.on_conflict_do_update(
            index_elements=[DBSyncState.key],
            set_={"value": stmt.excluded.value},
        )
        await self.session.execute(stmt)

    @db_operation("delete_sync_state")
    async def delete_value(self, key: str) -> None:
        await self.session.execute(delete(DBSyncState).where(DBSyncState.key == key))
