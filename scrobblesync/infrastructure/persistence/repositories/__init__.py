"""Repository layer for database operations with SQLAlchemy 2.0."""

from scrobblesync.infrastructure.persistence.repositories.repo_decorator import (
    db_operation,
)
from scrobblesync.infrastructure.persistence.repositories.scrobble_log import (
    ScrobbleLogRepository,
    ScrobbleMapper,
)
from scrobblesync.infrastructure.persistence.repositories.submitted import (
    SubmittedPlayRepository,
)
from scrobblesync.infrastructure.persistence.repositories.sync_state import (
    IS_ONBOARDED,
    LAST_SYNC_DATE,
    SyncStateRepository,
)

__all__ = [
    "IS_ONBOARDED",
    "LAST_SYNC_DATE",
    "ScrobbleLogRepository",
    "ScrobbleMapper",
    "SubmittedPlayRepository",
    "SyncStateRepository",
    "db_operation",
]
