"""Database engine, sessions and ORM models."""

from scrobblesync.infrastructure.persistence.database.db_connection import (
    create_db_engine,
    create_session_factory,
    get_engine,
    get_session,
    get_session_factory,
    init_db,
    reset_engine,
    session_scope,
)
from scrobblesync.infrastructure.persistence.database.db_models import (
    Base,
    DBScrobble,
    DBSubmittedPlay,
    DBSyncState,
)

__all__ = [
    "Base",
    "DBScrobble",
    "DBSubmittedPlay",
    "DBSyncState",
    "create_db_engine",
    "create_session_factory",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_db",
    "reset_engine",
    "session_scope",
]
