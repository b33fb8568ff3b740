"""Application layer: the sync orchestrator and its observable state."""

from scrobblesync.application.sync_orchestrator import SyncOrchestrator
from scrobblesync.application.sync_state import (
    LogChanged,
    SyncCompleted,
    SyncEvent,
    SyncFailed,
    SyncStarted,
    SyncState,
)

__all__ = [
    "LogChanged",
    "SyncCompleted",
    "SyncEvent",
    "SyncFailed",
    "SyncOrchestrator",
    "SyncStarted",
    "SyncState",
]
