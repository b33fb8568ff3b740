"""Durable local state: SQL stores and the credential file."""

from scrobblesync.infrastructure.persistence.credentials import FileCredentialStore
from scrobblesync.infrastructure.persistence.stores import (
    SQLAppStateStore,
    SQLDedupStore,
    SQLScrobbleLogStore,
)

__all__ = [
    "FileCredentialStore",
    "SQLAppStateStore",
    "SQLDedupStore",
    "SQLScrobbleLogStore",
]
