"""Domain interfaces for persistence and external services."""

from .interfaces import (
    AppStateStoreProtocol,
    CredentialStore,
    DedupStoreProtocol,
    PlaybackHistoryProvider,
    ScrobbleClient,
    ScrobbleLogStoreProtocol,
    WebAuthFlow,
)

__all__ = [
    "AppStateStoreProtocol",
    "CredentialStore",
    "DedupStoreProtocol",
    "PlaybackHistoryProvider",
    "ScrobbleClient",
    "ScrobbleLogStoreProtocol",
    "WebAuthFlow",
]
