"""Service connectors for Last.fm and the playback history provider."""

from scrobblesync.infrastructure.connectors import lastfm_codec
from scrobblesync.infrastructure.connectors.auth_flow import ConsoleAuthFlow
from scrobblesync.infrastructure.connectors.lastfm import LastFMConnector
from scrobblesync.infrastructure.connectors.spotify import (
    SpotifyHistoryProvider,
    convert_recent_item,
)

__all__ = [
    "ConsoleAuthFlow",
    "LastFMConnector",
    "SpotifyHistoryProvider",
    "convert_recent_item",
    "lastfm_codec",
]
