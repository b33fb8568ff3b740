"""Spotify playback history provider.

This module reads the user's recently played tracks through the spotipy
library (https://spotipy.readthedocs.io/) and converts them into
``FetchedPlay`` values for the sync engine.

Key components:
- SpotifyHistoryProvider: OAuth-authorized reader of recently played items
- convert_recent_item: Transform one recently-played API item into a FetchedPlay

spotipy is synchronous, so every API call runs in a worker thread.
"""

import asyncio
from datetime import datetime
from typing import Any

from attrs import define, field
import backoff
import spotipy
from spotipy.oauth2 import SpotifyOAuth

from scrobblesync.config import get_logger, resilient_operation, settings
from scrobblesync.domain.entities import FetchedPlay, to_unix
from scrobblesync.domain.exceptions import NotAuthorizedError

# Get contextual logger with service binding
logger = get_logger(__name__).bind(service="spotify")

SCOPE = "user-read-recently-played"
UNKNOWN_ALBUM = "Unknown Album"


def _parse_played_at(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Unparseable played_at value: {value}")
        return None


def _largest_image_url(album: dict[str, Any]) -> str | None:
    images = album.get("images") or []
    if not images:
        return None
    best = max(images, key=lambda image: (image.get("width") or 0))
    return best.get("url")


def convert_recent_item(item: dict[str, Any]) -> FetchedPlay | None:
    """Convert a ``current_user_recently_played`` item to a FetchedPlay.

    Returns None for items without track data (local files, podcasts).
    """
    track = item.get("track")
    if not track or not track.get("name"):
        return None

    artists = track.get("artists") or []
    artist = artists[0].get("name") if artists else None
    if not artist:
        return None

    album = track.get("album") or {}
    played_at = _parse_played_at(item.get("played_at"))
    duration_ms = track.get("duration_ms")

    source_id = None
    if track.get("id") and played_at is not None:
        # One id per play, so repeat plays of a track stay distinct
        source_id = f"spotify:{track['id']}:{to_unix(played_at)}"

    return FetchedPlay(
        title=track["name"],
        artist=artist,
        album=album.get("name") or UNKNOWN_ALBUM,
        source_id=source_id,
        artwork_ref=_largest_image_url(album),
        last_played_at=played_at,
        duration_seconds=duration_ms / 1000 if duration_ms else None,
    )


@define(slots=True)
class SpotifyHistoryProvider:
    """Reads recently played tracks from Spotify.

    The OAuth token is cached on disk by spotipy's ``CacheFileHandler``, so
    authorization survives between runs.
    """

    client_id: str = field(factory=lambda: settings.credentials.spotify_client_id)
    client_secret: str = field(
        factory=lambda: settings.credentials.spotify_client_secret, repr=False
    )
    redirect_uri: str = field(
        factory=lambda: settings.credentials.spotify_redirect_uri
    )
    cache_path: str = field(
        factory=lambda: str(settings.credentials.spotify_cache_path)
    )
    limit: int = field(factory=lambda: settings.api.spotify_recent_limit)
    auth_manager: Any = field(default=None, repr=False)
    client: Any = field(default=None, repr=False)

    is_authorizing: bool = field(default=False, init=False)
    connector_name: str = "spotify"

    def __attrs_post_init__(self) -> None:
        """Build the OAuth manager and client when credentials are configured."""
        self.limit = max(1, min(self.limit, 50))
        if self.auth_manager is None and self.client_id and self.client_secret:
            logger.debug("Initializing Spotify history provider")
            self.auth_manager = SpotifyOAuth(
                client_id=self.client_id,
                client_secret=self.client_secret,
                redirect_uri=self.redirect_uri,
                scope=SCOPE,
                open_browser=True,
                cache_handler=spotipy.CacheFileHandler(cache_path=self.cache_path),
            )
        if self.client is None and self.auth_manager is not None:
            self.client = spotipy.Spotify(auth_manager=self.auth_manager)

    @property
    def is_authorized(self) -> bool:
        """True when a valid (or refreshable) token is cached."""
        if self.auth_manager is None:
            return False
        token = self.auth_manager.validate_token(
            self.auth_manager.cache_handler.get_cached_token()
        )
        return token is not None

    @property
    def status_description(self) -> str:
        if self.is_authorizing:
            return "Connecting..."
        if self.is_authorized:
            return "Connected"
        return "Not connected"

    async def request_authorization(self) -> bool:
        """Run the OAuth flow (browser plus redirect prompt) if needed."""
        if self.auth_manager is None:
            logger.warning("Spotify client credentials are not configured")
            return False
        if self.is_authorized:
            return True
        if self.is_authorizing:
            logger.debug("Already authorizing, ignoring request")
            return False

        self.is_authorizing = True
        try:
            await asyncio.to_thread(self.auth_manager.get_access_token, as_dict=False)
        except spotipy.SpotifyOauthError as e:
            logger.warning(f"Spotify authorization failed: {e}")
            return False
        finally:
            self.is_authorizing = False

        authorized = self.is_authorized
        logger.info(f"Spotify authorization {'granted' if authorized else 'denied'}")
        return authorized

    @resilient_operation("spotify_recently_played")
    @backoff.on_exception(
        backoff.expo,
        spotipy.SpotifyException,
        max_tries=settings.api.spotify_retry_count,
    )
    async def fetch_recent(self) -> list[FetchedPlay]:
        """Fetch recently played tracks, most recent first.

        Raises:
            NotAuthorizedError: No valid Spotify token is available
        """
        if self.client is None or not self.is_authorized:
            raise NotAuthorizedError()

        logger.debug(f"Fetching up to {self.limit} recently played tracks")
        response = await asyncio.to_thread(
            self.client.current_user_recently_played, limit=self.limit
        )

        items = (response or {}).get("items", [])
        plays = [play for item in items if (play := convert_recent_item(item))]
        logger.info(f"Fetched {len(plays)} recently played tracks from Spotify")
        return plays
