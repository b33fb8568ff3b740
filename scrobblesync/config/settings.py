"""Configuration management using Pydantic Settings.

This module provides type-safe configuration management with automatic
environment variable loading and validation using Pydantic Settings.

The configuration is organized into logical groups:
- DatabaseConfig: Local state database settings
- LoggingConfig: Logging levels, files, and debugging options
- CredentialsConfig: Last.fm and Spotify application credentials
- APIConfig: Endpoints, timeouts and batch limits for external services
- SyncConfig: Deduplication retention and timestamp estimation defaults
"""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseModel):
    """Local state database configuration."""

    url: str = "sqlite+aiosqlite:///data/scrobblesync.db"
    echo: bool = False


class LoggingConfig(BaseModel):
    """Logging configuration for console and file output."""

    console_level: str = "INFO"
    file_level: str = "DEBUG"
    log_file: Path = Path("data/logs/scrobblesync.log")
    real_time_debug: bool = True


class CredentialsConfig(BaseModel):
    """API credentials and authentication settings."""

    # Last.fm application credentials
    lastfm_key: str = ""
    lastfm_secret: str = ""
    lastfm_callback_url: str = "http://localhost:8888/lastfm/callback"

    # Spotify credentials
    spotify_client_id: str = ""
    spotify_client_secret: str = ""
    spotify_redirect_uri: str = "http://localhost:8888/callback"
    spotify_cache_path: Path = Path("data/.spotify_cache")

    # Where the Last.fm session key lives between runs
    credentials_file: Path = Path("data/lastfm_session.json")


class APIConfig(BaseModel):
    """External API configuration."""

    lastfm_base_url: str = "https://ws.audioscrobbler.com/2.0/"
    lastfm_auth_url: str = "https://www.last.fm/api/auth/"
    lastfm_timeout: float = 30.0
    lastfm_batch_size: int = 50  # track.scrobble accepts at most 50 per call

    spotify_recent_limit: int = 50
    spotify_retry_count: int = 3


class SyncConfig(BaseModel):
    """Sync engine tuning."""

    retention_days: int = 7
    default_track_duration: float = 210.0  # seconds
    recent_count: int = 15
    watch_interval: int = 300  # seconds between background syncs

    # Secondary dedup key for plays that have no provider id
    fingerprint_unidentified_plays: bool = False
    fingerprint_bucket_seconds: int = 300


class Settings(BaseSettings):
    """Main application settings with environment variable support.

    Environment variables can be set using flat naming or nested naming:
    - Flat: DATABASE_URL, CONSOLE_LOG_LEVEL, LASTFM_KEY
    - Nested: DATABASE__URL, LOGGING__CONSOLE_LEVEL, SYNC__RETENTION_DAYS

    The .env file is automatically loaded for development convenience.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    database: DatabaseConfig = DatabaseConfig()
    logging: LoggingConfig = LoggingConfig()
    credentials: CredentialsConfig = CredentialsConfig()
    api: APIConfig = APIConfig()
    sync: SyncConfig = SyncConfig()

    data_dir: Path = Path("data")

    @model_validator(mode="before")
    @classmethod
    def transform_flat_env_vars(cls, data: Any) -> Any:
        """Transform flat environment variables to nested structure.

        Handles flat env vars (DATABASE_URL) and maps them to the
        nested structure expected by the models (database.url).
        """
        if not isinstance(data, dict):
            return data

        transformed = {}

        db_mapping = {
            "database_url": "url",
            "database_echo": "echo",
        }
        for env_key, field_key in db_mapping.items():
            if env_key in data:
                transformed.setdefault("database", {})[field_key] = data.pop(env_key)

        log_mapping = {
            "console_log_level": "console_level",
            "file_log_level": "file_level",
            "log_file": "log_file",
            "log_real_time_debug": "real_time_debug",
        }
        for env_key, field_key in log_mapping.items():
            if env_key in data:
                transformed.setdefault("logging", {})[field_key] = data.pop(env_key)

        cred_mapping = {
            "lastfm_key": "lastfm_key",
            "lastfm_secret": "lastfm_secret",
            "lastfm_callback_url": "lastfm_callback_url",
            "spotify_client_id": "spotify_client_id",
            "spotify_client_secret": "spotify_client_secret",
            "spotify_redirect_uri": "spotify_redirect_uri",
        }
        for env_key, field_key in cred_mapping.items():
            if env_key in data:
                transformed.setdefault("credentials", {})[field_key] = data.pop(
                    env_key
                )

        for section, values in transformed.items():
            existing = data.get(section)
            if isinstance(existing, dict):
                values = {**existing, **values}
            data[section] = values

        return data


# Singleton instance for application use
settings = Settings()


# =============================================================================
# BACKWARD COMPATIBILITY FUNCTIONS
# =============================================================================

_LEGACY_KEY_MAP = {
    # Database settings
    "DATABASE_URL": lambda: settings.database.url,
    "DATABASE_ECHO": lambda: settings.database.echo,
    # Logging settings
    "CONSOLE_LOG_LEVEL": lambda: settings.logging.console_level,
    "FILE_LOG_LEVEL": lambda: settings.logging.file_level,
    "LOG_FILE": lambda: settings.logging.log_file,
    # Application settings
    "DATA_DIR": lambda: settings.data_dir,
    # Credentials
    "LASTFM_KEY": lambda: settings.credentials.lastfm_key,
    "LASTFM_SECRET": lambda: settings.credentials.lastfm_secret,
    "LASTFM_CALLBACK_URL": lambda: settings.credentials.lastfm_callback_url,
    "SPOTIFY_CLIENT_ID": lambda: settings.credentials.spotify_client_id,
    "SPOTIFY_CLIENT_SECRET": lambda: settings.credentials.spotify_client_secret,
    "SPOTIFY_REDIRECT_URI": lambda: settings.credentials.spotify_redirect_uri,
    # API settings
    "LASTFM_API_BATCH_SIZE": lambda: settings.api.lastfm_batch_size,
    "LASTFM_API_TIMEOUT": lambda: settings.api.lastfm_timeout,
    "SPOTIFY_RECENT_LIMIT": lambda: settings.api.spotify_recent_limit,
    "SPOTIFY_API_RETRY_COUNT": lambda: settings.api.spotify_retry_count,
    # Sync settings
    "SYNC_RETENTION_DAYS": lambda: settings.sync.retention_days,
    "SYNC_DEFAULT_TRACK_DURATION": lambda: settings.sync.default_track_duration,
    "SYNC_RECENT_COUNT": lambda: settings.sync.recent_count,
}


def get_config(key: str, default=None):
    """Get configuration value by key with optional default.

    Maps flat keys to the nested Pydantic settings structure.

    Args:
        key: Configuration key to retrieve
        default: Default value if key not found

    Returns:
        Configuration value or default

    Example:
        >>> batch_size = get_config("LASTFM_API_BATCH_SIZE", 50)
    """
    if key in _LEGACY_KEY_MAP:
        return _LEGACY_KEY_MAP[key]()

    return default
