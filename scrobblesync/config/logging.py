"""Logging configuration and utilities using Loguru.

This module provides centralized logging setup for ScrobbleSync,
including structured logging with Loguru and an error handling decorator
for calls that cross a service boundary.

Public API:
----------
setup_loguru_logger(verbose: bool = False) -> None
    Configure Loguru logger for the application

get_logger(name: str) -> Logger
    Get a context-aware logger for your module
    Usage: logger = get_logger(__name__)

log_startup_info() -> None
    Log system configuration at startup

@resilient_operation(operation_name: str)
    Decorator for handling errors in external API calls
    Usage: @resilient_operation("lastfm_scrobble")

redact(value: str | None) -> str
    Shorten secrets and tokens before they reach a log line
"""

from collections.abc import Awaitable, Callable
import functools
from pathlib import Path
import sys
from typing import Any, ParamSpec, TypeVar

from loguru import logger

from .settings import settings

P = ParamSpec("P")
R = TypeVar("R")

# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================


def setup_loguru_logger(verbose: bool = False) -> None:
    """Configure Loguru logger for the application.

    Args:
        verbose: Enable verbose logging with debug level and detailed tracebacks

    Note:
        - Removes default logger and sets up console and file handlers
        - Console format is colorized and simplified
        - File format is JSON with full structured information
    """
    logger.remove()

    log_file_path = Path(settings.logging.log_file)
    log_file_path.parent.mkdir(parents=True, exist_ok=True)

    # Add contextual info to all log records
    logger.configure(extra={"service": "scrobblesync", "module": "root"})

    # -------------------------------------------------------------------------
    # Console Handler
    # -------------------------------------------------------------------------
    console_level = "DEBUG" if verbose else settings.logging.console_level
    logger.add(
        sink=sys.stderr,
        level=console_level,
        format=(
            "<green>{time:HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:"
            "<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        colorize=True,
        backtrace=verbose,
        diagnose=verbose,
    )

    # -------------------------------------------------------------------------
    # File Handler
    # -------------------------------------------------------------------------
    enqueue_logs = not settings.logging.real_time_debug
    logger.add(
        sink=str(log_file_path),
        level=settings.logging.file_level,
        rotation="10 MB",
        retention="1 week",
        compression="zip",
        backtrace=True,
        diagnose=False,  # tracebacks would otherwise carry session keys
        enqueue=enqueue_logs,
        catch=True,
        serialize=True,
    )


# =============================================================================
# LOGGER FACTORY
# =============================================================================


def get_logger(name: str) -> Any:  # Use Any for Loguru logger type
    """Get a pre-configured logger instance for the given module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Loguru logger bound with module context

    Example:
        ```python
        logger = get_logger(__name__)
        logger.info("Sync complete", accepted=12)
        ```
    """
    return logger.bind(
        module=name,
        service="scrobblesync",
    )


def redact(value: str | None, keep: int = 8) -> str:
    """Return only the first characters of a secret for logging."""
    if not value:
        return "<empty>"
    return f"{value[:keep]}..."


# =============================================================================
# STARTUP LOGGING
# =============================================================================


def log_startup_info() -> None:
    """Log application configuration on startup.

    Credentials are never logged; everything else is dumped at debug level.
    """
    local_logger = get_logger(__name__)
    separator = "=" * 50

    local_logger.info("{}", separator)
    local_logger.info("ScrobbleSync")
    local_logger.info("{}", separator)

    local_logger.debug("Configuration:")
    config_dict = settings.model_dump(exclude={"credentials"})
    for section_name, section_values in config_dict.items():
        local_logger.debug("  {}:", section_name.upper())
        if isinstance(section_values, dict):
            for key, value in section_values.items():
                if isinstance(value, Path):
                    value = str(value)
                local_logger.debug("    {}: {}", key.upper(), value)
        else:
            if isinstance(section_values, Path):
                section_values = str(section_values)
            local_logger.debug("    {}", section_values)

    local_logger.debug(
        "Last.fm credentials configured: {}",
        bool(settings.credentials.lastfm_key and settings.credentials.lastfm_secret),
    )
    local_logger.debug(
        "Spotify credentials configured: {}",
        bool(settings.credentials.spotify_client_id),
    )


# =============================================================================
# ERROR HANDLING DECORATORS
# =============================================================================


def resilient_operation(
    operation_name: str | None = None,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Decorator for service boundary operations with standardized error logging.

    Use on external API calls and other boundary operations. Errors are logged
    with the operation name and re-raised for the caller to handle.

    Args:
        operation_name: Optional name for the operation (defaults to function name)

    Example:
        >>> @resilient_operation("spotify_recently_played")
        >>> async def fetch_recent(self):
        >>>     ...
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        op_name = operation_name or func.__name__

        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                logger.opt(exception=e).error(f"Error in {op_name}: {e!s}")
                raise

        return wrapper

    return decorator
