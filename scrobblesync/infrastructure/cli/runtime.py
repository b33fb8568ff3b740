"""Wiring of connectors, stores and the orchestrator for CLI commands."""

import asyncio
from collections.abc import AsyncGenerator, Coroutine
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from attrs import define

from scrobblesync.application import SyncOrchestrator
from scrobblesync.config import get_logger
from scrobblesync.infrastructure.connectors import (
    ConsoleAuthFlow,
    LastFMConnector,
    SpotifyHistoryProvider,
)
from scrobblesync.infrastructure.persistence import (
    FileCredentialStore,
    SQLAppStateStore,
    SQLDedupStore,
    SQLScrobbleLogStore,
)
from scrobblesync.infrastructure.persistence.database import (
    create_db_engine,
    create_session_factory,
    init_db,
)

T = TypeVar("T")

logger = get_logger(__name__)


@define(slots=True)
class Services:
    """Everything a command needs, built once per invocation."""

    lastfm: LastFMConnector
    spotify: SpotifyHistoryProvider
    orchestrator: SyncOrchestrator


@asynccontextmanager
async def open_services(console: Any = None) -> AsyncGenerator[Services]:
    """Build the services, load persisted state, and clean up afterwards."""
    engine = create_db_engine()
    try:
        await init_db(engine)
        session_factory = create_session_factory(engine)

        auth_flow = ConsoleAuthFlow(console=console) if console else ConsoleAuthFlow()
        lastfm = LastFMConnector(
            credential_store=FileCredentialStore(), auth_flow=auth_flow
        )
        spotify = SpotifyHistoryProvider()
        orchestrator = SyncOrchestrator(
            provider=spotify,
            client=lastfm,
            dedup_store=SQLDedupStore(session_factory),
            log_store=SQLScrobbleLogStore(session_factory),
            app_state_store=SQLAppStateStore(session_factory),
        )
        await orchestrator.load()

        try:
            yield Services(lastfm=lastfm, spotify=spotify, orchestrator=orchestrator)
        finally:
            await lastfm.close()
    finally:
        await engine.dispose()


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine from a synchronous Typer command."""
    return asyncio.run(coro)
