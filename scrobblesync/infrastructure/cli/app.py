"""ScrobbleSync CLI - Main application entry point and app structure."""

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from scrobblesync import __version__
from scrobblesync.application import SyncCompleted, SyncEvent, SyncFailed
from scrobblesync.config import (
    get_logger,
    log_startup_info,
    settings,
    setup_loguru_logger,
)
from scrobblesync.domain.entities import ScrobbleFilter, SyncReport
from scrobblesync.infrastructure.cli.runtime import open_services, run_async
from scrobblesync.infrastructure.cli.ui import (
    command_error_handler,
    console,
    print_report,
    render_history,
    render_status,
)

VERSION = __version__

logger = get_logger(__name__)

app = typer.Typer(
    help=f"🎵 ScrobbleSync v{VERSION} - Scrobble your recently played tracks to Last.fm",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
    pretty_exceptions_enable=True,
    pretty_exceptions_short=True,
    pretty_exceptions_show_locals=False,
)

connect_app = typer.Typer(help="Connect a service", no_args_is_help=True)
disconnect_app = typer.Typer(help="Disconnect a service", no_args_is_help=True)
onboarding_app = typer.Typer(help="Manage onboarding state", no_args_is_help=True)

app.add_typer(connect_app, name="connect", rich_help_panel="🔌 Connections")
app.add_typer(disconnect_app, name="disconnect", rich_help_panel="🔌 Connections")
app.add_typer(onboarding_app, name="onboarding", rich_help_panel="⚙️ System")


# =============================================================================
# CONNECTIONS
# =============================================================================


@connect_app.command(name="lastfm")
@command_error_handler
def connect_lastfm() -> None:
    """Authorize ScrobbleSync to scrobble to your Last.fm account."""

    async def _connect() -> str | None:
        async with open_services(console) as services:
            if services.lastfm.is_authenticated:
                return services.lastfm.username
            session = await services.lastfm.authenticate()
            return session.username if session else None

    username = run_async(_connect())
    if username:
        console.print(f"[green]✓ Connected to Last.fm as @{username}[/green]")
    else:
        console.print("[yellow]Authentication already in progress[/yellow]")


@connect_app.command(name="spotify")
@command_error_handler
def connect_spotify() -> None:
    """Authorize read access to your Spotify listening history."""

    async def _connect() -> bool:
        async with open_services(console) as services:
            return await services.spotify.request_authorization()

    if run_async(_connect()):
        console.print("[green]✓ Connected to Spotify[/green]")
    else:
        console.print("[red]✗ Spotify authorization was not granted[/red]")
        raise typer.Exit(code=1)


@disconnect_app.command(name="lastfm")
@command_error_handler
def disconnect_lastfm() -> None:
    """Sign out of Last.fm and delete the stored session."""

    async def _disconnect() -> None:
        async with open_services(console) as services:
            services.lastfm.sign_out()

    run_async(_disconnect())
    console.print("[green]✓ Disconnected from Last.fm[/green]")


# =============================================================================
# SYNC
# =============================================================================


@app.command(name="status", rich_help_panel="🎵 Scrobbling")
@command_error_handler
def status() -> None:
    """Show connection status and scrobble counts."""

    async def _status() -> None:
        async with open_services(console) as services:
            onboarded = await services.orchestrator.is_onboarded()
            console.print(
                render_status(
                    services.orchestrator.state,
                    services.lastfm.status_description,
                    services.spotify.status_description,
                    onboarded,
                )
            )

    run_async(_status())


@app.command(name="sync", rich_help_panel="🎵 Scrobbling")
@command_error_handler
def sync() -> None:
    """Fetch recent plays and scrobble the new ones."""

    async def _sync() -> SyncReport:
        async with open_services(console) as services:
            with console.status("[bold blue]Syncing..."):
                return await services.orchestrator.sync_now()

    report = run_async(_sync())
    print_report(report)
    if not report.succeeded:
        raise typer.Exit(code=1)


@app.command(name="watch", rich_help_panel="🎵 Scrobbling")
@command_error_handler
def watch(
    interval: Annotated[
        int,
        typer.Option("--interval", "-i", help="Seconds between syncs", min=10),
    ] = settings.sync.watch_interval,
    cycles: Annotated[
        int | None,
        typer.Option("--cycles", help="Stop after this many syncs"),
    ] = None,
) -> None:
    """Keep syncing in the background until interrupted."""

    def _on_event(event: SyncEvent) -> None:
        match event:
            case SyncCompleted(report=report):
                print_report(report)
            case SyncFailed(error=error):
                console.print(f"[red]✗ Sync failed:[/red] {error}")

    async def _watch() -> None:
        async with open_services(console) as services:
            services.orchestrator.state.subscribe(_on_event)
            done = 0
            while cycles is None or done < cycles:
                try:
                    await services.orchestrator.sync_now()
                except Exception as e:
                    # SyncFailed has already been published; keep watching
                    logger.opt(exception=e).error("Sync cycle crashed")
                done += 1
                if cycles is not None and done >= cycles:
                    break
                await asyncio.sleep(interval)

    console.print(f"[dim]Syncing every {interval}s, press Ctrl+C to stop[/dim]")
    try:
        run_async(_watch())
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped[/dim]")


@app.command(name="history", rich_help_panel="🎵 Scrobbling")
@command_error_handler
def history(
    scrobble_filter: Annotated[
        ScrobbleFilter,
        typer.Option("--filter", "-f", help="Which scrobbles to show"),
    ] = ScrobbleFilter.ALL,
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", help="Maximum rows to show", min=1),
    ] = settings.sync.recent_count,
) -> None:
    """Show the local scrobble log."""

    async def _history() -> None:
        async with open_services(console) as services:
            records = services.orchestrator.state.filtered(scrobble_filter)
            if not records:
                console.print("[dim]No scrobbles yet[/dim]")
                return
            console.print(
                render_history(
                    records[:limit],
                    title=f"Scrobbles ({len(records)} {scrobble_filter.value})",
                )
            )

    run_async(_history())


@app.command(name="retry", rich_help_panel="🎵 Scrobbling")
@command_error_handler
def retry(
    record_id: Annotated[
        str | None,
        typer.Argument(help="ID (or unique ID prefix) of the scrobble to retry"),
    ] = None,
    retry_all: Annotated[
        bool,
        typer.Option("--all", "-a", help="Retry every failed scrobble"),
    ] = False,
) -> None:
    """Retry a failed scrobble, or all of them."""
    if not retry_all and not record_id:
        console.print("[red]Give a scrobble ID or use --all[/red]")
        raise typer.Exit(code=1)

    async def _retry() -> SyncReport:
        async with open_services(console) as services:
            orchestrator = services.orchestrator
            if retry_all:
                return await orchestrator.retry_all_failed()

            matches = [
                r for r in orchestrator.state.records if r.id.startswith(record_id)
            ]
            if len(matches) != 1:
                return SyncReport(
                    error=f"No unique scrobble matches {record_id!r}"
                    f" ({len(matches)} found)"
                )
            return await orchestrator.retry_single(matches[0].id)

    report = run_async(_retry())
    print_report(report)
    if report.error:
        raise typer.Exit(code=1)


# =============================================================================
# ONBOARDING
# =============================================================================


@onboarding_app.command(name="complete")
@command_error_handler
def onboarding_complete() -> None:
    """Mark setup as finished and run the first sync."""

    async def _complete() -> SyncReport:
        async with open_services(console) as services:
            return await services.orchestrator.complete_onboarding()

    print_report(run_async(_complete()))
    console.print("[green]✓ Onboarding complete[/green]")


@onboarding_app.command(name="reset")
@command_error_handler
def onboarding_reset(
    yes: Annotated[
        bool, typer.Option("--yes", "-y", help="Skip the confirmation prompt")
    ] = False,
) -> None:
    """Disconnect Last.fm and clear the local log and last sync time."""
    if not yes:
        typer.confirm("This clears your local scrobble log. Continue?", abort=True)

    async def _reset() -> None:
        async with open_services(console) as services:
            services.lastfm.sign_out()
            await services.orchestrator.reset_onboarding()

    run_async(_reset())
    console.print("[green]✓ Onboarding reset[/green]")


# =============================================================================
# SYSTEM
# =============================================================================


@app.command(name="version", rich_help_panel="⚙️ System")
def version_command() -> None:
    """Show version information."""
    console.print(
        f"[bold bright_blue]🎵 ScrobbleSync[/bold bright_blue] [dim]v{VERSION}[/dim]"
    )


@app.callback()
def init_cli(
    ctx: typer.Context,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose output"),
    ] = False,
) -> None:
    """Initialize ScrobbleSync CLI."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    setup_loguru_logger(verbose)
    log_startup_info()

    Path(settings.data_dir).mkdir(parents=True, exist_ok=True)


def main() -> int:
    """Application entry point."""
    try:
        return app() or 0
    except Exception:
        logger.exception("Unhandled exception")
        return 1
