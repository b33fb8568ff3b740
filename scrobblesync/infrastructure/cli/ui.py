"""UI helpers for CLI interaction.

Reusable Rich rendering for the CLI, kept apart from the commands so the
presentation stays separate from the sync logic.
"""

from collections.abc import Callable, Sequence
from datetime import datetime
import functools

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
import typer

from scrobblesync.application import SyncState
from scrobblesync.config import get_logger
from scrobblesync.domain.entities import (
    Failed,
    Pending,
    PlayRecord,
    Success,
    SyncReport,
)

# Initialize console and logger
console = Console()
logger = get_logger(__name__)


SKIP_MESSAGES = {
    "already_syncing": "A sync is already running",
    "fetch_failed": "Could not fetch recent plays",
    "nothing_new": "Nothing new to scrobble",
    "not_authenticated": "Not connected to Last.fm; scrobbles kept as pending",
    "submission_failed": "Submission to Last.fm failed",
}


def command_error_handler[**P, R](func: Callable[P, R]) -> Callable[P, R]:
    """Decorator to standardize error handling for CLI commands.

    Logs the exception with Loguru, prints a short red message and exits
    with code 1.
    """

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        operation = func.__name__.replace("_", " ")

        with logger.contextualize(operation=operation):
            try:
                logger.debug(f"Executing {operation}")
                return func(*args, **kwargs)

            except typer.Exit:
                raise

            except typer.Abort:
                logger.info(f"Operation {operation} aborted by user")
                raise

            except Exception as e:
                logger.exception(f"Error during {operation}")
                console.print(f"\n[bold red]✗ Error during {operation}:[/bold red] {e}")
                raise typer.Exit(code=1) from e

    return wrapper


def format_status(record: PlayRecord) -> str:
    match record.status:
        case Success():
            return "[green]✓ Scrobbled[/green]"
        case Pending():
            return "[yellow]… Pending[/yellow]"
        case Failed(reason=reason):
            return f"[red]✗ {reason}[/red]"


def format_time(value: datetime) -> str:
    return value.astimezone().strftime("%Y-%m-%d %H:%M")


def render_history(records: Sequence[PlayRecord], title: str = "Scrobbles") -> Table:
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Played", style="dim", no_wrap=True)
    table.add_column("Track", style="cyan")
    table.add_column("Artist", style="green")
    table.add_column("Album")
    table.add_column("Status")
    table.add_column("ID", style="dim", no_wrap=True)

    for record in records:
        played = format_time(record.timestamp)
        if record.is_estimated:
            played += " ~"
        table.add_row(
            played,
            record.track_name,
            record.artist_name,
            record.album_name,
            format_status(record),
            record.id[:8],
        )
    return table


def render_status(
    state: SyncState, lastfm_status: str, spotify_status: str, onboarded: bool
) -> Panel:
    lines = [
        f"[bold]Last.fm:[/bold] {lastfm_status}",
        f"[bold]Spotify:[/bold] {spotify_status}",
        f"[bold]Onboarded:[/bold] {'yes' if onboarded else 'no'}",
        f"[dim]{state.last_sync_description()}[/dim]",
        "",
        f"Today: [bold]{state.today_count()}[/bold]   "
        f"This week: [bold]{state.week_count()}[/bold]   "
        f"Pending: [yellow]{state.pending_count}[/yellow]   "
        f"Failed: [red]{state.failed_count}[/red]",
    ]
    return Panel("\n".join(lines), title="[bold]ScrobbleSync[/bold]", expand=False)


def print_report(report: SyncReport) -> None:
    if report.skipped_reason == "already_syncing":
        console.print(f"[yellow]{SKIP_MESSAGES['already_syncing']}[/yellow]")
        return
    if report.skipped_reason == "fetch_failed":
        console.print(f"[red]✗ {SKIP_MESSAGES['fetch_failed']}:[/red] {report.error}")
        return

    console.print(
        f"Fetched [bold]{report.fetched}[/bold], new [bold]{report.new}[/bold], "
        f"submitted [bold]{report.submitted}[/bold]: "
        f"[green]{report.accepted} accepted[/green], "
        f"[yellow]{report.ignored} ignored[/yellow], "
        f"[red]{report.failed} failed[/red]"
    )
    if report.skipped_reason and report.skipped_reason in SKIP_MESSAGES:
        style = "red" if report.error else "dim"
        message = SKIP_MESSAGES[report.skipped_reason]
        if report.error:
            message = f"{message}: {report.error}"
        console.print(f"[{style}]{message}[/{style}]")
    elif report.error:
        console.print(f"[red]{report.error}[/red]")
