"""
sessionwatch CLI - Follow commands.

Long-running commands built on the tracking controller: follow a session's
logs, or keep a live status panel until the session dies.
"""

import asyncio
from collections.abc import Callable

import typer
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from sessionwatch.cli.errors import ExitCode, print_api_error
from sessionwatch.cli.session import call, format_age, format_state, get_config, make_client
from sessionwatch.core.config import SessionwatchConfig
from sessionwatch.core.session.client import SessionClient
from sessionwatch.core.session.controller import TrackingSessionController
from sessionwatch.core.session.errors import NotFoundError
from sessionwatch.core.session.models import LogEntry, LogsAndStatus, SessionView

console = Console()

LOG_STYLES = {
    "stderr": "red",
    "error": "red",
    "critical": "bold red",
    "warn": "yellow",
    "stdin": "cyan",
    "debug": "dim",
    "trace": "dim",
}


def render_log(entry: LogEntry) -> Text:
    """One log line, timestamped and colored by type."""
    stamp = entry.when.strftime("%H:%M:%S") if entry.when else "--:--:--"
    return Text.assemble(
        (stamp, "dim"),
        " ",
        (entry.message, LOG_STYLES.get(entry.type, "")),
    )


def render_view(view: SessionView, tail: int = 10) -> Panel:
    """Status panel with the last ``tail`` log lines."""
    table = Table(show_header=False, box=None)
    table.add_column("Property", style="cyan")
    table.add_column("Value")
    table.add_row("State", format_state(view.state))
    if view.server_status is not None:
        table.add_row("Status", view.server_status.value)
    table.add_row("Age", format_age(view.age))
    if view.kill_reason.value:
        table.add_row("Kill reason", view.kill_reason.value)
    if view.replaced_by:
        table.add_row("Replaced by", f"[magenta]{view.replaced_by}[/magenta]")
    if view.stalled:
        table.add_row("Connection", "[yellow]stalled, retrying...[/yellow]")

    lines = [render_log(entry) for entry in view.logs[-tail:]] if tail else []
    return Panel(Group(table, *lines), title=f"Session {view.uuid}", expand=True)


def _controller(
    config: SessionwatchConfig, client: SessionClient, follow_logs: bool
) -> TrackingSessionController:
    return TrackingSessionController(
        client,
        poll_interval=config.polling.interval_seconds,
        stalled_threshold=config.polling.stalled_threshold,
        follow_logs=follow_logs,
    )


def log_printer() -> Callable[[SessionView], None]:
    """
    Subscriber printing every log entry of a view exactly once.

    Entries are remembered by uuid, so a buffer rebuilt after a cursor reset
    still has its unseen lines printed.
    """
    printed: set[str] = set()

    def on_view(view: SessionView) -> None:
        for entry in view.logs:
            if entry.uuid in printed:
                continue
            printed.add(entry.uuid)
            console.print(render_log(entry))

    return on_view


async def _follow(config: SessionwatchConfig, uuid: str) -> SessionView:
    async with make_client(config) as client:
        controller = _controller(config, client, follow_logs=True)
        controller.subscribe(log_printer())
        async with controller.tracking(uuid):
            await controller.join()
            return controller.view


async def _watch(config: SessionwatchConfig, uuid: str, tail: int) -> SessionView:
    async with make_client(config) as client:
        follow_logs = tail > 0 and config.polling.follow_logs
        controller = _controller(config, client, follow_logs=follow_logs)
        with Live(render_view(controller.view, tail), console=console, screen=False) as live:
            controller.subscribe(lambda view: live.update(render_view(view, tail)))
            async with controller.tracking(uuid):
                await controller.join()
                return controller.view


def _finish(view: SessionView, config: SessionwatchConfig) -> None:
    """Report how a followed session ended and exit accordingly."""
    if view.error == NotFoundError.error_type:
        raise typer.Exit(
            print_api_error(NotFoundError(view.uuid, "Session not found"), config.server.base_url)
        )

    console.print()
    if view.replaced_by:
        console.print(
            f"[magenta]Session was replaced by {view.replaced_by}[/magenta]\n"
            f"Follow it with:\n  sessionwatch watch {view.replaced_by}"
        )
    elif view.is_terminal:
        reason = view.kill_reason.value or "unknown reason"
        console.print(f"[red]Session was killed ({reason})[/red]")


def logs(
    ctx: typer.Context,
    uuid: str = typer.Argument(..., help="Session uuid"),
    follow: bool = typer.Option(
        False,
        "--follow",
        "-f",
        help="Keep polling and print new lines until the session dies",
    ),
) -> None:
    """
    Print the logs of a session.

    Examples:
        sessionwatch logs 0b1c6a2e-...       # Print current logs
        sessionwatch logs 0b1c6a2e-... -f    # Follow logs in real-time
    """
    config = get_config(ctx)

    if not follow:
        payload: LogsAndStatus = call(config, lambda client: client.fetch_logs_since(uuid))
        for entry in payload.logs:
            console.print(render_log(entry))
        return

    console.print(f"[bold]Following logs of {uuid}[/bold]")
    console.print("[dim]Press Ctrl+C to stop[/dim]\n")
    try:
        view = asyncio.run(_follow(config, uuid))
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped following logs[/yellow]")
        raise typer.Exit(ExitCode.SUCCESS)

    _finish(view, config)


def watch(
    ctx: typer.Context,
    uuid: str = typer.Argument(..., help="Session uuid"),
    tail: int = typer.Option(
        10,
        "--tail",
        "-n",
        min=0,
        help="Log lines to show under the status (0 polls status only)",
    ),
) -> None:
    """
    Show a live status panel for a session until it dies.

    Examples:
        sessionwatch watch 0b1c6a2e-...
        sessionwatch watch 0b1c6a2e-... --tail 0
    """
    config = get_config(ctx)

    try:
        view = asyncio.run(_watch(config, uuid, tail))
    except KeyboardInterrupt:
        console.print("\n[yellow]Watch stopped by user[/yellow]")
        raise typer.Exit(ExitCode.SUCCESS)

    _finish(view, config)
