"""
sessionwatch CLI - Session inspection commands.

One-shot commands against the session service: list, show, status, kill.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from sessionwatch.cli.errors import print_api_error
from sessionwatch.core.config import SessionwatchConfig, load_config
from sessionwatch.core.session.client import SessionClient
from sessionwatch.core.session.controller import TrackingSessionController
from sessionwatch.core.session.lifecycle import SessionLifecycle
from sessionwatch.core.session.models import (
    ApiResult,
    LifecycleState,
    Session,
)

console = Console()

T = TypeVar("T")

STATE_STYLES = {
    LifecycleState.UNKNOWN: "dim",
    LifecycleState.PENDING: "yellow",
    LifecycleState.RUNNING: "green",
    LifecycleState.KILLED: "red",
    LifecycleState.REPLACED: "magenta",
}


def get_config(ctx: typer.Context) -> SessionwatchConfig:
    """Config stored on the context by the main callback (or loaded now)."""
    if ctx.obj and ctx.obj.get("config") is not None:
        return ctx.obj["config"]
    return load_config()


def make_client(config: SessionwatchConfig) -> SessionClient:
    """Build a client for the configured session service."""
    return SessionClient(
        config.server.base_url,
        api_prefix=config.server.api_prefix,
        timeout=config.server.timeout,
    )


def call(
    config: SessionwatchConfig,
    operation: Callable[[SessionClient], Awaitable[ApiResult[T]]],
) -> T:
    """
    Run one client operation to completion, exiting on failure.

    Raises:
        typer.Exit: With the exit code matching the failure
    """

    async def _run() -> ApiResult[T]:
        async with make_client(config) as client:
            return await operation(client)

    result = asyncio.run(_run())
    if result.error is not None:
        raise typer.Exit(print_api_error(result.error, config.server.base_url))
    return result.value  # type: ignore[return-value]


def format_age(seconds: int) -> str:
    """Render an age in seconds as e.g. '1h 02m', '3m 05s', '42s'."""
    if seconds < 0:
        return "∞"
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes:02d}m"
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs}s"


def format_state(state: LifecycleState) -> str:
    style = STATE_STYLES[state]
    return f"[{style}]{state.value}[/{style}]"


def lifecycle_of(session: Session) -> SessionLifecycle:
    lifecycle = SessionLifecycle(session.uuid)
    lifecycle.seed(session.status_payload())
    return lifecycle


def list_sessions(
    ctx: typer.Context,
    all_sessions: bool = typer.Option(
        False,
        "--all",
        "-a",
        help="Include sessions that have been replaced by newer ones",
    ),
) -> None:
    """
    List sessions known to the session service.

    Examples:
        sessionwatch list          # Current sessions
        sessionwatch list --all    # Include replaced sessions
    """
    config = get_config(ctx)
    sessions: list[Session] = call(config, lambda client: client.fetch_all_sessions())

    if not all_sessions:
        sessions = [s for s in sessions if not s.replaced_by]

    if not sessions:
        console.print("[dim]No sessions[/dim]")
        return

    table = Table(title=f"{len(sessions)} sessions")
    table.add_column("UUID", style="cyan", no_wrap=True)
    table.add_column("Application")
    table.add_column("Checkout")
    table.add_column("State")
    table.add_column("Age", justify="right")

    for session in sessions:
        table.add_row(
            session.uuid,
            session.application_name,
            session.checkout,
            format_state(lifecycle_of(session).state),
            format_age(session.age),
        )

    console.print(table)


def show(
    ctx: typer.Context,
    uuid: str = typer.Argument(..., help="Session uuid"),
) -> None:
    """
    Show details of a session.

    Examples:
        sessionwatch show 0b1c6a2e-...
    """
    config = get_config(ctx)
    session: Session = call(config, lambda client: client.fetch_session(uuid))
    lifecycle = lifecycle_of(session)

    table = Table(show_header=False, box=None)
    table.add_column("Property", style="cyan")
    table.add_column("Value")
    table.add_row("Application", session.application_name)
    table.add_row("Checkout", session.checkout)
    table.add_row("Commit", session.commit_id)
    table.add_row("Target", session.target)
    table.add_row("Status", session.status.value)
    table.add_row("State", format_state(lifecycle.state))
    table.add_row("Age", format_age(session.age))
    if lifecycle.kill_reason.value:
        table.add_row("Kill reason", lifecycle.kill_reason.value)
    if session.replaced_by:
        table.add_row("Replaced by", f"[magenta]{session.replaced_by}[/magenta]")
    if session.replaces_session:
        table.add_row("Replaces", session.replaces_session)
    table.add_row("Log lines", str(len(session.logs)))

    console.print(Panel(table, title=f"Session {session.short_uuid}", expand=False))


def status(
    ctx: typer.Context,
    uuid: str = typer.Argument(..., help="Session uuid"),
) -> None:
    """
    Show the lifecycle state of a session.

    Examples:
        sessionwatch status 0b1c6a2e-...
    """
    config = get_config(ctx)
    payload = call(config, lambda client: client.fetch_status(uuid))

    lifecycle = SessionLifecycle(uuid)
    lifecycle.apply(payload)

    line = f"{uuid}: {format_state(lifecycle.state)} ({payload.status.value}"
    if lifecycle.kill_reason.value:
        line += f", {lifecycle.kill_reason.value}"
    line += f", age {format_age(payload.age)})"
    console.print(line)

    if lifecycle.replaced_by:
        console.print(f"Replaced by [magenta]{lifecycle.replaced_by}[/magenta]")


def kill(
    ctx: typer.Context,
    uuid: str = typer.Argument(..., help="Session uuid"),
) -> None:
    """
    Kill a session. Killing an already dead session succeeds.

    Examples:
        sessionwatch kill 0b1c6a2e-...
    """
    config = get_config(ctx)

    call(config, lambda client: TrackingSessionController(client).kill(uuid))
    console.print(f"[green]Killed[/green] {uuid}")


__all__ = [
    "call",
    "format_age",
    "format_state",
    "get_config",
    "kill",
    "list_sessions",
    "make_client",
    "show",
    "status",
]
