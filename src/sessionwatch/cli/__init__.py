"""
sessionwatch CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import logging
import sys

import typer
from pydantic import ValidationError

from sessionwatch import __version__
from sessionwatch.cli import session, watch
from sessionwatch.cli.errors import ExitCode, print_error
from sessionwatch.core.config import load_config, load_env_files

# Help panel names for command grouping
PANEL_INSPECT = "Inspect Sessions"
PANEL_FOLLOW = "Follow a Session"
PANEL_CONTROL = "Control Sessions"

# Create the main Typer app
app = typer.Typer(
    name="sessionwatch",
    help="Track preview-environment sessions and follow their logs",
    no_args_is_help=True,
    add_completion=True,
    context_settings={"help_option_names": ["--help", "-h"]},
)


def setup_logging(debug: bool = False) -> None:
    """
    Configure logging for all commands.

    Args:
        debug: If True, enable DEBUG level logging
    """
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"sessionwatch {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
    url: str | None = typer.Option(
        None,
        "--url",
        help="Session service URL (overrides config and SESSIONWATCH_URL)",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """
    sessionwatch - follow ephemeral preview sessions.

    Lists, inspects and kills sessions on a session service, and follows a
    session's status and logs with incremental polling.

    Quick Start:
        sessionwatch list                 # What is running?
        sessionwatch watch <uuid>         # Live status + logs
        sessionwatch logs <uuid> -f       # Stream logs only
    """
    setup_logging(debug)
    load_env_files()

    try:
        config = load_config()
        if url:
            config = config.model_copy(
                update={"server": config.server.model_copy(update={"base_url": url.rstrip("/")})}
            )
    except ValidationError as e:
        print_error(
            "Invalid sessionwatch configuration",
            reason=str(e),
            solution="check .sessionwatch.json and ~/.config/sessionwatch/config.json",
        )
        raise typer.Exit(ExitCode.USER_ERROR)

    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["config"] = config


# =============================================================================
# Inspect Sessions
# =============================================================================

app.command(name="list", rich_help_panel=PANEL_INSPECT)(session.list_sessions)
app.command(name="show", rich_help_panel=PANEL_INSPECT)(session.show)
app.command(name="status", rich_help_panel=PANEL_INSPECT)(session.status)

# =============================================================================
# Follow a Session
# =============================================================================

app.command(name="logs", rich_help_panel=PANEL_FOLLOW)(watch.logs)
app.command(name="watch", rich_help_panel=PANEL_FOLLOW)(watch.watch)

# =============================================================================
# Control Sessions
# =============================================================================

app.command(name="kill", rich_help_panel=PANEL_CONTROL)(session.kill)


def cli_main() -> None:
    """Console script entry point."""
    app()


__all__ = ["app", "cli_main", "main", "setup_logging"]
