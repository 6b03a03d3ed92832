"""
Standardized error handling and exit codes for the sessionwatch CLI.

Consistent error messages with actionable guidance, and exit codes shared
by every command.
"""

from enum import IntEnum

from rich.console import Console

from sessionwatch.core.session.errors import SessionApiError

console = Console(stderr=True)


class ExitCode(IntEnum):
    """Standard exit codes for sessionwatch commands."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """Server or network failure."""

    USER_ERROR = 2
    """Bad input or configuration (actionable by user)."""

    SIGINT = 130
    """Terminated by SIGINT (Ctrl+C) - Unix standard."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it

    Example:
        >>> print_error(
        ...     "Session not found",
        ...     reason="The server does not know session 0b1c",
        ...     solution="sessionwatch list",
        ... )
    """
    console.print(f"[red]Error:[/red] {problem}")

    if reason:
        console.print(f"[dim]{reason}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}")


def print_api_error(error: SessionApiError, base_url: str) -> ExitCode:
    """
    Print a session service failure and pick the exit code for it.

    Returns:
        USER_ERROR for unknown sessions, GENERAL_ERROR otherwise
    """
    if error.error_type == "not_found":
        print_error(
            f"Session {error.uuid} not found",
            reason=f"{base_url} does not know this session (it may have been recycled)",
            solution="sessionwatch list",
        )
        return ExitCode.USER_ERROR

    if error.error_type == "network":
        print_error(
            "Could not reach the session service",
            reason=str(error),
            solution="sessionwatch --url http://host:port ...  # or set SESSIONWATCH_URL",
        )
        return ExitCode.GENERAL_ERROR

    print_error(str(error))
    return ExitCode.GENERAL_ERROR
