"""
Typed failures for the session service client.

Every failure the endpoint client can observe is classified into one of the
exceptions below. The client never lets them escape: they are carried inside
an ``ApiResult`` so callers branch on ``result.ok`` / ``result.error_type``.

Exception Hierarchy:
    SessionwatchError (base)
    └── SessionApiError (errors tied to a session uuid)
        ├── NotFoundError (uuid unknown to the server)
        ├── NetworkError (transport failures, 5xx)
        ├── CursorInvalidatedError (log cursor no longer recognized)
        ├── AlreadyTerminalError (kill on a dead session)
        └── InvalidResponseError (payload failed validation)

Example:
    >>> from sessionwatch.core.session.errors import NotFoundError
    >>> err = NotFoundError("abc-123", "Session not found", status_code=404)
    >>> str(err)
    '[abc-123] Session not found'
    >>> err.retryable
    False
"""


class SessionwatchError(Exception):
    """
    Base exception for all sessionwatch errors.

    Attributes:
        message: Human-readable error message
        context: Optional dictionary of additional context
    """

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        return self.message


class SessionApiError(SessionwatchError):
    """
    Base exception for session service failures.

    Attributes:
        uuid: Session uuid the request was about (None for untrack/list)
        error_type: Stable short identifier used in results and views
        retryable: Whether the poll loop should simply try again next tick
    """

    error_type = "unknown"
    retryable = False

    def __init__(self, uuid: str | None, message: str, **context: object) -> None:
        super().__init__(message, uuid=uuid, **context)
        self.uuid = uuid

    def __str__(self) -> str:
        if self.uuid:
            return f"[{self.uuid}] {self.message}"
        return self.message


class NotFoundError(SessionApiError):
    """The session uuid is unknown to the server. Polling stops."""

    error_type = "not_found"


class NetworkError(SessionApiError):
    """
    Transient transport or server failure.

    Raised for connection errors, timeouts and unexpected HTTP errors. The
    httpx exception is preserved via ``__cause__``.
    """

    error_type = "network"
    retryable = True


class CursorInvalidatedError(SessionApiError):
    """
    The server no longer recognizes the log cursor.

    Happens when a session was reset externally. Recovery is local: the
    synchronizer drops its buffer and restarts from the sentinel cursor.
    """

    error_type = "cursor_invalidated"
    retryable = True

    def __init__(self, uuid: str | None, cursor: str, **context: object) -> None:
        message = f"Log cursor {cursor!r} is no longer valid"
        super().__init__(uuid, message, cursor=cursor, **context)
        self.cursor = cursor


class AlreadyTerminalError(SessionApiError):
    """Kill was requested for a session that is already dead."""

    error_type = "already_terminal"


class InvalidResponseError(SessionApiError):
    """The server answered with a payload that could not be parsed."""

    error_type = "invalid_response"
    retryable = True


__all__ = [
    "SessionwatchError",
    "SessionApiError",
    "NotFoundError",
    "NetworkError",
    "CursorInvalidatedError",
    "AlreadyTerminalError",
    "InvalidResponseError",
]
