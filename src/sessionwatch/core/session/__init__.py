"""
Session tracking and incremental log synchronization.

Modules:
    client: SessionClient, typed async wrappers around the REST endpoints.
    cursor: LogCursorSynchronizer, cursor-based log dedup and merge.
    lifecycle: SessionLifecycle, status interpretation state machine.
    controller: TrackingSessionController, track/poll/untrack orchestration.
    replacement: resolve_replacement_chain, multi-hop replacedBy walking.
"""

from sessionwatch.core.session.client import SessionClient
from sessionwatch.core.session.controller import TrackingSessionController
from sessionwatch.core.session.cursor import LogCursorSynchronizer, SyncResult
from sessionwatch.core.session.errors import (
    AlreadyTerminalError,
    CursorInvalidatedError,
    InvalidResponseError,
    NetworkError,
    NotFoundError,
    SessionApiError,
    SessionwatchError,
)
from sessionwatch.core.session.lifecycle import SessionLifecycle
from sessionwatch.core.session.models import (
    NO_CURSOR,
    ApiResult,
    KillReason,
    LifecycleState,
    LogEntry,
    LogsAndStatus,
    ServerStatus,
    Session,
    SessionView,
    StatusPayload,
)
from sessionwatch.core.session.replacement import resolve_replacement_chain

__all__ = [
    # Client
    "SessionClient",
    "ApiResult",
    # Sync + lifecycle
    "LogCursorSynchronizer",
    "SyncResult",
    "SessionLifecycle",
    "TrackingSessionController",
    "resolve_replacement_chain",
    # Models
    "NO_CURSOR",
    "KillReason",
    "LifecycleState",
    "LogEntry",
    "LogsAndStatus",
    "ServerStatus",
    "Session",
    "SessionView",
    "StatusPayload",
    # Errors
    "SessionwatchError",
    "SessionApiError",
    "NotFoundError",
    "NetworkError",
    "CursorInvalidatedError",
    "AlreadyTerminalError",
    "InvalidResponseError",
]
