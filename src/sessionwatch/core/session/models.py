"""
Session data models for sessionwatch.

Defines Pydantic models for the session service wire format (sessions,
log entries, status and log payloads) plus the client-side projection
that the tracking controller publishes to subscribers.

Wire fields use the server's camelCase names as aliases; models accept
either the alias or the Python field name.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sessionwatch.core.session.errors import SessionApiError

# Sentinel cursor meaning "from the beginning of the log"
NO_CURSOR = "<none>"

T = TypeVar("T")


class ServerStatus(str, Enum):
    """Session status as reported by the session service.

    - STARTING: Build or startup in progress
    - STARTED: Session is serving traffic
    - DEGRADED: Running but failing health checks
    - STOPPING: Shutdown requested, still alive
    - STOPPED / START_FAILED / STOP_FAILED: Session is dead
    """

    STARTING = "starting"
    STARTED = "started"
    START_FAILED = "start_failed"
    STOP_FAILED = "stop_failed"
    STOPPING = "stopping"
    STOPPED = "stopped"
    DEGRADED = "degraded"

    @property
    def is_alive(self) -> bool:
        """Whether the server still considers the session alive."""
        return self not in (
            ServerStatus.START_FAILED,
            ServerStatus.STOP_FAILED,
            ServerStatus.STOPPED,
        )

    @property
    def is_terminal(self) -> bool:
        """Whether the session has been terminated."""
        return not self.is_alive


class KillReason(str, Enum):
    """Why a session was terminated. NONE while the session is alive."""

    NONE = ""
    STOPPED = "stopped"
    BUILD_FAILED = "build_failed"
    HEALTHCHECK_FAILED = "healthcheck_failed"
    REPLACED = "replaced"

    @classmethod
    def parse(cls, value: Any) -> KillReason:
        """Parse a wire value, mapping null and "none" to the sentinel."""
        if value is None or isinstance(value, KillReason):
            return value or cls.NONE
        text = str(value).strip().lower()
        if text in ("", "none"):
            return cls.NONE
        return cls(text)


class LifecycleState(str, Enum):
    """Client-side lifecycle state of a tracked session."""

    UNKNOWN = "unknown"
    PENDING = "pending"
    RUNNING = "running"
    KILLED = "killed"
    REPLACED = "replaced"

    @property
    def is_terminal(self) -> bool:
        """Killed and replaced sessions never transition again."""
        return self in (LifecycleState.KILLED, LifecycleState.REPLACED)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class LogEntry(BaseModel):
    """
    A single session log line.

    Only ``uuid`` matters to the synchronizer (it doubles as the pagination
    cursor). Everything else is passed through verbatim, including fields
    this model does not declare.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    uuid: str = Field(min_length=1, description="Server-issued id, usable as a cursor")
    when: datetime | None = Field(default=None, description="When the line was logged")
    message: str = Field(default="", description="Log line text")
    type: str = Field(default="stdout", description="Log type (stdout, stderr, info, ...)")


class StatusPayload(BaseModel):
    """Response of the cheap status-only endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    status: ServerStatus
    age: int = Field(default=0, description="Seconds of remaining/elapsed age, server-defined")
    kill_reason: KillReason = Field(default=KillReason.NONE, alias="killReason")
    replaced_by: str | None = Field(default=None, alias="replacedBy")

    @field_validator("kill_reason", mode="before")
    @classmethod
    def _parse_kill_reason(cls, value: Any) -> KillReason:
        return KillReason.parse(value)

    @field_validator("replaced_by", mode="before")
    @classmethod
    def _normalize_replaced_by(cls, value: Any) -> Any:
        return _blank_to_none(value)


class LogsAndStatus(BaseModel):
    """Response of the logs-since-cursor endpoint."""

    logs: list[LogEntry] = Field(default_factory=list)
    status: ServerStatus

    @field_validator("logs", mode="before")
    @classmethod
    def _null_logs(cls, value: Any) -> Any:
        return [] if value is None else value


class Session(BaseModel):
    """
    A server-owned ephemeral preview environment.

    This is a read-only projection of the server state at fetch time.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    uuid: str
    name: str = ""
    target: str = ""
    port: int = 0
    application_name: str = Field(default="", alias="applicationName")
    status: ServerStatus
    commit_id: str = Field(default="", alias="commitID")
    checkout: str = ""
    age: int = Field(default=0, alias="maxAge")
    folder: str = ""
    kill_reason: KillReason = Field(default=KillReason.NONE, alias="killReason")
    replaced_by: str | None = Field(default=None, alias="replacedBy")
    replaces_session: str | None = Field(default=None, alias="replacesSession")
    logs: list[LogEntry] = Field(default_factory=list)

    @field_validator("kill_reason", mode="before")
    @classmethod
    def _parse_kill_reason(cls, value: Any) -> KillReason:
        return KillReason.parse(value)

    @field_validator("replaced_by", "replaces_session", mode="before")
    @classmethod
    def _normalize_refs(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("logs", mode="before")
    @classmethod
    def _null_logs(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def short_uuid(self) -> str:
        """First block of the uuid, as shown in server logs."""
        return self.uuid.split("-")[0]

    def status_payload(self) -> StatusPayload:
        """Status fields of this session, usable to seed a lifecycle."""
        return StatusPayload(
            status=self.status,
            age=self.age,
            kill_reason=self.kill_reason,
            replaced_by=self.replaced_by,
        )


class SessionView(BaseModel):
    """
    Composed view of a tracked session, published by the controller.

    ``stalled`` turns on after several consecutive failed polls; ``error``
    carries the error_type of the last surfaced failure (e.g. "not_found").
    """

    model_config = ConfigDict(frozen=True)

    uuid: str | None = None
    state: LifecycleState = LifecycleState.UNKNOWN
    server_status: ServerStatus | None = None
    kill_reason: KillReason = KillReason.NONE
    replaced_by: str | None = None
    age: int = 0
    logs: tuple[LogEntry, ...] = ()
    stalled: bool = False
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        """Whether the session reached killed or replaced."""
        return self.state.is_terminal


@dataclass(frozen=True)
class ApiResult(Generic[T]):
    """
    Result-or-failure wrapper returned across the client boundary.

    Exactly one of ``value`` (on success) or ``error`` (on failure) is
    meaningful. ``value`` may legitimately be None for empty responses.
    """

    value: T | None = None
    error: SessionApiError | None = None

    @property
    def ok(self) -> bool:
        """Whether the operation succeeded."""
        return self.error is None

    @property
    def error_type(self) -> str | None:
        """Short error identifier, or None on success."""
        return self.error.error_type if self.error is not None else None

    @classmethod
    def success(cls, value: T | None = None) -> ApiResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: SessionApiError) -> ApiResult[T]:
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


__all__ = [
    "NO_CURSOR",
    "ApiResult",
    "KillReason",
    "LifecycleState",
    "LogEntry",
    "LogsAndStatus",
    "ServerStatus",
    "Session",
    "SessionView",
    "StatusPayload",
]
