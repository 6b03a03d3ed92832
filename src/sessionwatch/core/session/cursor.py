"""
Incremental log synchronization with a pagination cursor.

The synchronizer remembers the uuid of the last log entry it has seen and
asks the server only for entries after it, so a fixed-interval poll never
re-downloads or re-delivers old lines.

Usage:
    >>> sync = LogCursorSynchronizer(client)
    >>> result = await sync.sync("0b1c-...")
    >>> if result.ok:
    ...     for entry in result.value.new_logs:
    ...         print(entry.message)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from collections.abc import Callable
from typing import Protocol

from sessionwatch.core.session.errors import CursorInvalidatedError
from sessionwatch.core.session.models import (
    NO_CURSOR,
    ApiResult,
    LogEntry,
    LogsAndStatus,
    ServerStatus,
)

logger = logging.getLogger(__name__)


class LogsSource(Protocol):
    """Anything that can serve logs-since-cursor requests."""

    async def fetch_logs_since(
        self, uuid: str, cursor: str = NO_CURSOR
    ) -> ApiResult[LogsAndStatus]: ...


@dataclass(frozen=True)
class SyncResult:
    """Outcome of one successful sync round."""

    status: ServerStatus
    logs: tuple[LogEntry, ...] = ()
    new_logs: tuple[LogEntry, ...] = ()
    cursor: str = NO_CURSOR


@dataclass
class LogCursorSynchronizer:
    """
    Cursor + buffer pair for a single session.

    Invariants:
        - ``buffer`` never holds two entries with the same uuid
        - ``cursor`` is the uuid of the last entry the server returned, and
          only moves forward
        - a failed round leaves cursor and buffer untouched
    """

    source: LogsSource
    cursor: str = NO_CURSOR
    buffer: list[LogEntry] = field(default_factory=list)
    _seen: set[str] = field(default_factory=set, init=False, repr=False)
    _epoch: int = field(default=0, init=False, repr=False)

    def __post_init__(self) -> None:
        self._seen = {entry.uuid for entry in self.buffer}

    async def sync(
        self,
        uuid: str,
        *,
        still_current: Callable[[], bool] | None = None,
    ) -> ApiResult[SyncResult]:
        """
        Fetch entries after the cursor and merge them into the buffer.

        Args:
            uuid: Session uuid
            still_current: Checked once the response is in; when it returns
                False the response is dropped without touching the buffer

        Returns:
            ApiResult wrapping SyncResult (full buffer plus the delta). On
            CursorInvalidatedError the caller should ``reset()`` and sync
            again from the sentinel.
        """
        requested = self.cursor
        epoch = self._epoch
        result = await self.source.fetch_logs_since(uuid, requested)
        if not result.ok:
            if isinstance(result.error, CursorInvalidatedError):
                logger.warning("Log cursor %s invalidated for session %s", requested, uuid)
            return ApiResult.failure(result.error)  # type: ignore[arg-type]

        payload: LogsAndStatus = result.value  # type: ignore[assignment]
        if epoch != self._epoch or (still_current is not None and not still_current()):
            logger.debug("Discarding logs fetched with stale cursor %s", requested)
            return ApiResult.success(self._snapshot(payload.status, ()))

        new_logs = self.merge(payload.logs)
        return ApiResult.success(self._snapshot(payload.status, new_logs))

    def merge(self, entries: list[LogEntry]) -> tuple[LogEntry, ...]:
        """
        Append entries in server order, skipping uuids already buffered.

        Returns:
            The entries that were actually appended
        """
        fresh: list[LogEntry] = []
        for entry in entries:
            if entry.uuid in self._seen:
                continue
            self._seen.add(entry.uuid)
            self.buffer.append(entry)
            fresh.append(entry)

        if entries:
            self.cursor = entries[-1].uuid
        return tuple(fresh)

    def reset(self) -> None:
        """Forget everything; the next sync starts from the beginning."""
        self.cursor = NO_CURSOR
        self.buffer = []
        self._seen = set()
        self._epoch += 1

    def _snapshot(self, status: ServerStatus, new_logs: tuple[LogEntry, ...]) -> SyncResult:
        return SyncResult(
            status=status,
            logs=tuple(self.buffer),
            new_logs=new_logs,
            cursor=self.cursor,
        )
