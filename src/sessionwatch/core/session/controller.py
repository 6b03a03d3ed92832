"""
Tracking session controller - track, poll, untrack.

The controller is the only piece presentation code talks to. It owns one
tracked session at a time and runs a single cooperative poll loop:

    start(uuid) → track → [tick → sleep]* → stop() → untrack

Each tick syncs new log lines through the cursor synchronizer and feeds the
status payload into the lifecycle state machine, then publishes a composed
``SessionView`` to subscribers.

Guarantees:
    - Ticks are strictly sequential; tick n+1 never starts before tick n
      has been processed, whatever the network latency.
    - A response that completes after ``stop()`` (or a restart on another
      uuid) is discarded.
    - A failed tick changes neither cursor nor lifecycle; the next tick
      retries with the same state, forever, until stop or a terminal state.
    - Reaching killed/replaced stops the poll loop but does not untrack.

Usage:
    >>> controller = TrackingSessionController(client, poll_interval=1.0)
    >>> controller.subscribe(lambda view: print(view.state))
    >>> await controller.start("0b1c-...")
    >>> ...
    >>> await controller.stop()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from sessionwatch.core.session.client import SessionClient
from sessionwatch.core.session.cursor import LogCursorSynchronizer
from sessionwatch.core.session.errors import (
    AlreadyTerminalError,
    CursorInvalidatedError,
    NotFoundError,
    SessionApiError,
)
from sessionwatch.core.session.lifecycle import SessionLifecycle
from sessionwatch.core.session.models import (
    ApiResult,
    Session,
    SessionView,
    StatusPayload,
)

logger = logging.getLogger(__name__)

Subscriber = Callable[[SessionView], None]


class TrackingSessionController:
    """
    Orchestrates tracking and polling of a single session.

    Attributes:
        poll_interval: Seconds to wait between ticks
        stalled_threshold: Consecutive failed ticks before the view is
            flagged as stalled and the failure surfaced
        follow_logs: Whether ticks also sync logs (status-only otherwise)
    """

    def __init__(
        self,
        client: SessionClient,
        *,
        poll_interval: float = 1.0,
        stalled_threshold: int = 5,
        follow_logs: bool = True,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if stalled_threshold < 1:
            raise ValueError("stalled_threshold must be >= 1")

        self.client = client
        self.poll_interval = poll_interval
        self.stalled_threshold = stalled_threshold
        self.follow_logs = follow_logs

        self._uuid: str | None = None
        self._started = False
        self._generation = 0
        self._task: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()
        self._lifecycle = SessionLifecycle()
        self._sync = LogCursorSynchronizer(client)
        self._failures = 0
        self._error: str | None = None
        self._view = SessionView()
        self._subscribers: list[Subscriber] = []

    # ============================================================================
    # Properties
    # ============================================================================

    @property
    def uuid(self) -> str | None:
        """Uuid of the session currently tracked (None when stopped)."""
        return self._uuid if self._started else None

    @property
    def view(self) -> SessionView:
        """Latest composed view."""
        return self._view

    @property
    def is_polling(self) -> bool:
        """Whether the poll loop is scheduled."""
        return self._task is not None and not self._task.done()

    @property
    def lifecycle(self) -> SessionLifecycle:
        return self._lifecycle

    @property
    def synchronizer(self) -> LogCursorSynchronizer:
        return self._sync

    # ============================================================================
    # Lifecycle
    # ============================================================================

    async def start(
        self,
        uuid: str,
        initial: Session | StatusPayload | None = None,
    ) -> ApiResult[None]:
        """
        Track a session and begin polling it.

        Starting again for the same uuid is a no-op; starting for another
        uuid stops the current session first.

        Args:
            uuid: Session to track
            initial: Optional already-known state (a fetched Session seeds
                both the lifecycle and the log buffer)

        Returns:
            Result of the track request. A NotFoundError means no polling
            was scheduled; a transient failure still schedules polling.
        """
        if self._started and self._uuid == uuid:
            return ApiResult.success(None)
        if self._started:
            await self.stop()

        self._generation += 1
        generation = self._generation
        self._uuid = uuid
        self._started = True
        self._lifecycle = SessionLifecycle(uuid)
        self._sync = LogCursorSynchronizer(self.client)
        self._failures = 0
        self._error = None

        if isinstance(initial, Session):
            self._lifecycle.seed(initial.status_payload())
            self._sync.merge(initial.logs)
        elif initial is not None:
            self._lifecycle.seed(initial)

        logger.info("Tracking session %s", uuid)
        result = await self.client.track_session(uuid)
        if generation != self._generation:
            return result

        if not result.ok:
            if isinstance(result.error, NotFoundError):
                self._error = result.error.error_type
                self._publish()
                return result
            logger.warning("Track request for %s failed, polling anyway: %s", uuid, result.error)

        self._publish()
        if not self._should_halt():
            self._task = asyncio.create_task(self._run(generation))
        return result

    async def stop(self) -> ApiResult[None]:
        """
        Cancel polling and untrack. Safe to call any number of times.

        Any tick still in flight is cancelled and its response discarded.
        """
        if not self._started:
            return ApiResult.success(None)

        self._started = False
        self._generation += 1
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        logger.info("Untracking session %s", self._uuid)
        return await self.client.untrack_session()

    async def join(self) -> None:
        """Wait until the poll loop ends (terminal state, not found or stop)."""
        task = self._task
        if task is None:
            return
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    @asynccontextmanager
    async def tracking(
        self, uuid: str, initial: Session | StatusPayload | None = None
    ) -> AsyncIterator[TrackingSessionController]:
        """Track ``uuid`` for the duration of an ``async with`` block."""
        await self.start(uuid, initial)
        try:
            yield self
        finally:
            await self.stop()

    # ============================================================================
    # Actions
    # ============================================================================

    async def kill(self, uuid: str | None = None) -> ApiResult[None]:
        """
        Kill the tracked session (or ``uuid``).

        Killing an already dead session is reported as success. The
        lifecycle only moves once a poll observes the termination. With no
        uuid and no tracked session the result is a NotFoundError.
        """
        target = uuid or self.uuid
        if target is None:
            return ApiResult.failure(
                NotFoundError(None, "No session to kill: controller is not tracking one")
            )

        result = await self.client.kill_session(target)
        if isinstance(result.error, AlreadyTerminalError):
            logger.debug("Session %s already terminated", target)
            return ApiResult.success(None)
        return result

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback for view updates.

        Returns:
            A function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # ============================================================================
    # Polling
    # ============================================================================

    async def poll_once(self) -> ApiResult[SessionView]:
        """Run a single tick now (serialized with the background loop)."""
        return await self._tick(self._generation)

    async def _run(self, generation: int) -> None:
        while generation == self._generation:
            await self._tick(generation)
            if generation != self._generation or self._should_halt():
                break
            await asyncio.sleep(self.poll_interval)

        if generation == self._generation and self._should_halt():
            logger.info("Stopped polling session %s (%s)", self._uuid, self._halt_reason())

    async def _tick(self, generation: int) -> ApiResult[SessionView]:
        async with self._lock:
            uuid = self._uuid
            if not self._started or uuid is None or generation != self._generation:
                return ApiResult.success(self._view)
            if self._should_halt():
                return ApiResult.success(self._view)

            error: SessionApiError | None = None

            if self.follow_logs:

                def current() -> bool:
                    return generation == self._generation

                synced = await self._sync.sync(uuid, still_current=current)
                if generation != self._generation:
                    return ApiResult.success(self._view)
                if isinstance(synced.error, CursorInvalidatedError):
                    self._sync.reset()
                    synced = await self._sync.sync(uuid, still_current=current)
                    if generation != self._generation:
                        return ApiResult.success(self._view)
                if not synced.ok:
                    error = synced.error

            if not isinstance(error, NotFoundError):
                status = await self.client.fetch_status(uuid)
                if generation != self._generation:
                    return ApiResult.success(self._view)
                if status.ok:
                    self._lifecycle.apply(status.value)  # type: ignore[arg-type]
                elif error is None:
                    error = status.error

            self._record(error)
            self._publish()

            if error is not None:
                return ApiResult.failure(error)
            return ApiResult.success(self._view)

    def _record(self, error: SessionApiError | None) -> None:
        if error is None:
            self._failures = 0
            self._error = None
            return

        self._failures += 1
        if isinstance(error, NotFoundError):
            logger.warning("Session %s not found, polling stops", self._uuid)
            self._error = error.error_type
        elif self._failures >= self.stalled_threshold:
            if self._failures == self.stalled_threshold:
                logger.warning(
                    "Session %s stalled after %d failed polls: %s",
                    self._uuid,
                    self._failures,
                    error,
                )
            self._error = error.error_type

    def _should_halt(self) -> bool:
        return self._lifecycle.is_terminal or self._error == NotFoundError.error_type

    def _halt_reason(self) -> str:
        if self._lifecycle.is_terminal:
            return self._lifecycle.state.value
        return self._error or "stopped"

    def _publish(self) -> None:
        lifecycle = self._lifecycle
        view = SessionView(
            uuid=self._uuid,
            state=lifecycle.state,
            server_status=lifecycle.server_status,
            kill_reason=lifecycle.kill_reason,
            replaced_by=lifecycle.replaced_by,
            age=lifecycle.age,
            logs=tuple(self._sync.buffer),
            stalled=self._failures >= self.stalled_threshold,
            error=self._error,
        )
        if view == self._view:
            return
        self._view = view

        for callback in list(self._subscribers):
            try:
                callback(view)
            except Exception:
                logger.exception("Session view subscriber failed")


__all__ = ["TrackingSessionController"]
