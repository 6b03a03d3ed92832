"""
Session lifecycle state machine.

Interprets status payloads from the session service into a small set of
client-side lifecycle states:

    unknown ──► pending ──► running
       │           │           │
       └───────────┴───────────┴──► killed | replaced   (terminal)

Only an explicit status payload can move the machine. A failed poll never
implies a transition, so transient network trouble cannot be mistaken for
a dead session. Once terminal, later payloads are accepted as
confirmations only and never change state, kill reason or successor.
"""

from __future__ import annotations

import logging

from sessionwatch.core.session.models import (
    KillReason,
    LifecycleState,
    ServerStatus,
    StatusPayload,
)

logger = logging.getLogger(__name__)

# Forward order of the non-terminal states; moving backwards is ignored
_PROGRESS = {
    LifecycleState.UNKNOWN: 0,
    LifecycleState.PENDING: 1,
    LifecycleState.RUNNING: 2,
}


def classify(payload: StatusPayload) -> LifecycleState:
    """
    Map a single status payload to the lifecycle state it describes.

    A terminal server status becomes REPLACED when a successor is present,
    KILLED otherwise. STARTING is PENDING; every other alive status
    (started, degraded, stopping) is RUNNING.
    """
    if payload.status.is_terminal:
        if payload.replaced_by:
            return LifecycleState.REPLACED
        return LifecycleState.KILLED
    if payload.status == ServerStatus.STARTING:
        return LifecycleState.PENDING
    return LifecycleState.RUNNING


class SessionLifecycle:
    """
    Lifecycle of one session as observed through polling.

    Attributes:
        uuid: Session uuid (informational, used in log messages)
        state: Current lifecycle state
        kill_reason: Reason attached on the terminal transition
        replaced_by: Successor uuid when state is REPLACED
        age: Last age reported while the session was alive
        server_status: Last raw status seen
    """

    def __init__(self, uuid: str | None = None) -> None:
        self.uuid = uuid
        self.state = LifecycleState.UNKNOWN
        self.kill_reason = KillReason.NONE
        self.replaced_by: str | None = None
        self.age = 0
        self.server_status: ServerStatus | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def seed(self, payload: StatusPayload) -> bool:
        """Apply an initial payload (e.g. from a fetched Session)."""
        return self.apply(payload)

    def apply(self, payload: StatusPayload) -> bool:
        """
        Feed one status payload into the machine.

        Args:
            payload: Status reported by the server

        Returns:
            True if the lifecycle state changed
        """
        if self.is_terminal:
            # Confirmation only
            return False

        self.server_status = payload.status
        self.age = payload.age
        target = classify(payload)

        if target.is_terminal:
            self.state = target
            self.kill_reason = payload.kill_reason
            self.replaced_by = payload.replaced_by if target == LifecycleState.REPLACED else None
            logger.info(
                "Session %s reached %s (reason=%s, replaced_by=%s)",
                self.uuid,
                target.value,
                self.kill_reason.value or "none",
                self.replaced_by,
            )
            return True

        if _PROGRESS[target] <= _PROGRESS[self.state]:
            return False

        logger.debug("Session %s: %s -> %s", self.uuid, self.state.value, target.value)
        self.state = target
        return True

    def as_payload(self) -> StatusPayload | None:
        """Current status as a payload, or None before the first poll."""
        if self.server_status is None:
            return None
        return StatusPayload(
            status=self.server_status,
            age=self.age,
            kill_reason=self.kill_reason,
            replaced_by=self.replaced_by,
        )
