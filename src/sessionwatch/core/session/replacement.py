"""
Replacement chain resolution.

The lifecycle state machine only ever looks one hop ahead: a replaced
session carries the uuid of its direct successor. When a caller wants the
live end of the chain (e.g. to redirect a stale link), it walks the
``replacedBy`` links with this helper.
"""

from __future__ import annotations

import logging
from typing import Protocol

from sessionwatch.core.session.errors import SessionApiError
from sessionwatch.core.session.models import ApiResult, StatusPayload

logger = logging.getLogger(__name__)

DEFAULT_MAX_HOPS = 10


class StatusSource(Protocol):
    async def fetch_status(self, uuid: str) -> ApiResult[StatusPayload]: ...


class ReplacementCycleError(SessionApiError):
    """The replacedBy links loop back on themselves or never end."""

    error_type = "replacement_cycle"


async def resolve_replacement_chain(
    source: StatusSource,
    uuid: str,
    *,
    max_hops: int = DEFAULT_MAX_HOPS,
) -> ApiResult[list[str]]:
    """
    Follow replacedBy links from ``uuid`` until a session is not replaced.

    Args:
        source: Anything exposing ``fetch_status`` (usually SessionClient)
        uuid: Session to start from
        max_hops: Maximum number of links to follow

    Returns:
        ApiResult wrapping the chain of uuids, starting with ``uuid`` and
        ending with the newest session. Fetch failures are passed through;
        loops and over-long chains fail with ReplacementCycleError.
    """
    chain = [uuid]
    current = uuid

    for _ in range(max_hops + 1):
        result = await source.fetch_status(current)
        if not result.ok:
            return ApiResult.failure(result.error)  # type: ignore[arg-type]

        successor = result.value.replaced_by  # type: ignore[union-attr]
        if not successor:
            return ApiResult.success(chain)
        if successor in chain:
            return ApiResult.failure(
                ReplacementCycleError(uuid, f"Replacement chain loops at {successor}", chain=chain)
            )

        logger.debug("Session %s replaced by %s", current, successor)
        chain.append(successor)
        current = successor

    return ApiResult.failure(
        ReplacementCycleError(uuid, f"Replacement chain longer than {max_hops} hops", chain=chain)
    )


__all__ = ["DEFAULT_MAX_HOPS", "ReplacementCycleError", "resolve_replacement_chain"]
