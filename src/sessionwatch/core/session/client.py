"""
Async client for the session service REST API.

Stateless, typed wrappers around the fixed session endpoints. Every call
returns an ``ApiResult``: transport errors, HTTP errors and malformed
payloads are classified into the typed failures of
``sessionwatch.core.session.errors`` instead of being raised.

The client performs no caching and no retries. Retrying is the tracking
controller's job (it simply polls again on its next tick).

Example:
    >>> async with SessionClient("http://localhost:8888") as client:
    ...     result = await client.fetch_status("0b1c-...")
    ...     if result.ok:
    ...         print(result.value.status)
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, TypeVar
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from sessionwatch.core.session.errors import (
    AlreadyTerminalError,
    CursorInvalidatedError,
    InvalidResponseError,
    NetworkError,
    NotFoundError,
    SessionApiError,
)
from sessionwatch.core.session.models import (
    NO_CURSOR,
    ApiResult,
    LogsAndStatus,
    Session,
    StatusPayload,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_API_PREFIX = "/_polo_/api"
DEFAULT_TIMEOUT = 10.0

# Status codes the server uses for "this session is already dead"
# and "this log cursor is no longer known"
CONFLICT_STATUS_CODES = (409, 410)


class SessionClient:
    """
    Typed async wrapper around the session endpoints.

    One ``httpx.AsyncClient`` is shared by all calls. Use the client as an
    async context manager, or call ``aclose()`` when done.

    Attributes:
        base_url: Root URL of the session service (scheme + host + port)
        api_prefix: Path prefix of the API (default: /_polo_/api)
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_prefix: str = DEFAULT_API_PREFIX,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_prefix = "/" + api_prefix.strip("/") if api_prefix.strip("/") else ""
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers=headers,
        )

    async def __aenter__(self) -> SessionClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._http.aclose()

    # ============================================================================
    # Endpoints
    # ============================================================================

    async def fetch_all_sessions(self) -> ApiResult[list[Session]]:
        """List every session known to the server, logs included."""

        def parse(data: Any) -> list[Session]:
            if not isinstance(data, list):
                raise ValueError("expected a list of sessions")
            return [Session.model_validate(item) for item in data]

        return await self._request("GET", "/session/", None, parse)

    async def fetch_session(self, uuid: str) -> ApiResult[Session]:
        """Fetch a single session. Fails with NotFoundError on unknown uuid."""
        return await self._request(
            "GET", f"/session/{_segment(uuid)}", uuid, Session.model_validate
        )

    async def kill_session(self, uuid: str) -> ApiResult[None]:
        """
        Request termination of a session.

        Fails with AlreadyTerminalError when the server reports the session
        is already dead; callers that want idempotent kills treat that as
        success.
        """
        return await self._request(
            "DELETE",
            f"/session/{_segment(uuid)}",
            uuid,
            None,
            on_conflict=lambda: AlreadyTerminalError(uuid, "Session is already terminated"),
        )

    async def track_session(self, uuid: str) -> ApiResult[None]:
        """Declare interest in a session (the server keeps one per client)."""
        return await self._request("POST", f"/session/{_segment(uuid)}/track", uuid, None)

    async def untrack_session(self) -> ApiResult[None]:
        """Withdraw interest in whichever session this client is tracking."""
        return await self._request("DELETE", f"/session/{_segment(NO_CURSOR)}/track", None, None)

    async def fetch_status(self, uuid: str) -> ApiResult[StatusPayload]:
        """Cheap status-only poll."""
        return await self._request(
            "GET", f"/session/{_segment(uuid)}/status", uuid, StatusPayload.model_validate
        )

    async def fetch_logs_since(
        self, uuid: str, cursor: str = NO_CURSOR
    ) -> ApiResult[LogsAndStatus]:
        """
        Fetch log entries strictly after ``cursor`` plus the current status.

        Args:
            uuid: Session uuid
            cursor: uuid of the last entry already seen, or NO_CURSOR

        Returns:
            ApiResult wrapping LogsAndStatus; CursorInvalidatedError when the
            server no longer recognizes a non-sentinel cursor
        """
        on_conflict = None
        if cursor != NO_CURSOR:
            on_conflict = lambda: CursorInvalidatedError(uuid, cursor)  # noqa: E731
        return await self._request(
            "GET",
            f"/session/{_segment(uuid)}/logs/{_segment(cursor)}",
            uuid,
            LogsAndStatus.model_validate,
            on_conflict=on_conflict,
        )

    # ============================================================================
    # Request plumbing
    # ============================================================================

    async def _request(
        self,
        method: str,
        path: str,
        uuid: str | None,
        parse: Callable[[Any], T] | None,
        *,
        on_conflict: Callable[[], SessionApiError] | None = None,
    ) -> ApiResult[T]:
        url = f"{self.api_prefix}{path}"
        logger.debug("%s %s", method, url)

        try:
            response = await self._http.request(method, url)
        except httpx.TimeoutException as e:
            return self._fail(NetworkError(uuid, f"{method} {url} timed out", url=url), e)
        except httpx.RequestError as e:
            return self._fail(NetworkError(uuid, f"{method} {url} failed: {e}", url=url), e)

        status_code = response.status_code
        if status_code == 404:
            return self._fail(
                NotFoundError(uuid, "Session not found", url=url, status_code=status_code)
            )
        if status_code in CONFLICT_STATUS_CODES and on_conflict is not None:
            return self._fail(on_conflict())
        if status_code >= 400:
            return self._fail(
                NetworkError(
                    uuid,
                    f"HTTP {status_code} from {method} {url}",
                    url=url,
                    status_code=status_code,
                )
            )

        if parse is None:
            return ApiResult.success(None)

        try:
            data = _unwrap_envelope(response.json())
            return ApiResult.success(parse(data))
        except (json.JSONDecodeError, ValidationError, ValueError) as e:
            return self._fail(
                InvalidResponseError(uuid, f"Invalid response from {method} {url}: {e}", url=url),
                e,
            )

    @staticmethod
    def _fail(error: SessionApiError, cause: BaseException | None = None) -> ApiResult[Any]:
        if cause is not None:
            error.__cause__ = cause
        if isinstance(error, NetworkError):
            logger.warning("%s", error)
        else:
            logger.debug("%s", error)
        return ApiResult.failure(error)


def _segment(value: str) -> str:
    """Quote a value for use as one path segment."""
    return quote(value, safe="")


def _unwrap_envelope(data: Any) -> Any:
    """Accept both bare payloads and {"result": ...} envelopes."""
    if isinstance(data, dict) and set(data) <= {"result", "message", "error"} and "result" in data:
        return data["result"]
    return data


__all__ = [
    "DEFAULT_API_PREFIX",
    "DEFAULT_TIMEOUT",
    "SessionClient",
]
