"""
Tests for SessionClient.

Runs the real client against the in-memory session service from conftest,
plus a few hand-written transports for error classification.
"""

import httpx
import pytest

from sessionwatch.core.session.client import SessionClient
from sessionwatch.core.session.errors import (
    AlreadyTerminalError,
    CursorInvalidatedError,
    InvalidResponseError,
    NetworkError,
    NotFoundError,
)
from sessionwatch.core.session.models import NO_CURSOR, KillReason, ServerStatus

from conftest import API_PREFIX, BASE_URL


def client_for(handler) -> SessionClient:
    return SessionClient(BASE_URL, api_prefix=API_PREFIX, transport=httpx.MockTransport(handler))


class TestFetch:
    """Tests for fetch_session / fetch_all_sessions / fetch_status."""

    @pytest.mark.asyncio
    async def test_fetch_session(self, server, client) -> None:
        server.add_session("S1", logs=["L1", "L2"])

        result = await client.fetch_session("S1")

        assert result.ok
        assert result.value.uuid == "S1"
        assert [entry.uuid for entry in result.value.logs] == ["L1", "L2"]
        assert server.requests == [("GET", f"{API_PREFIX}/session/S1")]

    @pytest.mark.asyncio
    async def test_fetch_unknown_session(self, client) -> None:
        result = await client.fetch_session("nope")

        assert not result.ok
        assert isinstance(result.error, NotFoundError)
        assert result.error.uuid == "nope"

    @pytest.mark.asyncio
    async def test_fetch_all_sessions(self, server, client) -> None:
        server.add_session("S1")
        server.add_session("S2", status="stopped", kill_reason="replaced", replaced_by="S3")

        result = await client.fetch_all_sessions()

        assert result.ok
        assert [s.uuid for s in result.value] == ["S1", "S2"]
        assert result.value[1].replaced_by == "S3"

    @pytest.mark.asyncio
    async def test_fetch_status(self, server, client) -> None:
        server.add_session("S1", status="stopped", kill_reason="healthcheck_failed", age=0)

        result = await client.fetch_status("S1")

        assert result.ok
        assert result.value.status is ServerStatus.STOPPED
        assert result.value.kill_reason is KillReason.HEALTHCHECK_FAILED
        assert result.value.replaced_by is None


class TestLogsSince:
    """Tests for fetch_logs_since."""

    @pytest.mark.asyncio
    async def test_from_sentinel(self, server, client) -> None:
        server.add_session("S1", logs=["L1", "L2"])

        result = await client.fetch_logs_since("S1")

        assert [entry.uuid for entry in result.value.logs] == ["L1", "L2"]
        assert result.value.status is ServerStatus.STARTED
        assert server.requests[-1] == ("GET", f"{API_PREFIX}/session/S1/logs/{NO_CURSOR}")

    @pytest.mark.asyncio
    async def test_after_cursor(self, server, client) -> None:
        server.add_session("S1", logs=["L1", "L2", "L3"])

        result = await client.fetch_logs_since("S1", "L2")

        assert [entry.uuid for entry in result.value.logs] == ["L3"]

    @pytest.mark.asyncio
    async def test_unknown_cursor_invalidated(self, server, client) -> None:
        server.add_session("S1", logs=["L1"])

        result = await client.fetch_logs_since("S1", "bogus-cursor")

        assert isinstance(result.error, CursorInvalidatedError)
        assert result.error.cursor == "bogus-cursor"
        assert result.error_type == "cursor_invalidated"

    @pytest.mark.asyncio
    async def test_conflict_on_sentinel_is_not_a_cursor_error(self) -> None:
        async with client_for(lambda request: httpx.Response(409)) as client:
            result = await client.fetch_logs_since("S1")

        assert isinstance(result.error, NetworkError)


class TestKillAndTracking:
    """Tests for kill / track / untrack."""

    @pytest.mark.asyncio
    async def test_kill(self, server, client) -> None:
        server.add_session("S1")

        result = await client.kill_session("S1")

        assert result.ok
        assert result.value is None
        assert server.sessions["S1"]["status"] == "stopped"

    @pytest.mark.asyncio
    async def test_kill_already_dead(self, server, client) -> None:
        server.add_session("S1", status="stopped", kill_reason="stopped")

        result = await client.kill_session("S1")

        assert isinstance(result.error, AlreadyTerminalError)

    @pytest.mark.asyncio
    async def test_track_and_untrack(self, server, client) -> None:
        server.add_session("S1")

        assert (await client.track_session("S1")).ok
        assert server.tracked == "S1"

        assert (await client.untrack_session()).ok
        assert server.tracked is None
        assert server.requests[-1] == ("DELETE", f"{API_PREFIX}/session/{NO_CURSOR}/track")


class TestErrorClassification:
    """Tests for transport and payload failures."""

    @pytest.mark.asyncio
    async def test_server_error_is_network_error(self, server, client) -> None:
        server.add_session("S1")
        server.fail_next.append(502)

        result = await client.fetch_status("S1")

        assert isinstance(result.error, NetworkError)
        assert result.error.context["status_code"] == 502
        assert result.error.retryable is True

    @pytest.mark.asyncio
    async def test_connection_error(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        async with client_for(refuse) as client:
            result = await client.fetch_status("S1")

        assert isinstance(result.error, NetworkError)
        assert isinstance(result.error.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        def slow(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        async with client_for(slow) as client:
            result = await client.fetch_logs_since("S1", "L1")

        assert isinstance(result.error, NetworkError)
        assert "timed out" in str(result.error)

    @pytest.mark.asyncio
    async def test_invalid_json(self) -> None:
        async with client_for(lambda request: httpx.Response(200, content=b"<html>")) as client:
            result = await client.fetch_status("S1")

        assert isinstance(result.error, InvalidResponseError)

    @pytest.mark.asyncio
    async def test_invalid_payload(self) -> None:
        async with client_for(
            lambda request: httpx.Response(200, json={"status": "exploded"})
        ) as client:
            result = await client.fetch_status("S1")

        assert isinstance(result.error, InvalidResponseError)

    @pytest.mark.asyncio
    async def test_result_envelope_accepted(self) -> None:
        body = {"result": {"status": "started", "age": 10, "killReason": "", "replacedBy": ""}}
        async with client_for(lambda request: httpx.Response(200, json=body)) as client:
            result = await client.fetch_status("S1")

        assert result.ok
        assert result.value.age == 10

    @pytest.mark.asyncio
    async def test_uuid_is_path_quoted(self) -> None:
        seen: list[str] = []

        def record(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.raw_path.decode())
            return httpx.Response(200)

        async with client_for(record) as client:
            await client.track_session("a/b")

        assert seen == [f"{API_PREFIX}/session/a%2Fb/track"]
