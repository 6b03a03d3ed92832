"""
Pytest configuration and shared fixtures.

Provides an in-memory session service (served through httpx.MockTransport),
payload factories, and config isolation used across the test suite.
"""

import json
from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest

from sessionwatch.core.config import clear_cache
from sessionwatch.core.session.client import SessionClient
from sessionwatch.core.session.models import (
    NO_CURSOR,
    ApiResult,
    LogEntry,
    LogsAndStatus,
    StatusPayload,
)

API_PREFIX = "/_polo_/api"
BASE_URL = "http://polo.test"


# ==============================================================================
# Config Isolation
# ==============================================================================


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep user config, .env files and the config cache out of every test."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    for name in (
        "SESSIONWATCH_URL",
        "SESSIONWATCH_API_PREFIX",
        "SESSIONWATCH_TIMEOUT",
        "SESSIONWATCH_POLL_INTERVAL",
    ):
        monkeypatch.delenv(name, raising=False)
    clear_cache()
    yield
    clear_cache()


# ==============================================================================
# Payload Factories
# ==============================================================================


def make_log(uuid: str, message: str | None = None, type: str = "stdout") -> LogEntry:
    """Build a log entry whose message defaults to its uuid."""
    return LogEntry(
        uuid=uuid,
        when=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        message=message if message is not None else f"line {uuid}",
        type=type,
    )


def make_status(
    status: str = "started",
    *,
    age: int = 60,
    kill_reason: str = "",
    replaced_by: str | None = None,
) -> StatusPayload:
    return StatusPayload.model_validate(
        {"status": status, "age": age, "killReason": kill_reason, "replacedBy": replaced_by or ""}
    )


def logs_ok(*uuids: str, status: str = "started") -> ApiResult[LogsAndStatus]:
    """Successful logs-since-cursor result carrying the given entry uuids."""
    return ApiResult.success(
        LogsAndStatus(logs=[make_log(u) for u in uuids], status=status)  # type: ignore[arg-type]
    )


def status_ok(status: str = "started", **kwargs: Any) -> ApiResult[StatusPayload]:
    return ApiResult.success(make_status(status, **kwargs))


@pytest.fixture
def fake_client():
    """
    A SessionClient stand-in with AsyncMock endpoints.

    Every endpoint succeeds by default: track/untrack/kill return empty
    results, status reports a started session, logs return nothing.
    """
    client = AsyncMock(spec=SessionClient)
    client.track_session.return_value = ApiResult.success(None)
    client.untrack_session.return_value = ApiResult.success(None)
    client.kill_session.return_value = ApiResult.success(None)
    client.fetch_status.return_value = status_ok()
    client.fetch_logs_since.return_value = logs_ok()
    return client


# ==============================================================================
# In-memory Session Service
# ==============================================================================


def _log_json(log_id: str) -> dict[str, Any]:
    return {
        "uuid": log_id,
        "when": "2024-05-01T12:00:00Z",
        "message": f"line {log_id}",
        "type": "stdout",
    }


class FakeSessionServer:
    """
    Minimal session service speaking the REST contract over MockTransport.

    Sessions are plain dicts in the server's JSON shape. Log cursors follow
    the real semantics: entries strictly after the cursor; an unknown
    cursor answers 409.
    """

    def __init__(self) -> None:
        self.sessions: dict[str, dict[str, Any]] = {}
        self.tracked: str | None = None
        self.requests: list[tuple[str, str]] = []
        self.fail_next: list[int] = []

    def add_session(
        self,
        uuid: str,
        *,
        status: str = "started",
        logs: list[str] | None = None,
        kill_reason: str = "",
        replaced_by: str = "",
        age: int = 120,
    ) -> dict[str, Any]:
        session = {
            "uuid": uuid,
            "name": "web",
            "target": "http://127.0.0.1:3001",
            "port": 3001,
            "applicationName": "web",
            "status": status,
            "commitID": "4f2a9c1",
            "checkout": "feature/login",
            "maxAge": age,
            "folder": f"/tmp/sessions/{uuid}",
            "killReason": kill_reason,
            "replacedBy": replaced_by,
            "logs": [_log_json(log_id) for log_id in (logs or [])],
        }
        self.sessions[uuid] = session
        return session

    def append_logs(self, uuid: str, *log_ids: str) -> None:
        for log_id in log_ids:
            self.sessions[uuid]["logs"].append(_log_json(log_id))

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append((request.method, path))
        if self.fail_next:
            return httpx.Response(self.fail_next.pop(0))

        assert path.startswith(API_PREFIX), path
        parts = [p for p in path[len(API_PREFIX):].split("/") if p]
        assert parts[0] == "session", path

        if len(parts) == 1 and request.method == "GET":
            return httpx.Response(200, json=list(self.sessions.values()))

        uuid = parts[1]
        if len(parts) == 3 and parts[2] == "track":
            if request.method == "DELETE":
                self.tracked = None
                return httpx.Response(200)
            if uuid not in self.sessions:
                return httpx.Response(404)
            self.tracked = uuid
            return httpx.Response(200)

        session = self.sessions.get(uuid)
        if session is None:
            return httpx.Response(404, json={"message": "session not found"})

        if len(parts) == 2 and request.method == "GET":
            return httpx.Response(200, json=session)
        if len(parts) == 2 and request.method == "DELETE":
            if session["status"] in ("stopped", "start_failed", "stop_failed"):
                return httpx.Response(409)
            session["status"] = "stopped"
            session["killReason"] = "stopped"
            return httpx.Response(200)
        if parts[2] == "status":
            return httpx.Response(
                200,
                json={
                    "status": session["status"],
                    "age": session["maxAge"],
                    "killReason": session["killReason"],
                    "replacedBy": session["replacedBy"],
                },
            )
        if parts[2] == "logs":
            cursor = parts[3]
            ids = [entry["uuid"] for entry in session["logs"]]
            if cursor == NO_CURSOR:
                start = 0
            elif cursor in ids:
                start = ids.index(cursor) + 1
            else:
                return httpx.Response(409)
            body = {"logs": session["logs"][start:], "status": session["status"]}
            return httpx.Response(200, content=json.dumps(body))
        return httpx.Response(405)


@pytest.fixture
def server():
    """Provide an empty in-memory session service."""
    return FakeSessionServer()


@pytest.fixture
async def client(server):
    """Provide a real SessionClient wired to the in-memory service."""
    session_client = SessionClient(
        BASE_URL, api_prefix=API_PREFIX, transport=httpx.MockTransport(server.handler)
    )
    yield session_client
    await session_client.aclose()
