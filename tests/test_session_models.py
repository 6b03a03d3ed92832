"""Tests for session wire models and the result wrapper."""

import pytest
from pydantic import ValidationError

from sessionwatch.core.session.errors import NetworkError, NotFoundError
from sessionwatch.core.session.models import (
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


class TestServerStatus:
    """Tests for ServerStatus liveness."""

    @pytest.mark.parametrize(
        "status", [ServerStatus.STARTING, ServerStatus.STARTED, ServerStatus.DEGRADED,
                   ServerStatus.STOPPING]
    )
    def test_alive_statuses(self, status: ServerStatus) -> None:
        assert status.is_alive is True
        assert status.is_terminal is False

    @pytest.mark.parametrize(
        "status", [ServerStatus.STOPPED, ServerStatus.START_FAILED, ServerStatus.STOP_FAILED]
    )
    def test_terminal_statuses(self, status: ServerStatus) -> None:
        assert status.is_terminal is True

    def test_unknown_wire_value_rejected(self) -> None:
        with pytest.raises(ValidationError):
            StatusPayload.model_validate({"status": "exploded"})


class TestKillReason:
    """Tests for KillReason parsing."""

    def test_empty_and_null_are_none(self) -> None:
        assert KillReason.parse("") is KillReason.NONE
        assert KillReason.parse(None) is KillReason.NONE
        assert KillReason.parse("none") is KillReason.NONE

    def test_known_reasons(self) -> None:
        assert KillReason.parse("build_failed") is KillReason.BUILD_FAILED
        assert KillReason.parse("Replaced") is KillReason.REPLACED

    def test_unknown_reason_rejected(self) -> None:
        with pytest.raises(ValueError):
            KillReason.parse("bored")


class TestStatusPayload:
    """Tests for StatusPayload parsing from server JSON."""

    def test_parse_camel_case(self) -> None:
        payload = StatusPayload.model_validate(
            {"status": "stopped", "age": 0, "killReason": "replaced", "replacedBy": "S2"}
        )
        assert payload.status is ServerStatus.STOPPED
        assert payload.kill_reason is KillReason.REPLACED
        assert payload.replaced_by == "S2"

    def test_blank_replaced_by_is_none(self) -> None:
        payload = StatusPayload.model_validate(
            {"status": "started", "age": 30, "killReason": "", "replacedBy": ""}
        )
        assert payload.replaced_by is None
        assert payload.kill_reason is KillReason.NONE

    def test_defaults(self) -> None:
        payload = StatusPayload.model_validate({"status": "starting"})
        assert payload.age == 0
        assert payload.replaced_by is None


class TestLogEntry:
    """Tests for LogEntry pass-through behavior."""

    def test_extra_fields_preserved(self) -> None:
        entry = LogEntry.model_validate(
            {"uuid": "L1", "message": "hello", "type": "stderr", "host": "builder-3"}
        )
        assert entry.model_dump()["host"] == "builder-3"

    def test_uuid_required(self) -> None:
        with pytest.raises(ValidationError):
            LogEntry.model_validate({"message": "no id"})

    def test_logs_and_status_null_logs(self) -> None:
        payload = LogsAndStatus.model_validate({"logs": None, "status": "started"})
        assert payload.logs == []


class TestSession:
    """Tests for the Session projection."""

    def test_parse_server_session(self) -> None:
        session = Session.model_validate(
            {
                "uuid": "0b1c6a2e-aaaa-bbbb",
                "applicationName": "web",
                "status": "started",
                "commitID": "4f2a9c1",
                "checkout": "main",
                "maxAge": 300,
                "killReason": "",
                "replacedBy": "",
                "metrics": [{"name": "build", "duration": 12}],
            }
        )
        assert session.application_name == "web"
        assert session.age == 300
        assert session.replaced_by is None
        assert session.logs == []
        assert session.short_uuid == "0b1c6a2e"

    def test_status_payload(self) -> None:
        session = Session.model_validate(
            {"uuid": "S1", "status": "stopped", "killReason": "replaced", "replacedBy": "S2"}
        )
        payload = session.status_payload()
        assert payload.status is ServerStatus.STOPPED
        assert payload.replaced_by == "S2"


class TestSessionView:
    """Tests for the composed view."""

    def test_default_view(self) -> None:
        view = SessionView()
        assert view.state is LifecycleState.UNKNOWN
        assert view.is_terminal is False
        assert view.logs == ()

    def test_view_is_frozen(self) -> None:
        view = SessionView(uuid="S1")
        with pytest.raises(ValidationError):
            view.uuid = "S2"  # type: ignore[misc]


class TestApiResult:
    """Tests for the result-or-failure wrapper."""

    def test_success(self) -> None:
        result = ApiResult.success(42)
        assert result.ok is True
        assert result.error_type is None
        assert result.unwrap() == 42

    def test_empty_success(self) -> None:
        assert ApiResult.success().ok is True

    def test_failure(self) -> None:
        error = NotFoundError("S1", "Session not found")
        result: ApiResult[int] = ApiResult.failure(error)
        assert result.ok is False
        assert result.error_type == "not_found"
        with pytest.raises(NotFoundError):
            result.unwrap()

    def test_error_str_includes_uuid(self) -> None:
        assert str(NetworkError("S1", "boom")) == "[S1] boom"
        assert str(NetworkError(None, "boom")) == "boom"
