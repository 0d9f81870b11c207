"""Tests for the error taxonomy and telemetry helpers."""

from __future__ import annotations

import pytest

from coderoaster.errors import (
    ApiClientError,
    AuthError,
    ConfigurationError,
    NoticeKind,
    RateLimitError,
    RequestError,
    ServerError,
    TransportError,
    ValidationError,
    error_for_status,
)
from coderoaster.services import telemetry


@pytest.mark.parametrize(
    "status,error_type",
    [(401, AuthError), (429, RateLimitError), (500, ServerError), (502, ServerError), (400, RequestError)],
)
def test_error_for_status(status: int, error_type: type) -> None:
    error = error_for_status(status, "Reason")

    assert isinstance(error, error_type)
    assert isinstance(error, ApiClientError)
    assert error.status_code == status
    assert error.is_network_error is False


def test_request_error_message_includes_status() -> None:
    assert error_for_status(418, "I'm a teapot").message == "API error: 418 I'm a teapot"


def test_transport_error_flags_network_failure() -> None:
    error = TransportError()

    assert error.is_network_error is True
    assert error.to_dict()["error"] == "transport_failed"
    assert "status_code" not in error.to_dict()


def test_validation_errors_map_to_notices() -> None:
    assert ValidationError.no_active_document().notice_kind is NoticeKind.NO_ACTIVE_DOCUMENT
    assert ValidationError.unsupported_type("a.png", ".png").notice_kind is NoticeKind.UNSUPPORTED_FILE_TYPE
    assert ValidationError.empty("a.py").notice_kind is NoticeKind.EMPTY_FILE

    too_large = ValidationError.too_large("a.py", 200, 100)
    assert too_large.notice_kind is NoticeKind.FILE_TOO_LARGE
    assert too_large.to_dict()["details"] == {"identity": "a.py", "size": 200, "limit": 100}


def test_errors_are_raisable_with_readable_str() -> None:
    with pytest.raises(ConfigurationError) as info:
        raise ConfigurationError()

    assert str(info.value) == "[needs_configuration] API configuration required"


def test_emit_delivers_to_registered_listeners_only() -> None:
    sink = telemetry.InMemoryEventSink()
    telemetry.register_event_listener("commentary.cache_hit", sink)
    try:
        telemetry.emit("commentary.cache_hit", {"identity": "a.py"})
        telemetry.emit("commentary.stream_started", {"identity": "a.py"})
    finally:
        telemetry.unregister_event_listener("commentary.cache_hit", sink)
    telemetry.emit("commentary.cache_hit", {"identity": "b.py"})

    assert sink.tail() == [{"event": "commentary.cache_hit", "identity": "a.py"}]


def test_sink_tail_limits_results() -> None:
    sink = telemetry.InMemoryEventSink(capacity=10)
    for index in range(15):
        sink({"event": "tick", "index": index})

    assert len(sink) == 10
    assert [event["index"] for event in sink.tail(2)] == [13, 14]
