"""Shared pytest fixtures."""

from __future__ import annotations

from typing import Iterator

import pytest

from coderoaster.services import telemetry
from coderoaster.services.telemetry import InMemoryEventSink

_PANEL_EVENTS = (
    "commentary.cache_hit",
    "commentary.stream_started",
    "commentary.stream_completed",
    "commentary.stream_failed",
    "commentary.validation_failed",
    "commentary.history_evicted",
)


@pytest.fixture
def event_sink() -> Iterator[InMemoryEventSink]:
    sink = InMemoryEventSink()
    for name in _PANEL_EVENTS:
        telemetry.register_event_listener(name, sink)
    yield sink
    for name in _PANEL_EVENTS:
        telemetry.unregister_event_listener(name, sink)


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    for name in (
        "CODEROASTER_API_KEY",
        "CODEROASTER_BASE_URL",
        "CODEROASTER_MODEL",
        "CODEROASTER_PERSONA",
        "CODEROASTER_REQUEST_TIMEOUT",
        "CODEROASTER_DEBUG_LOGGING",
        "CODEROASTER_DEBUG",
        "CODEROASTER_SETTINGS_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CODEROASTER_LOG_DIR", str(tmp_path / "logs"))
