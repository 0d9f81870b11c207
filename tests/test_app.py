"""Tests covering the application bootstrap helpers."""

from __future__ import annotations

import asyncio
import io
import json
from pathlib import Path

import httpx
import pytest

from coderoaster import app
from coderoaster.ai.client import CompletionClient
from coderoaster.errors import ConfigurationError, NoticeKind
from coderoaster.services.settings import RefreshPolicy, Settings, SettingsStore
from coderoaster.ui.refresh_orchestrator import RefreshOutcome
from tests.helpers import FakeStreamer, RecordingRenderer


@pytest.fixture(autouse=True)
def logging_calls(monkeypatch: pytest.MonkeyPatch) -> list[tuple[bool, bool]]:
    calls: list[tuple[bool, bool]] = []
    monkeypatch.setattr(app, "configure_logging", lambda debug=False, *, console=True: calls.append((debug, console)))
    return calls


def _configured() -> Settings:
    return Settings(api_key="sk-test", base_url="https://api.example.com/v1", model="m")


def test_coerce_cli_overrides_uses_field_types() -> None:
    overrides = app._coerce_cli_overrides(
        [
            "model=gpt-test",
            "debug_logging=on",
            "request_timeout=30",
            "default_headers={\"X-Title\": \"roaster\"}",
            "refresh={\"min_line_changes\": 4}",
        ]
    )

    assert overrides["model"] == "gpt-test"
    assert overrides["debug_logging"] is True
    assert overrides["request_timeout"] == 30.0
    assert overrides["default_headers"] == {"X-Title": "roaster"}
    assert overrides["refresh"] == RefreshPolicy(min_line_changes=4)


def test_coerce_cli_overrides_accepts_none_for_optional_fields() -> None:
    assert app._coerce_cli_overrides(["request_timeout=none"]) == {"request_timeout": None}


@pytest.mark.parametrize("entry", ["model", "=x", "nonexistent=1", "debug_logging=maybe"])
def test_coerce_cli_overrides_rejects_bad_entries(entry: str) -> None:
    with pytest.raises(ValueError):
        app._coerce_cli_overrides([entry])


def test_dump_settings_redacts_api_key(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CODEROASTER_MODEL", "env-model")
    store = SettingsStore(tmp_path / "settings.json")
    buffer = io.StringIO()

    app._dump_settings(Settings(api_key="sk-secret-value"), store, overrides={"model": "x"}, stream=buffer)

    payload = json.loads(buffer.getvalue())
    assert payload["settings"]["api_key"] == "sk***********ue"
    assert payload["meta"]["path"] == str(store.path)
    assert payload["meta"]["cli_overrides"] == ["model"]
    assert "CODEROASTER_MODEL" in payload["meta"]["environment_variables"]


def test_main_dump_settings_applies_cli_overrides(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    settings_path = tmp_path / "settings.json"

    app.main(
        [
            "--settings-path",
            str(settings_path),
            "--persona",
            "cn-praiser",
            "--set",
            "model=from-cli",
            "--dump-settings",
        ]
    )

    payload = json.loads(capsys.readouterr().out)
    assert payload["settings"]["model"] == "from-cli"
    assert payload["settings"]["persona_id"] == "cn-praiser"
    assert payload["meta"]["cli_overrides"] == ["model", "persona_id"]


def test_main_rejects_invalid_override(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as info:
        app.main(["--set", "bogus"])

    assert info.value.code == 2
    assert "Invalid --set override" in capsys.readouterr().err


def test_main_requires_path(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as info:
        app.main(["--settings-path", str(tmp_path / "settings.json")])

    assert info.value.code == 2


def test_main_test_connection_without_key_fails(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as info:
        app.main(["--settings-path", str(tmp_path / "settings.json"), "--test-connection"])

    assert info.value.code == 1
    assert "API configuration required" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_check_connection_uses_configured_endpoint() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"choices": [{"message": {"content": "2"}}]})

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    result = await app.check_connection(_configured(), client=CompletionClient(http_client=http))

    assert result == "Connection successful!"
    assert str(seen[0].url) == "https://api.example.com/v1/chat/completions"
    await http.aclose()


@pytest.mark.asyncio
async def test_check_connection_rejects_insecure_endpoint() -> None:
    settings = Settings(api_key="sk", base_url="http://example.com/v1", model="m")

    with pytest.raises(ConfigurationError):
        await app.check_connection(settings)


@pytest.mark.asyncio
async def test_run_panel_once_streams_commentary(tmp_path: Path) -> None:
    target = tmp_path / "main.py"
    target.write_text("def f():\n    return 1\n", encoding="utf-8")
    renderer = RecordingRenderer()
    streamer = FakeStreamer(["Meh."])

    outcome = await app.run_panel(_configured(), target, once=True, renderer=renderer, client=streamer)

    assert outcome is RefreshOutcome.GENERATED
    assert renderer.calls[0][0] == "show_stream_start"
    assert renderer.calls[0][2] == "main.py"
    assert renderer.calls[-1] == ("on_stream_done",)
    assert streamer.calls[0]["user_content"] == "main.py\n\ndef f():\n    return 1\n"


@pytest.mark.asyncio
async def test_run_panel_once_reports_missing_configuration(tmp_path: Path) -> None:
    target = tmp_path / "main.py"
    target.write_text("x = 1\n", encoding="utf-8")
    renderer = RecordingRenderer()

    outcome = await app.run_panel(Settings(), target, once=True, renderer=renderer, client=FakeStreamer())

    assert outcome is RefreshOutcome.NEEDS_CONFIGURATION
    assert renderer.names() == ["show_notice"]


@pytest.mark.asyncio
async def test_run_panel_watch_mode_refreshes_until_cancelled(tmp_path: Path) -> None:
    target = tmp_path / "main.py"
    target.write_text("x = 1\n", encoding="utf-8")
    renderer = RecordingRenderer()
    streamer = FakeStreamer(["ok"])

    task = asyncio.create_task(app.run_panel(_configured(), target, renderer=renderer, client=streamer))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert len(streamer.calls) == 1
    assert renderer.calls[-1] == ("on_stream_done",)


@pytest.mark.asyncio
async def test_run_panel_once_on_missing_file_reports_no_document(tmp_path: Path) -> None:
    renderer = RecordingRenderer()

    outcome = await app.run_panel(
        _configured(), tmp_path / "gone.py", once=True, renderer=renderer, client=FakeStreamer()
    )

    assert outcome is RefreshOutcome.NO_DOCUMENT
    assert renderer.notices() == [NoticeKind.NO_ACTIVE_DOCUMENT]


@pytest.mark.parametrize("extra,console", [([], False), (["--once"], True)])
def test_main_keeps_watch_mode_logging_off_the_terminal(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    logging_calls: list[tuple[bool, bool]],
    extra: list[str],
    console: bool,
) -> None:
    target = tmp_path / "main.py"
    target.write_text("x = 1\n", encoding="utf-8")
    settings_path = tmp_path / "settings.json"
    settings_path.write_text(json.dumps({"debug_logging": True}), encoding="utf-8")

    async def fake_run_panel(settings: Settings, path: Path, **kwargs: object) -> RefreshOutcome:
        return RefreshOutcome.GENERATED

    monkeypatch.setattr(app, "run_panel", fake_run_panel)

    app.main(["--settings-path", str(settings_path), str(target), *extra])

    assert logging_calls[0] == (False, True)
    assert logging_calls[-1] == (True, console)
