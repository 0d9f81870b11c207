"""Tests for settings persistence and endpoint validation."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from coderoaster.errors import ConfigurationError, ErrorCode
from coderoaster.services.settings import (
    RefreshPolicy,
    SecretVault,
    Settings,
    SettingsStore,
    redact_secret,
    validate_endpoint,
)


def _store(tmp_path: Path) -> SettingsStore:
    return SettingsStore(tmp_path / "settings.json")


def test_defaults_match_panel_thresholds() -> None:
    policy = RefreshPolicy()

    assert policy.max_file_size == 102400
    assert policy.min_requery_interval == 60.0
    assert policy.min_line_changes == 10
    assert policy.auto_refresh_interval == 5.0
    assert policy.history_capacity == 100
    assert policy.supports(".py")
    assert policy.supports(".TSX")
    assert not policy.supports(".png")
    assert not policy.supports("")


def test_refresh_policy_normalizes_extensions() -> None:
    policy = RefreshPolicy(supported_extensions=("PY", ".Rs"))

    assert policy.supported_extensions == (".py", ".rs")


def test_save_and_load_round_trip_encrypts_api_key(tmp_path: Path) -> None:
    store = _store(tmp_path)
    settings = Settings(api_key="sk-secret", model="my-model", refresh=RefreshPolicy(min_line_changes=3))

    store.save(settings)
    raw = json.loads(store.path.read_text(encoding="utf-8"))

    assert "api_key" not in raw
    assert raw["api_key_ciphertext"].startswith("fernet:")
    assert "sk-secret" not in store.path.read_text(encoding="utf-8")
    assert raw["version"] == 1

    loaded = _store(tmp_path).load()
    assert loaded.api_key == "sk-secret"
    assert loaded.model == "my-model"
    assert loaded.refresh.min_line_changes == 3


def test_missing_file_loads_defaults(tmp_path: Path) -> None:
    assert _store(tmp_path).load() == Settings()


def test_invalid_json_loads_defaults(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.path.write_text("{not json", encoding="utf-8")

    assert store.load() == Settings()


def test_legacy_plaintext_key_is_accepted(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.path.write_text(json.dumps({"api_key": "sk-plain", "unknown": 1}), encoding="utf-8")

    assert store.load().api_key == "sk-plain"


def test_overrides_then_environment_take_precedence(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    store = _store(tmp_path)
    store.save(Settings(model="saved", persona_id="cn-roaster"))
    monkeypatch.setenv("CODEROASTER_MODEL", "from-env")
    monkeypatch.setenv("CODEROASTER_REQUEST_TIMEOUT", "12.5")
    monkeypatch.setenv("CODEROASTER_DEBUG_LOGGING", "yes")

    settings = store.load(overrides={"model": "from-cli", "persona_id": "en-praiser", "refresh": {"min_line_changes": 2}})

    assert settings.model == "from-env"
    assert settings.persona_id == "en-praiser"
    assert settings.request_timeout == 12.5
    assert settings.debug_logging is True
    assert settings.refresh.min_line_changes == 2
    assert settings.refresh.max_file_size == 102400


def test_invalid_float_env_override_is_ignored(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CODEROASTER_REQUEST_TIMEOUT", "soon")

    assert _store(tmp_path).load().request_timeout == 90.0


def test_vault_rejects_foreign_tokens(tmp_path: Path) -> None:
    vault = SecretVault(key_path=tmp_path / "key")
    token = vault.encrypt("value")

    assert vault.decrypt(token) == "value"
    assert vault.decrypt("") == ""
    with pytest.raises(ValueError):
        vault.decrypt("other:abc")
    with pytest.raises(ValueError):
        vault.decrypt("fernet:garbage")


def test_undecryptable_key_loads_as_empty(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.path.write_text(json.dumps({"api_key_ciphertext": "fernet:broken"}), encoding="utf-8")

    assert store.load().api_key == ""


@pytest.mark.parametrize(
    "base_url",
    ["https://openrouter.ai/api/v1", "http://localhost:11434/v1", "  https://api.example.com/v1  "],
)
def test_validate_endpoint_accepts_https_and_localhost(base_url: str) -> None:
    url, model = validate_endpoint(base_url, " model ")

    assert url == base_url.strip()
    assert model == "model"


@pytest.mark.parametrize(
    "base_url,model",
    [
        ("http://api.example.com/v1", "m"),
        ("ftp://example.com", "m"),
        ("https://", "m"),
        ("https://api.example.com/v1", "   "),
        ("", "m"),
    ],
)
def test_validate_endpoint_rejects_bad_input(base_url: str, model: str) -> None:
    with pytest.raises(ConfigurationError) as info:
        validate_endpoint(base_url, model)

    assert info.value.error_code == ErrorCode.INVALID_ENDPOINT


def test_redact_secret() -> None:
    assert redact_secret("") == ""
    assert redact_secret("abc") == "***"
    assert redact_secret("sk-123456") == "sk*****56"


def test_request_timeout_override_can_disable_timeout(tmp_path: Path) -> None:
    assert _store(tmp_path).load(overrides={"request_timeout": None}).request_timeout is None
