"""Settings dataclasses and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping
from urllib.parse import urlparse

from cryptography.fernet import Fernet, InvalidToken

from ..ai.prompts import DEFAULT_PERSONA_ID
from ..errors import ConfigurationError, ErrorCode

__all__ = [
    "DEFAULT_SUPPORTED_EXTENSIONS",
    "RefreshPolicy",
    "Settings",
    "SettingsStore",
    "SecretVault",
    "redact_secret",
    "validate_endpoint",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".coderoaster"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_ENV_OVERRIDES: Mapping[str, str] = {
    "CODEROASTER_API_KEY": "api_key",
    "CODEROASTER_BASE_URL": "base_url",
    "CODEROASTER_MODEL": "model",
    "CODEROASTER_PERSONA": "persona_id",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "CODEROASTER_DEBUG_LOGGING": "debug_logging",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "CODEROASTER_REQUEST_TIMEOUT": "request_timeout",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_NULLABLE_FIELDS = {"request_timeout"}
_API_KEY_FIELD = "api_key_ciphertext"

DEFAULT_SUPPORTED_EXTENSIONS: tuple[str, ...] = (
    ".js", ".ts", ".jsx", ".tsx", ".vue", ".svelte",
    ".py", ".rb", ".go", ".rs", ".java", ".kt", ".swift",
    ".c", ".cpp", ".h", ".hpp", ".cs", ".php",
    ".scala", ".clj", ".hs", ".ml", ".ex", ".exs",
    ".lua", ".r", ".m", ".sh", ".bash", ".zsh",
    ".css", ".scss", ".sass", ".less", ".html", ".json",
    ".yaml", ".yml", ".toml", ".ini", ".cfg", ".conf",
)


@dataclass(slots=True)
class RefreshPolicy:
    """Thresholds that decide when the panel asks for a new commentary."""

    supported_extensions: tuple[str, ...] = DEFAULT_SUPPORTED_EXTENSIONS
    max_file_size: int = 100 * 1024
    min_requery_interval: float = 60.0
    min_line_changes: int = 10
    auto_refresh_interval: float = 5.0
    history_capacity: int = 100

    def __post_init__(self) -> None:
        self.supported_extensions = tuple(
            ext.lower() if ext.startswith(".") else f".{ext.lower()}"
            for ext in self.supported_extensions
        )

    def supports(self, extension: str) -> bool:
        return extension.lower() in self.supported_extensions


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions."""

    base_url: str = "https://openrouter.ai/api/v1/chat/completions"
    api_key: str = ""
    model: str = "nvidia/nemotron-3-nano-30b-a3b:free"
    persona_id: str = DEFAULT_PERSONA_ID
    request_timeout: float | None = 90.0
    default_headers: dict[str, str] = field(default_factory=dict)
    custom_personas: list[dict[str, Any]] = field(default_factory=list)
    debug_logging: bool = False
    refresh: RefreshPolicy = field(default_factory=RefreshPolicy)


def validate_endpoint(base_url: str, model: str) -> tuple[str, str]:
    """Return trimmed ``(base_url, model)`` or raise :class:`ConfigurationError`.

    Base URLs must use HTTPS, except ``http://localhost`` for local servers.
    """

    trimmed_url = (base_url or "").strip()
    if not trimmed_url.startswith("https://") and not trimmed_url.startswith("http://localhost"):
        raise ConfigurationError(
            error_code=ErrorCode.INVALID_ENDPOINT,
            message="API Base URL must use HTTPS (or http://localhost for local development)",
            details={"base_url": trimmed_url},
        )
    parsed = urlparse(trimmed_url)
    if not parsed.netloc:
        raise ConfigurationError(
            error_code=ErrorCode.INVALID_ENDPOINT,
            message="Invalid API Base URL format",
            details={"base_url": trimmed_url},
        )
    trimmed_model = (model or "").strip()
    if not trimmed_model:
        raise ConfigurationError(
            error_code=ErrorCode.INVALID_ENDPOINT,
            message="Model name cannot be empty",
        )
    return trimmed_url, trimmed_model


class SecretVault:
    """Encrypts and decrypts the API key with a Fernet key stored on disk."""

    name = "fernet"

    def __init__(self, *, key_path: Path | None = None) -> None:
        self._key_path = key_path or (_SETTINGS_DIR / "settings.key")
        self._fernet: Fernet | None = None

    @property
    def key_path(self) -> Path:
        return self._key_path

    def encrypt(self, secret: str) -> str:
        if not secret:
            return ""
        token = self._get_fernet().encrypt(secret.encode("utf-8"))
        return f"{self.name}:{token.decode('ascii')}"

    def decrypt(self, token: str | None) -> str:
        if not token:
            return ""
        prefix, _, payload = token.partition(":")
        if not payload:
            prefix, payload = self.name, token
        if prefix != self.name:
            raise ValueError(f"Unknown secret token prefix {prefix!r}")
        try:
            return self._get_fernet().decrypt(payload.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("Invalid Fernet token") from exc

    def _get_fernet(self) -> Fernet:
        if self._fernet is None:
            self._fernet = Fernet(self._load_or_create_key())
        return self._fernet

    def _load_or_create_key(self) -> bytes:
        path = self._key_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            return path.read_bytes().strip()
        key = Fernet.generate_key()
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_bytes(key)
        if os.name != "nt":  # pragma: no cover - depends on OS
            os.chmod(tmp_path, 0o600)
        tmp_path.replace(path)
        return key


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None, *, vault: SecretVault | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH
        self._vault = vault or SecretVault(key_path=self._path.with_suffix(".key"))

    @property
    def path(self) -> Path:
        return self._path

    @property
    def vault(self) -> SecretVault:
        return self._vault

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, applying CLI then environment overrides."""

        payload = self._read_payload()
        settings = Settings()
        if payload:
            api_key = self._decrypt_api_key(payload.pop(_API_KEY_FIELD, None), payload.pop("api_key", None))
            data = _filter_fields(payload)
            refresh_payload = data.get("refresh")
            if isinstance(refresh_payload, Mapping):
                data["refresh"] = _build_refresh_policy(refresh_payload)
            elif "refresh" in data:
                data["refresh"] = RefreshPolicy()
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()
            if api_key:
                settings = replace(settings, api_key=api_key)
            LOGGER.debug("Settings loaded from %s", self._path)

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")
        return self._apply_env_overrides(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with an atomic replace."""

        data = asdict(settings)
        api_key = data.pop("api_key", "") or ""
        if api_key:
            data[_API_KEY_FIELD] = self._vault.encrypt(api_key)
        data["refresh"]["supported_extensions"] = list(settings.refresh.supported_extensions)
        data["version"] = _SETTINGS_VERSION
        body = json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return payload

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {item.name for item in fields(Settings)}
        filtered: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in allowed:
                continue
            if value is None and key not in _NULLABLE_FIELDS:
                continue
            filtered[key] = value
        refresh_override = filtered.get("refresh")
        if isinstance(refresh_override, Mapping):
            merged = asdict(settings.refresh)
            merged.update(refresh_override)
            filtered["refresh"] = _build_refresh_policy(merged)
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid float", env_name, value)
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings

    def _decrypt_api_key(self, ciphertext: str | None, legacy_plaintext: str | None) -> str:
        if ciphertext:
            try:
                return self._vault.decrypt(ciphertext)
            except ValueError as exc:
                LOGGER.warning("Unable to decrypt API key: %s", exc)
                return ""
        if legacy_plaintext:
            LOGGER.info("Detected plaintext API key in settings; it will be encrypted on next save.")
            return str(legacy_plaintext)
        return ""


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {item.name for item in fields(Settings)} - {"api_key"}
    return {key: value for key, value in payload.items() if key in allowed}


def _build_refresh_policy(payload: Mapping[str, Any]) -> RefreshPolicy:
    allowed = {item.name for item in fields(RefreshPolicy)}
    data = {key: value for key, value in payload.items() if key in allowed}
    if "supported_extensions" in data:
        data["supported_extensions"] = tuple(data["supported_extensions"] or ())
    try:
        return RefreshPolicy(**data)
    except TypeError as exc:
        LOGGER.warning("Refresh policy payload contained unexpected data: %s", exc)
        return RefreshPolicy()


def redact_secret(value: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        return ""
    if len(stripped) <= 4:
        return "*" * len(stripped)
    return f"{stripped[:2]}{'*' * (len(stripped) - 4)}{stripped[-2:]}"
