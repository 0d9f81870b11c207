"""Command-line bootstrap for running the commentary panel over a file."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, get_args, get_origin, get_type_hints

from .ai.client import ClientSettings, CompletionClient
from .errors import ApiClientError, ConfigurationError
from .services.settings import Settings, SettingsStore, redact_secret, validate_endpoint
from .ui.infrastructure import ConsoleRenderer, FileDocumentProvider, SettingsConfigProvider
from .ui.ports import RendererSink
from .ui.refresh_orchestrator import CompletionStreamer, RefreshOrchestrator, RefreshOutcome
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_LOGGER = logging.getLogger(__name__)


def configure_logging(debug: bool = False, *, console: bool = True) -> None:
    """Configure structured logging for the application."""

    log_path = logging_utils.setup_logging(debug=debug, console=console)
    _LOGGER.debug(
        "Logging configured (level=%s, console=%s, file=%s)",
        logging.getLevelName(logging.getLogger().level),
        console,
        log_path,
    )


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except OSError as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


def build_client(settings: Settings, *, debug_logging: bool = False) -> CompletionClient:
    return CompletionClient(
        ClientSettings(
            request_timeout=settings.request_timeout,
            default_headers=settings.default_headers or None,
            debug_logging=debug_logging or settings.debug_logging,
        )
    )


async def run_panel(
    settings: Settings,
    path: Path,
    *,
    once: bool = False,
    force: bool = False,
    renderer: RendererSink | None = None,
    client: CompletionStreamer | None = None,
) -> RefreshOutcome | None:
    """Run the panel over *path* until cancelled, or for one cycle with ``once``."""

    documents = FileDocumentProvider(path)
    config = SettingsConfigProvider(settings)
    sink = renderer or ConsoleRenderer()
    owned_client = build_client(settings) if client is None else None
    streamer: CompletionStreamer = owned_client or client  # type: ignore[assignment]
    orchestrator = RefreshOrchestrator(
        documents, config, sink, streamer, policy=settings.refresh, visible=once
    )
    try:
        if once:
            return await orchestrator.refresh_now(force=force)
        orchestrator.start()
        documents.start_watching()
        documents.set_visible(True)
        await asyncio.Event().wait()
        return None
    finally:
        orchestrator.dispose()
        documents.stop_watching()
        if owned_client is not None:
            await owned_client.aclose()


async def check_connection(settings: Settings, *, client: CompletionClient | None = None) -> str:
    """Validate configuration and send a one-line test prompt."""

    base_url, model = validate_endpoint(settings.base_url, settings.model)
    if not settings.api_key:
        raise ConfigurationError()
    active = client or build_client(settings)
    try:
        return await active.test_connection(base_url, settings.api_key, model)
    finally:
        if client is None:
            await active.aclose()


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point invoked by the `code-roaster` console script."""

    args = _parse_cli_args(argv)

    configure_logging()

    settings_path = args.settings_path or os.environ.get("CODEROASTER_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc
    if args.persona:
        cli_overrides["persona_id"] = args.persona

    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return

    # the console renderer owns the terminal while watching
    watching = args.path is not None and not (args.once or args.test_connection)
    configure_logging(settings.debug_logging, console=not watching)

    if args.test_connection:
        try:
            print(asyncio.run(check_connection(settings)))
        except (ApiClientError, ConfigurationError) as exc:
            print(exc.message, file=sys.stderr)
            raise SystemExit(1) from exc
        return

    if args.path is None:
        print("A file path is required unless --dump-settings or --test-connection is given.", file=sys.stderr)
        raise SystemExit(2)

    try:
        outcome = asyncio.run(run_panel(settings, Path(args.path), once=args.once, force=args.force))
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
        _LOGGER.info("Shutdown requested by user.")
        return
    if outcome is RefreshOutcome.FAILED:
        raise SystemExit(1)


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="code-roaster",
        description="Watch a source file and stream AI commentary whenever it changes enough.",
    )
    parser.add_argument("path", nargs="?", help="File to watch.")
    parser.add_argument("--persona", metavar="ID", help="Persona id to use (e.g. en-roaster).")
    parser.add_argument("--once", action="store_true", help="Run a single refresh cycle and exit.")
    parser.add_argument("--force", action="store_true", help="With --once, skip the staleness check.")
    parser.add_argument(
        "--test-connection",
        action="store_true",
        help="Send a tiny prompt to verify the API configuration and exit.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.coderoaster/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings before launch (repeatable).",
    )
    return parser.parse_args(argv)


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        annotation = type_hints.get(key, fields[key].type)
        overrides[key] = _coerce_value(annotation, raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target = _resolve_annotation(annotation)
    normalized = raw_value.strip()

    if _allows_none(annotation) and normalized.lower() in {"none", "null"}:
        return None
    if target is str or target is Any:
        return normalized
    if target is bool:
        return _parse_bool(normalized)
    if target is int:
        return int(normalized, 10)
    if target is float:
        return float(normalized)
    if is_dataclass(target):
        try:
            payload = json.loads(normalized or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Dataclass overrides must be valid JSON") from exc
        if isinstance(target, type) and isinstance(payload, dict):
            return target(**payload)
        raise ValueError("Dataclass overrides must be JSON objects")
    if target is list:
        try:
            return json.loads(normalized or "[]")
        except json.JSONDecodeError as exc:
            raise ValueError("List overrides must be valid JSON arrays") from exc
    if target is dict:
        try:
            return json.loads(normalized or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Dict overrides must be valid JSON objects") from exc
    return normalized


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin in {list, dict}:
        return origin
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    if not args:
        return origin
    return args[0]


def _allows_none(annotation: Any) -> bool:
    return type(None) in get_args(annotation)


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    payload = asdict(settings)
    payload["api_key"] = redact_secret(settings.api_key)
    payload["refresh"]["supported_extensions"] = list(settings.refresh.supported_extensions)
    metadata = {
        "path": str(store.path),
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    json.dump({"settings": payload, "meta": metadata}, destination, indent=2, ensure_ascii=False)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith("CODEROASTER_"))
