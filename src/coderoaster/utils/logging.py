"""Logging setup for the roaster panel.

Records always land in a rotating file under ``~/.coderoaster/logs``. While the
panel is watching a file the console renderer owns the terminal, so the stderr
handler is only installed for the short-lived commands.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

__all__ = ["debug_requested", "get_log_path", "setup_logging", "shutdown_logging"]

LOG_FILE_NAME = "coderoaster.log"
_DEFAULT_LOG_DIR = Path.home() / ".coderoaster" / "logs"
_DEBUG_ENV = "CODEROASTER_DEBUG"
_DEBUG_VALUES = {"1", "true", "yes", "on", "debug"}
_QUIET_LOGGERS: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "openai")
_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_INSTALLED: list[logging.Handler] = []
_LOG_PATH: Path | None = None


def debug_requested(settings_flag: bool = False) -> bool:
    """Return True when either the settings or ``CODEROASTER_DEBUG`` asks for debug output."""

    if settings_flag:
        return True
    value = os.environ.get(_DEBUG_ENV, "")
    return value.strip().lower() in _DEBUG_VALUES


def setup_logging(
    *,
    debug: bool = False,
    console: bool = True,
    log_dir: Path | str | None = None,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
) -> Path:
    """Install the panel's handlers on the root logger and return the log file path.

    Calling it again replaces the handlers from the previous call, so the CLI can
    switch to file-only output once it knows the panel is about to go live.
    """

    global _LOG_PATH
    shutdown_logging()

    level = logging.DEBUG if debug_requested(debug) else logging.INFO
    target_dir = _resolve_log_dir(log_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / LOG_FILE_NAME
    formatter = logging.Formatter(fmt=_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    _INSTALLED.append(file_handler)
    if console:
        # warnings only; debug chatter would interleave with streamed commentary
        console_handler = logging.StreamHandler()
        console_handler.setLevel(max(level, logging.WARNING))
        _INSTALLED.append(console_handler)

    root = logging.getLogger()
    for handler in _INSTALLED:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)
    logging.captureWarnings(True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    _LOG_PATH = log_path
    return log_path


def shutdown_logging() -> None:
    """Detach and close whatever :func:`setup_logging` installed."""

    root = logging.getLogger()
    while _INSTALLED:
        handler = _INSTALLED.pop()
        root.removeHandler(handler)
        handler.close()


def get_log_path() -> Path | None:
    return _LOG_PATH


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    override = os.environ.get("CODEROASTER_LOG_DIR")
    return Path(log_dir or override or _DEFAULT_LOG_DIR).expanduser()
