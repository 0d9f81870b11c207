"""Tests for the rotating-file logging setup."""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path
from typing import Iterator

import pytest

from coderoaster.utils import logging as logging_utils


@pytest.fixture(autouse=True)
def _restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    level = root.level
    yield
    logging_utils.shutdown_logging()
    root.setLevel(level)


def _installed(kind: type) -> list[logging.Handler]:
    return [handler for handler in logging.getLogger().handlers if type(handler) is kind]


def test_setup_writes_to_rotating_file(tmp_path: Path) -> None:
    log_path = logging_utils.setup_logging(log_dir=tmp_path)

    assert log_path == tmp_path / "coderoaster.log"
    assert logging_utils.get_log_path() == log_path
    assert len(_installed(logging.handlers.RotatingFileHandler)) == 1

    logging.getLogger("coderoaster.test").info("panel ready")
    for handler in _installed(logging.handlers.RotatingFileHandler):
        handler.flush()
    assert "panel ready" in log_path.read_text(encoding="utf-8")


def test_file_only_mode_leaves_the_terminal_alone(tmp_path: Path) -> None:
    logging_utils.setup_logging(log_dir=tmp_path, console=False)

    assert _installed(logging.StreamHandler) == []
    assert len(_installed(logging.handlers.RotatingFileHandler)) == 1


def test_console_handler_only_shows_warnings(tmp_path: Path) -> None:
    logging_utils.setup_logging(log_dir=tmp_path, debug=True)

    (console,) = _installed(logging.StreamHandler)
    assert console.level == logging.WARNING
    assert logging.getLogger().level == logging.DEBUG


def test_reconfiguring_replaces_previous_handlers(tmp_path: Path) -> None:
    logging_utils.setup_logging(log_dir=tmp_path)
    logging_utils.setup_logging(log_dir=tmp_path, console=False)

    assert len(_installed(logging.handlers.RotatingFileHandler)) == 1
    assert _installed(logging.StreamHandler) == []


def test_debug_environment_variable_enables_debug_level(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CODEROASTER_DEBUG", "1")

    logging_utils.setup_logging(log_dir=tmp_path, console=False)

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING


def test_default_level_is_info(tmp_path: Path) -> None:
    logging_utils.setup_logging(log_dir=tmp_path, console=False)

    assert logging.getLogger().level == logging.INFO


@pytest.mark.parametrize("value,expected", [("true", True), ("on", True), ("0", False), ("", False)])
def test_debug_requested_reads_environment(monkeypatch: pytest.MonkeyPatch, value: str, expected: bool) -> None:
    monkeypatch.setenv("CODEROASTER_DEBUG", value)

    assert logging_utils.debug_requested() is expected
    assert logging_utils.debug_requested(True) is True


def test_log_dir_falls_back_to_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CODEROASTER_LOG_DIR", str(tmp_path / "env-logs"))

    log_path = logging_utils.setup_logging(console=False)

    assert log_path == tmp_path / "env-logs" / "coderoaster.log"
