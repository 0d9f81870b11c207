"""Active-document provider backed by files on disk.

Stands in for a host editor: one file is "active" at a time, edits are
noticed by polling its stat signature, and visibility is toggled by the
caller.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from ...documents.snapshot import DocumentSnapshot
from ...utils import file_io

__all__ = ["FileDocumentProvider"]

_LOGGER = logging.getLogger(__name__)


class FileDocumentProvider:
    """Serves snapshots of a watched file and reports when it changes."""

    def __init__(self, path: Path | str | None = None, *, poll_interval: float = 1.0) -> None:
        self._path: Path | None = None
        self._signature: file_io.FileSignature | None = None
        self._poll_interval = poll_interval
        self._visible = False
        self._change_listeners: list[Callable[[], None]] = []
        self._visibility_listeners: list[Callable[[bool], None]] = []
        self._watch_task: asyncio.Task[None] | None = None
        if path is not None:
            self._path = Path(path).expanduser()
            self._signature = file_io.file_signature(self._path)

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def visible(self) -> bool:
        return self._visible

    # ------------------------------------------------------------------
    # ActiveDocumentProvider
    # ------------------------------------------------------------------
    def active_identity(self) -> str | None:
        if self._path is None:
            return None
        return file_io.canonical_identity(self._path)

    async def stat_size(self, identity: str) -> int:
        return await asyncio.to_thread(file_io.stat_size, identity)

    async def get_active_snapshot(self) -> DocumentSnapshot | None:
        identity = self.active_identity()
        if identity is None:
            return None
        try:
            content = await asyncio.to_thread(file_io.read_text, identity, errors="replace")
        except FileNotFoundError:
            _LOGGER.debug("Active file %s disappeared before it could be read", identity)
            return None
        return DocumentSnapshot(identity=identity, content=content, captured_at=datetime.now(timezone.utc))

    def on_active_document_changed(self, callback: Callable[[], None]) -> None:
        if callback not in self._change_listeners:
            self._change_listeners.append(callback)

    def on_visibility_changed(self, callback: Callable[[bool], None]) -> None:
        if callback not in self._visibility_listeners:
            self._visibility_listeners.append(callback)

    # ------------------------------------------------------------------
    # Host controls
    # ------------------------------------------------------------------
    def set_active(self, path: Path | str | None) -> None:
        """Switch the active file and notify listeners."""

        self._path = Path(path).expanduser() if path is not None else None
        self._signature = file_io.file_signature(self._path) if self._path is not None else None
        self._notify_changed()

    def set_visible(self, visible: bool) -> None:
        if visible == self._visible:
            return
        self._visible = visible
        for callback in list(self._visibility_listeners):
            callback(visible)

    def poll(self) -> bool:
        """Check the active file for edits; return ``True`` when it changed."""

        if self._path is None:
            return False
        current = file_io.file_signature(self._path)
        if current == self._signature:
            return False
        self._signature = current
        self._notify_changed()
        return True

    def start_watching(self) -> None:
        if self._watch_task is not None and not self._watch_task.done():
            return
        self._watch_task = asyncio.get_running_loop().create_task(self._watch_loop())

    def stop_watching(self) -> None:
        task = self._watch_task
        self._watch_task = None
        if task is not None and not task.done():
            task.cancel()

    async def _watch_loop(self) -> None:
        while True:
            await asyncio.sleep(self._poll_interval)
            self.poll()

    def _notify_changed(self) -> None:
        for callback in list(self._change_listeners):
            callback()
