"""Plain-text renderer sink writing commentary to a terminal stream."""

from __future__ import annotations

import sys
from typing import Any, Mapping, TextIO

from ...errors import NoticeKind

__all__ = ["ConsoleRenderer"]

_NOTICE_TEXT: Mapping[NoticeKind, str] = {
    NoticeKind.NO_ACTIVE_DOCUMENT: "Open a file to get a commentary.",
    NoticeKind.UNSUPPORTED_FILE_TYPE: "This file type is not supported.",
    NoticeKind.FILE_TOO_LARGE: "This file is too large to review.",
    NoticeKind.EMPTY_FILE: "This file is empty.",
    NoticeKind.NEEDS_CONFIGURATION: (
        "API configuration required: set the base URL, model name and API key "
        "(for example via CODEROASTER_API_KEY)."
    ),
}


class ConsoleRenderer:
    """Prints notices and streamed commentary.

    Progress arrives as the full text so far; only the unseen suffix is
    written, and a divergent text is reprinted from scratch.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream or sys.stdout
        self._printed = ""

    def show_notice(self, kind: NoticeKind, details: Mapping[str, Any]) -> None:
        message = _NOTICE_TEXT.get(kind, str(kind.value))
        extra = details.get("message") if isinstance(details, Mapping) else None
        if extra and kind is not NoticeKind.NEEDS_CONFIGURATION:
            message = f"{message} ({extra})"
        self._write(f"[{kind.value}] {message}\n")

    def show_stream_start(self, header: str, file_label: str) -> None:
        self._printed = ""
        self._write(f"\n== {header}: {file_label} ==\n")

    def on_progress(self, text: str) -> None:
        if text.startswith(self._printed):
            self._write(text[len(self._printed):])
        else:
            self._write(f"\n{text}")
        self._printed = text

    def on_stream_done(self) -> None:
        self._write("\n")
        self._printed = ""

    def on_stream_error(self, message: str) -> None:
        self._write(f"\n[error] {message}\n")
        self._printed = ""

    def _write(self, text: str) -> None:
        self._stream.write(text)
        self._stream.flush()
