"""Incremental parser for server-sent chat-completion streams."""

from __future__ import annotations

import codecs
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from .ai_types import ProgressCallback

__all__ = ["DATA_PREFIX", "DONE_SENTINEL", "StreamAccumulator", "collect", "extract_delta_content"]

LOGGER = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


def extract_delta_content(payload: Any) -> str | None:
    """Return ``choices[0].delta.content`` from a stream frame, if present."""

    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


def _new_decoder() -> codecs.IncrementalDecoder:
    return codecs.getincrementaldecoder("utf-8")(errors="replace")


@dataclass(slots=True)
class StreamAccumulator:
    """Reassembles generated text from raw response body chunks.

    Bytes are decoded with a stateful decoder so multi-byte characters split
    across chunks survive. Incomplete lines stay in ``buffer`` until the
    next chunk completes them. The progress callback receives the full text
    accumulated so far, never the bare fragment.
    """

    on_progress: ProgressCallback | None = None
    buffer: str = ""
    full_text: str = ""
    done: bool = False
    skipped_frames: int = 0
    _decoder: codecs.IncrementalDecoder = field(default_factory=_new_decoder, repr=False)

    def feed(self, chunk: bytes) -> bool:
        """Consume one body chunk; return ``True`` once the sentinel arrives."""

        if self.done:
            return True
        text = self._decoder.decode(chunk)
        if not text:
            return False
        lines = (self.buffer + text).split("\n")
        self.buffer = lines.pop()
        return self._consume(lines)

    def finish(self) -> str:
        """Flush decoder state and any unterminated final line."""

        if not self.done:
            tail = self._decoder.decode(b"", final=True)
            pending = self.buffer + tail
            self.buffer = ""
            if pending:
                self._consume(pending.split("\n"))
        return self.full_text

    def feed_all(self, chunks: Iterable[bytes]) -> str:
        """Convenience helper for already-buffered bodies."""

        for chunk in chunks:
            if self.feed(chunk):
                break
        return self.finish()

    def _consume(self, lines: Iterable[str]) -> bool:
        for raw_line in lines:
            line = raw_line.rstrip("\r")
            if not line.startswith(DATA_PREFIX):
                continue
            data = line[len(DATA_PREFIX):]
            if data == DONE_SENTINEL:
                self.done = True
                self.buffer = ""
                return True
            try:
                payload = json.loads(data)
            except ValueError:
                self.skipped_frames += 1
                LOGGER.debug("Skipping unparsable stream frame (%s chars)", len(data))
                continue
            fragment = extract_delta_content(payload)
            if fragment is None:
                continue
            self.full_text += fragment
            if self.on_progress is not None:
                self.on_progress(self.full_text)
        return False


def collect(chunks: Iterable[bytes], on_progress: Callable[[str], None] | None = None) -> str:
    """Parse a complete list of chunks and return the generated text."""

    return StreamAccumulator(on_progress=on_progress).feed_all(chunks)
