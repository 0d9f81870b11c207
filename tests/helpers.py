"""Shared test helpers and stub classes.

Import from here instead of duplicating these fakes in individual test files.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from coderoaster.ai.ai_types import EndpointConfig, PersonaPrompt
from coderoaster.documents.snapshot import DocumentSnapshot
from coderoaster.errors import NoticeKind


class FakeDocumentProvider:
    """In-memory active document with controllable content and size."""

    def __init__(
        self,
        identity: str | None = "/work/main.py",
        content: str = "print('hi')\n",
        *,
        size: int | None = None,
        captured_at: datetime | None = None,
    ) -> None:
        self.identity = identity
        self.content = content
        self.size = size
        self.captured_at = captured_at
        self.snapshot_reads = 0
        self.change_listeners: list[Callable[[], None]] = []
        self.visibility_listeners: list[Callable[[bool], None]] = []

    def active_identity(self) -> str | None:
        return self.identity

    async def stat_size(self, identity: str) -> int:
        if self.size is not None:
            return self.size
        return len(self.content.encode("utf-8"))

    async def get_active_snapshot(self) -> DocumentSnapshot | None:
        self.snapshot_reads += 1
        if self.identity is None:
            return None
        return DocumentSnapshot(
            identity=self.identity,
            content=self.content,
            captured_at=self.captured_at or datetime.now(timezone.utc),
        )

    def on_active_document_changed(self, callback: Callable[[], None]) -> None:
        self.change_listeners.append(callback)

    def on_visibility_changed(self, callback: Callable[[bool], None]) -> None:
        self.visibility_listeners.append(callback)


class FakeConfigProvider:
    def __init__(
        self,
        *,
        credential: str | None = "sk-test",
        endpoint: EndpointConfig | None = EndpointConfig("https://api.example.com/v1", "test-model"),
        persona_id: str = "en-roaster",
    ) -> None:
        self.credential = credential
        self.endpoint = endpoint
        self.persona_id = persona_id

    async def get_credential(self) -> str | None:
        return self.credential

    async def get_endpoint_config(self) -> EndpointConfig | None:
        return self.endpoint

    def get_current_persona_id(self) -> str:
        return self.persona_id

    def get_persona_prompt(self, persona_id: str) -> PersonaPrompt:
        return PersonaPrompt(system_prompt=f"prompt:{persona_id}", display_header=f"Header {persona_id}")


class RecordingRenderer:
    """Records every renderer call as ``(method, *args)`` tuples."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []

    def show_notice(self, kind: NoticeKind, details: Mapping[str, Any]) -> None:
        self.calls.append(("show_notice", kind, dict(details)))

    def show_stream_start(self, header: str, file_label: str) -> None:
        self.calls.append(("show_stream_start", header, file_label))

    def on_progress(self, text: str) -> None:
        self.calls.append(("on_progress", text))

    def on_stream_done(self) -> None:
        self.calls.append(("on_stream_done",))

    def on_stream_error(self, message: str) -> None:
        self.calls.append(("on_stream_error", message))

    def names(self) -> list[str]:
        return [call[0] for call in self.calls]

    def notices(self) -> list[NoticeKind]:
        return [call[1] for call in self.calls if call[0] == "show_notice"]


class FakeStreamer:
    """Completion client stub that replays fragments or raises an error.

    Set ``gate`` to an :class:`asyncio.Event` to hold the stream open until
    the test releases it.
    """

    def __init__(
        self,
        fragments: list[str] | None = None,
        *,
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.fragments = fragments if fragments is not None else ["Nice ", "code."]
        self.error = error
        self.gate = gate
        self.calls: list[dict[str, Any]] = []

    async def stream(
        self,
        endpoint: str,
        credential: str,
        model: str,
        system_prompt: str,
        user_content: str,
        on_progress: Callable[[str], None] | None = None,
    ) -> str:
        self.calls.append(
            {
                "endpoint": endpoint,
                "credential": credential,
                "model": model,
                "system_prompt": system_prompt,
                "user_content": user_content,
            }
        )
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        text = ""
        for fragment in self.fragments:
            text += fragment
            if on_progress is not None:
                on_progress(text)
        return text


def sse_body(*fragments: str, done: bool = True) -> bytes:
    """Encode fragments as an OpenAI-style server-sent event body."""

    lines = [
        "data: " + json.dumps({"choices": [{"delta": {"content": fragment}}]}, ensure_ascii=False)
        for fragment in fragments
    ]
    if done:
        lines.append("data: [DONE]")
    return ("\n\n".join(lines) + "\n\n").encode("utf-8")
