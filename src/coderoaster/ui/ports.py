"""Interfaces the refresh orchestrator consumes from its host."""

from __future__ import annotations

from typing import Any, Callable, Mapping, Protocol

from ..ai.ai_types import EndpointConfig, PersonaPrompt
from ..documents.snapshot import DocumentSnapshot
from ..errors import NoticeKind

__all__ = ["ActiveDocumentProvider", "ConfigProvider", "RendererSink"]


class ActiveDocumentProvider(Protocol):
    """Host editor view of the document the user is looking at."""

    def active_identity(self) -> str | None:
        """Return the identity of the active document without reading it."""
        ...

    async def stat_size(self, identity: str) -> int:
        """Return the document size in bytes from metadata."""
        ...

    async def get_active_snapshot(self) -> DocumentSnapshot | None:
        ...

    def on_active_document_changed(self, callback: Callable[[], None]) -> None:
        ...

    def on_visibility_changed(self, callback: Callable[[bool], None]) -> None:
        ...


class ConfigProvider(Protocol):
    """Credential, endpoint and persona lookup."""

    async def get_credential(self) -> str | None:
        ...

    async def get_endpoint_config(self) -> EndpointConfig | None:
        ...

    def get_current_persona_id(self) -> str:
        ...

    def get_persona_prompt(self, persona_id: str) -> PersonaPrompt:
        ...


class RendererSink(Protocol):
    """Presentation layer for notices and streamed commentary."""

    def show_notice(self, kind: NoticeKind, details: Mapping[str, Any]) -> None:
        ...

    def show_stream_start(self, header: str, file_label: str) -> None:
        ...

    def on_progress(self, text: str) -> None:
        """Receive the full commentary text generated so far."""
        ...

    def on_stream_done(self) -> None:
        ...

    def on_stream_error(self, message: str) -> None:
        ...
