"""Refresh scheduling for the live commentary panel.

The orchestrator decides whether the active file needs a fresh commentary,
keeps at most one request in flight, streams the response into the renderer
and records successful results in the history store.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Protocol

from ..ai.ai_types import ProgressCallback
from ..ai.prompts import build_user_prompt
from ..documents.snapshot import DocumentSnapshot, file_extension
from ..errors import ApiClientError, ConfigurationError, NoticeKind, ValidationError
from ..services import telemetry as telemetry_service
from ..services.history import HistoryEntry, HistoryStore
from ..services.settings import RefreshPolicy
from .ports import ActiveDocumentProvider, ConfigProvider, RendererSink

__all__ = [
    "CompletionStreamer",
    "PanelState",
    "RefreshOrchestrator",
    "RefreshOutcome",
    "RefreshState",
]

LOGGER = logging.getLogger(__name__)


class PanelState(Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"
    SUSPENDED = "suspended"


class RefreshOutcome(Enum):
    """Which transition a refresh cycle ended with."""

    SKIPPED = "skipped"
    NO_DOCUMENT = "no_document"
    INVALID = "invalid"
    CACHED = "cached"
    NEEDS_CONFIGURATION = "needs_configuration"
    GENERATED = "generated"
    FAILED = "failed"


@dataclass(slots=True)
class RefreshState:
    """Per-panel scheduling state."""

    is_visible: bool = False
    is_refreshing: bool = False
    timer_handle: asyncio.Task[None] | None = None


class CompletionStreamer(Protocol):
    async def stream(
        self,
        endpoint: str,
        credential: str,
        model: str,
        system_prompt: str,
        user_content: str,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        ...


class RefreshOrchestrator:
    """Owns the refresh state machine for one commentary panel.

    Triggers (visibility, active file change, timer tick, forced refresh)
    arriving while a cycle is running are dropped, not queued. After
    :meth:`dispose` renderer calls from a still-running cycle are ignored.
    """

    def __init__(
        self,
        documents: ActiveDocumentProvider,
        config: ConfigProvider,
        renderer: RendererSink,
        client: CompletionStreamer,
        *,
        policy: RefreshPolicy | None = None,
        history: HistoryStore | None = None,
        visible: bool = False,
    ) -> None:
        self._documents = documents
        self._config = config
        self._renderer = renderer
        self._client = client
        self._policy = policy or RefreshPolicy()
        self._history = history or HistoryStore(
            self._policy.history_capacity, on_evict=self._handle_history_eviction
        )
        self._state = RefreshState(is_visible=visible)
        self._active_task: asyncio.Task[RefreshOutcome] | None = None
        self._disposed = False
        self._started = False

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def state(self) -> PanelState:
        if self._disposed or not self._state.is_visible:
            return PanelState.SUSPENDED
        if self._state.is_refreshing:
            return PanelState.REFRESHING
        return PanelState.IDLE

    @property
    def refresh_state(self) -> RefreshState:
        return self._state

    @property
    def history(self) -> HistoryStore:
        return self._history

    @property
    def policy(self) -> RefreshPolicy:
        return self._policy

    @property
    def active_task(self) -> asyncio.Task[RefreshOutcome] | None:
        return self._active_task

    @property
    def disposed(self) -> bool:
        return self._disposed

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        """Subscribe to host signals and, when visible, start ticking."""

        if self._started or self._disposed:
            return
        self._started = True
        self._documents.on_active_document_changed(self.handle_active_document_changed)
        self._documents.on_visibility_changed(self.set_visible)
        if self._state.is_visible:
            self._start_timer()
            self.refresh()

    def dispose(self) -> None:
        """Stop the timer and ignore anything a running cycle still reports."""

        if self._disposed:
            return
        self._disposed = True
        self._state.is_visible = False
        self._stop_timer()
        LOGGER.debug("Commentary panel disposed")

    def set_visible(self, visible: bool) -> None:
        if self._disposed:
            return
        if not visible:
            if self._state.is_visible:
                LOGGER.debug("Commentary panel hidden; suspending refreshes")
            self._state.is_visible = False
            self._stop_timer()
            return
        self._state.is_visible = True
        self._start_timer()
        self.refresh()

    def handle_active_document_changed(self) -> None:
        self.refresh()

    # ------------------------------------------------------------------
    # Refresh entry points
    # ------------------------------------------------------------------
    def refresh(self, *, force: bool = False) -> asyncio.Task[RefreshOutcome] | None:
        """Schedule a refresh cycle unless one is already running.

        Returns the scheduled task, or ``None`` when the trigger was dropped.
        """

        if not self._accepts_trigger():
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            LOGGER.debug("Refresh requested without a running event loop; ignoring")
            return None
        self._state.is_refreshing = True
        task = loop.create_task(self._run_cycle(force))
        self._active_task = task
        return task

    async def refresh_now(self, *, force: bool = False) -> RefreshOutcome:
        """Run a refresh cycle inline, returning how it ended."""

        if not self._accepts_trigger():
            return RefreshOutcome.SKIPPED
        self._state.is_refreshing = True
        return await self._run_cycle(force)

    def _accepts_trigger(self) -> bool:
        if self._disposed or not self._state.is_visible:
            return False
        if self._state.is_refreshing:
            LOGGER.debug("Refresh already in progress; dropping trigger")
            return False
        return True

    # ------------------------------------------------------------------
    # Refresh cycle
    # ------------------------------------------------------------------
    async def _run_cycle(self, force: bool) -> RefreshOutcome:
        try:
            return await self._cycle(force)
        except Exception as exc:
            LOGGER.exception("Commentary refresh failed unexpectedly")
            telemetry_service.emit("commentary.stream_failed", {"error": type(exc).__name__})
            self._render(self._renderer.on_stream_error, f"Unexpected error: {exc}")
            return RefreshOutcome.FAILED
        finally:
            self._state.is_refreshing = False

    async def _cycle(self, force: bool) -> RefreshOutcome:
        try:
            snapshot = await self._validate()
        except ValidationError as exc:
            LOGGER.debug("Active document rejected: %s", exc)
            telemetry_service.emit("commentary.validation_failed", {"reason": exc.error_code})
            self._render(self._renderer.show_notice, exc.notice_kind, exc.to_dict())
            if exc.notice_kind is NoticeKind.NO_ACTIVE_DOCUMENT:
                return RefreshOutcome.NO_DOCUMENT
            return RefreshOutcome.INVALID

        identity = snapshot.identity
        persona_id = self._config.get_current_persona_id()
        if not force and not self._history.is_stale(
            identity,
            snapshot,
            persona_id,
            min_interval=self._policy.min_requery_interval,
            min_line_changes=self._policy.min_line_changes,
        ):
            cached = self._history.get(identity)
            if cached is not None:
                self._render_cached(cached, snapshot)
                return RefreshOutcome.CACHED

        credential = await self._config.get_credential()
        endpoint = await self._config.get_endpoint_config()
        if not credential or endpoint is None:
            error = ConfigurationError()
            LOGGER.info("Commentary skipped for %s: %s", identity, error.message)
            self._render(self._renderer.show_notice, NoticeKind.NEEDS_CONFIGURATION, error.to_dict())
            return RefreshOutcome.NEEDS_CONFIGURATION

        prompt = self._config.get_persona_prompt(persona_id)
        self._render(self._renderer.show_stream_start, prompt.display_header, snapshot.file_label)
        telemetry_service.emit(
            "commentary.stream_started",
            {"identity": identity, "persona_id": persona_id, "model": endpoint.model},
        )
        try:
            text = await self._client.stream(
                endpoint.base_url,
                credential,
                endpoint.model,
                prompt.system_prompt,
                build_user_prompt(snapshot.file_label, snapshot.content),
                self._forward_progress,
            )
        except ApiClientError as exc:
            LOGGER.warning("Commentary request for %s failed: %s", identity, exc)
            telemetry_service.emit(
                "commentary.stream_failed",
                {"identity": identity, "error": exc.error_code, "status_code": exc.status_code},
            )
            self._render(self._renderer.on_stream_error, exc.message)
            return RefreshOutcome.FAILED

        self._history.put(identity, HistoryEntry.from_snapshot(snapshot, text, persona_id))
        telemetry_service.emit(
            "commentary.stream_completed",
            {"identity": identity, "persona_id": persona_id, "chars": len(text)},
        )
        self._render(self._renderer.on_stream_done)
        return RefreshOutcome.GENERATED

    async def _validate(self) -> DocumentSnapshot:
        identity = self._documents.active_identity()
        if identity is None:
            raise ValidationError.no_active_document()
        extension = file_extension(identity)
        if not self._policy.supports(extension):
            raise ValidationError.unsupported_type(identity, extension)
        try:
            size = await self._documents.stat_size(identity)
        except FileNotFoundError:
            raise ValidationError.no_active_document() from None
        if size > self._policy.max_file_size:
            raise ValidationError.too_large(identity, size, self._policy.max_file_size)
        snapshot = await self._documents.get_active_snapshot()
        if snapshot is None:
            raise ValidationError.no_active_document()
        if not snapshot.content.strip():
            raise ValidationError.empty(snapshot.identity)
        return snapshot

    def _render_cached(self, entry: HistoryEntry, snapshot: DocumentSnapshot) -> None:
        prompt = self._config.get_persona_prompt(entry.persona_id)
        LOGGER.debug("Reusing cached commentary for %s", entry.identity)
        telemetry_service.emit(
            "commentary.cache_hit",
            {"identity": entry.identity, "persona_id": entry.persona_id},
        )
        self._render(self._renderer.show_stream_start, prompt.display_header, snapshot.file_label)
        self._render(self._renderer.on_progress, entry.response)
        self._render(self._renderer.on_stream_done)

    def _forward_progress(self, text: str) -> None:
        self._render(self._renderer.on_progress, text)

    def _render(self, method: Callable[..., Any], *args: Any) -> None:
        if self._disposed:
            LOGGER.debug("Dropping renderer call %s after dispose", getattr(method, "__name__", method))
            return
        method(*args)

    def _handle_history_eviction(self, entry: HistoryEntry) -> None:
        telemetry_service.emit("commentary.history_evicted", {"identity": entry.identity})

    # ------------------------------------------------------------------
    # Auto-refresh timer
    # ------------------------------------------------------------------
    def _start_timer(self) -> None:
        handle = self._state.timer_handle
        if handle is not None and not handle.done():
            return
        interval = self._policy.auto_refresh_interval
        if interval <= 0:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            LOGGER.debug("No running event loop; auto-refresh timer not started")
            return
        self._state.timer_handle = loop.create_task(self._tick_loop(interval))

    def _stop_timer(self) -> None:
        handle = self._state.timer_handle
        self._state.timer_handle = None
        if handle is not None and not handle.done():
            handle.cancel()

    async def _tick_loop(self, interval: float) -> None:
        while not self._disposed:
            await asyncio.sleep(interval)
            if self._state.is_visible:
                self.refresh()
