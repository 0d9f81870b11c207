"""Async chat-completion client for OpenAI-compatible endpoints."""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping

import httpx
from openai.types.chat import ChatCompletionMessageParam

from ..errors import ApiClientError, MalformedResponseError, TransportError, error_for_status
from .ai_types import ProgressCallback
from .streaming import StreamAccumulator

LOGGER = logging.getLogger(__name__)

CHAT_COMPLETIONS_PATH = "/chat/completions"
TEST_MESSAGE = "1+1=?"
TEST_MAX_TOKENS = 50


def normalize_endpoint(base_url: str) -> str:
    """Return *base_url* with the chat-completions path appended when missing."""

    trimmed = (base_url or "").strip()
    if trimmed.endswith(CHAT_COMPLETIONS_PATH):
        return trimmed
    if trimmed.endswith("/"):
        trimmed = trimmed[:-1]
    return trimmed + CHAT_COMPLETIONS_PATH


def build_messages(system_prompt: str, user_content: str) -> List[ChatCompletionMessageParam]:
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_content},
    ]


def extract_message_content(payload: Any) -> str:
    """Validate a non-streaming response and return ``choices[0].message.content``."""

    if not isinstance(payload, dict):
        raise MalformedResponseError(details={"reason": "response is not an object"})
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        raise MalformedResponseError(details={"reason": "missing choices"})
    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str):
        raise MalformedResponseError(details={"reason": "missing message content"})
    return content


@dataclass(slots=True)
class ClientSettings:
    """Transport options shared by every request the client issues."""

    request_timeout: float | None = 90.0
    connect_timeout: float | None = 10.0
    default_headers: Mapping[str, str] | None = None
    debug_logging: bool = False

    def timeout(self) -> httpx.Timeout:
        if self.request_timeout is None:
            return httpx.Timeout(None, connect=self.connect_timeout)
        connect = self.connect_timeout if self.connect_timeout is not None else self.request_timeout
        return httpx.Timeout(self.request_timeout, connect=min(connect, self.request_timeout))


class CompletionClient:
    """Issues streamed or single-shot chat completions and classifies failures.

    Endpoint and credential are supplied per call so configuration edits take
    effect on the next refresh without rebuilding the client.
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or ClientSettings()
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=self._settings.timeout())

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    async def stream(
        self,
        endpoint: str,
        credential: str,
        model: str,
        system_prompt: str,
        user_content: str,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """Stream a completion and return the final text.

        ``on_progress`` receives the full accumulated text after every
        fragment, in arrival order. A body that ends without the ``[DONE]``
        sentinel still returns what was collected.
        """

        url = normalize_endpoint(endpoint)
        payload = self._build_payload(model, build_messages(system_prompt, user_content), stream=True)
        LOGGER.debug("Starting streamed completion via %s (model=%s)", url, model)
        self._log_payload(payload)

        accumulator = StreamAccumulator(on_progress=on_progress)
        try:
            async with self._http.stream(
                "POST", url, json=payload, headers=self._headers(credential)
            ) as response:
                if not response.is_success:
                    await response.aread()
                    raise error_for_status(response.status_code, response.reason_phrase)
                async for chunk in response.aiter_bytes():
                    if accumulator.feed(chunk):
                        break
        except httpx.DecodingError as exc:
            raise self._decoding_error(exc) from exc
        except httpx.TransportError as exc:
            raise self._transport_error(exc) from exc
        text = accumulator.finish()
        LOGGER.debug(
            "Streamed completion finished (chars=%s, sentinel=%s, skipped=%s)",
            len(text),
            accumulator.done,
            accumulator.skipped_frames,
        )
        return text

    async def complete(
        self,
        endpoint: str,
        credential: str,
        model: str,
        system_prompt: str,
        user_content: str,
    ) -> str:
        """Request a single non-streamed completion."""

        messages = build_messages(system_prompt, user_content)
        return await self._post_for_content(endpoint, credential, self._build_payload(model, messages))

    async def test_connection(self, endpoint: str, credential: str, model: str) -> str:
        """Send a tiny prompt to confirm the endpoint, key and model work."""

        messages: List[ChatCompletionMessageParam] = [{"role": "user", "content": TEST_MESSAGE}]
        payload = self._build_payload(model, messages, max_tokens=TEST_MAX_TOKENS)
        await self._post_for_content(endpoint, credential, payload)
        return "Connection successful!"

    async def aclose(self) -> None:
        """Close the underlying HTTP client when this instance created it."""

        if not self._owns_client:
            return
        close = getattr(self._http, "aclose", None)
        if close is None:
            return
        result = close()
        if inspect.isawaitable(result):
            await result

    async def _post_for_content(self, endpoint: str, credential: str, payload: Dict[str, Any]) -> str:
        url = normalize_endpoint(endpoint)
        self._log_payload(payload)
        try:
            response = await self._http.post(url, json=payload, headers=self._headers(credential))
        except httpx.DecodingError as exc:
            raise self._decoding_error(exc) from exc
        except httpx.TransportError as exc:
            raise self._transport_error(exc) from exc
        if not response.is_success:
            raise error_for_status(response.status_code, response.reason_phrase)
        try:
            body = response.json()
        except ValueError as exc:
            raise MalformedResponseError(details={"reason": "response is not JSON"}) from exc
        return extract_message_content(body)

    def _build_payload(
        self,
        model: str,
        messages: List[ChatCompletionMessageParam],
        *,
        stream: bool = False,
        max_tokens: int | None = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"model": model, "messages": list(messages)}
        if stream:
            payload["stream"] = True
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        return payload

    def _headers(self, credential: str) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self._settings.default_headers:
            headers.update(self._settings.default_headers)
        headers["Authorization"] = f"Bearer {credential}"
        headers["Content-Type"] = "application/json"
        return headers

    @staticmethod
    def _transport_error(exc: httpx.TransportError) -> ApiClientError:
        LOGGER.debug("Transport failure talking to completion endpoint: %s", exc)
        return TransportError(details={"cause": type(exc).__name__})

    @staticmethod
    def _decoding_error(exc: httpx.DecodingError) -> ApiClientError:
        LOGGER.debug("Could not decode completion response body: %s", exc)
        return MalformedResponseError(details={"reason": "undecodable body", "cause": type(exc).__name__})

    def _log_payload(self, payload: Mapping[str, Any]) -> None:
        if not self._settings.debug_logging:
            return
        try:
            serialized = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError):
            LOGGER.debug("Completion payload (unserializable): %s", payload)
        else:
            LOGGER.debug("Completion payload:\n%s", serialized)


__all__ = [
    "CHAT_COMPLETIONS_PATH",
    "ClientSettings",
    "CompletionClient",
    "build_messages",
    "extract_message_content",
    "normalize_endpoint",
]
