"""Shared typing contracts for AI infrastructure."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class ProgressCallback(Protocol):
    """Receives the full text generated so far after each streamed fragment."""

    def __call__(self, text: str) -> None:
        ...


@dataclass(slots=True, frozen=True)
class EndpointConfig:
    """OpenAI-compatible endpoint plus the model to request."""

    base_url: str
    model: str


@dataclass(slots=True, frozen=True)
class PersonaPrompt:
    """Prompt material resolved for a persona id."""

    system_prompt: str
    display_header: str


__all__ = ["EndpointConfig", "PersonaPrompt", "ProgressCallback"]
