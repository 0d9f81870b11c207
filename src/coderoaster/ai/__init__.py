"""Completion client, stream parsing, and persona prompts."""

from .client import ClientSettings, CompletionClient, normalize_endpoint
from .streaming import StreamAccumulator

__all__ = ["ClientSettings", "CompletionClient", "StreamAccumulator", "normalize_endpoint"]
