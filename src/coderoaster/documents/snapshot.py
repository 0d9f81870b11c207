"""Immutable document captures handed to the refresh orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import PurePath

__all__ = ["DocumentSnapshot", "file_extension", "file_label"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def file_label(identity: str) -> str:
    """Return the display name (basename) for a document identity."""

    name = PurePath(identity.split("?", 1)[0]).name
    return name or identity


def file_extension(identity: str) -> str:
    """Return the lower-cased extension of *identity* including the dot."""

    return PurePath(file_label(identity)).suffix.lower()


@dataclass(slots=True, frozen=True)
class DocumentSnapshot:
    """Capture of a document's identity and content at a point in time.

    Attributes:
        identity: Stable key for "the same file" (canonical path or URI).
        content: Full text of the document when captured.
        captured_at: Timezone-aware capture time.
    """

    identity: str
    content: str
    captured_at: datetime = field(default_factory=_utcnow)

    @property
    def file_label(self) -> str:
        return file_label(self.identity)

    @property
    def extension(self) -> str:
        return file_extension(self.identity)
