"""Bounded history of generated commentaries.

This module keeps the most recent commentary per file so the panel can
re-render it without another network call, and decides when a cached
commentary has gone stale.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from ..documents.snapshot import DocumentSnapshot
from ..utils.line_diff import count_changed_lines

__all__ = [
    "DEFAULT_HISTORY_CAPACITY",
    "HistoryEntry",
    "HistoryStats",
    "HistoryStore",
]

LOGGER = logging.getLogger(__name__)

DEFAULT_HISTORY_CAPACITY = 100


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# -----------------------------------------------------------------------------
# History Entry
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class HistoryEntry:
    """A generated commentary together with the content it was generated for.

    Attributes:
        identity: Document identity the commentary belongs to.
        content: Snapshot content at generation time.
        response: Full generated commentary text.
        persona_id: Persona that produced the commentary.
        generated_at: When the generation completed.
    """

    identity: str
    content: str
    response: str
    persona_id: str
    generated_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_snapshot(
        cls,
        snapshot: DocumentSnapshot,
        response: str,
        persona_id: str,
        *,
        generated_at: datetime | None = None,
    ) -> "HistoryEntry":
        return cls(
            identity=snapshot.identity,
            content=snapshot.content,
            response=response,
            persona_id=persona_id,
            generated_at=generated_at or _utcnow(),
        )


# -----------------------------------------------------------------------------
# History Statistics
# -----------------------------------------------------------------------------


@dataclass(slots=True)
class HistoryStats:
    """Counters for store lookups.

    Attributes:
        hits: Staleness checks that reused the cached entry.
        misses: Staleness checks that required regeneration.
        evictions: Entries dropped because the store was full.
    """

    hits: int = 0
    misses: int = 0
    evictions: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"hits": self.hits, "misses": self.misses, "evictions": self.evictions}

    def reset(self) -> None:
        self.hits = 0
        self.misses = 0
        self.evictions = 0


# -----------------------------------------------------------------------------
# History Store
# -----------------------------------------------------------------------------


class HistoryStore:
    """Insertion-ordered, capacity-bounded map of identity to entry.

    Eviction is FIFO: when a new identity arrives at capacity the entry that
    was inserted longest ago is dropped. Replacing an existing identity moves
    it to the most recent position without evicting anything.

    Example::

        store = HistoryStore(capacity=2)
        store.put("a.py", entry_a)
        store.put("b.py", entry_b)
        store.put("c.py", entry_c)  # evicts "a.py"
    """

    def __init__(
        self,
        capacity: int = DEFAULT_HISTORY_CAPACITY,
        *,
        on_evict: Callable[[HistoryEntry], None] | None = None,
    ) -> None:
        if capacity < 1:
            raise ValueError("History capacity must be at least 1")
        self._capacity = int(capacity)
        self._entries: OrderedDict[str, HistoryEntry] = OrderedDict()
        self._lock = threading.RLock()
        self._stats = HistoryStats()
        self._on_evict = on_evict

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def stats(self) -> HistoryStats:
        return self._stats

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, identity: object) -> bool:
        with self._lock:
            return identity in self._entries

    def identities(self) -> list[str]:
        """Return stored identities, oldest insertion first."""

        with self._lock:
            return list(self._entries.keys())

    def get(self, identity: str) -> HistoryEntry | None:
        with self._lock:
            return self._entries.get(identity)

    def put(self, identity: str, entry: HistoryEntry) -> None:
        """Insert or replace the entry for *identity*."""

        evicted: HistoryEntry | None = None
        with self._lock:
            if identity in self._entries:
                del self._entries[identity]
            elif len(self._entries) >= self._capacity:
                _, evicted = self._entries.popitem(last=False)
                self._stats.evictions += 1
            self._entries[identity] = entry
        if evicted is not None:
            LOGGER.debug("History full (capacity=%s); evicted %s", self._capacity, evicted.identity)
            if self._on_evict is not None:
                self._on_evict(evicted)

    def discard(self, identity: str) -> bool:
        with self._lock:
            return self._entries.pop(identity, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def is_stale(
        self,
        identity: str,
        snapshot: DocumentSnapshot,
        persona_id: str,
        *,
        min_interval: float,
        min_line_changes: int,
    ) -> bool:
        """Return ``True`` when the cached commentary must be regenerated.

        Args:
            identity: Document identity to look up.
            snapshot: Fresh capture of the document.
            persona_id: Persona currently selected in the panel.
            min_interval: Cooldown in seconds before small edits count.
            min_line_changes: Edits above this many lines invalidate at once.
        """

        entry = self.get(identity)
        stale = self._evaluate(entry, snapshot, persona_id, min_interval, min_line_changes)
        with self._lock:
            if stale:
                self._stats.misses += 1
            else:
                self._stats.hits += 1
        return stale

    @staticmethod
    def _evaluate(
        entry: HistoryEntry | None,
        snapshot: DocumentSnapshot,
        persona_id: str,
        min_interval: float,
        min_line_changes: int,
    ) -> bool:
        if entry is None:
            return True
        if entry.persona_id != persona_id:
            LOGGER.debug("Persona changed for %s (%s -> %s)", entry.identity, entry.persona_id, persona_id)
            return True
        changed = count_changed_lines(entry.content, snapshot.content, limit=max(min_line_changes, 0))
        if changed > min_line_changes:
            return True
        elapsed = (snapshot.captured_at - entry.generated_at).total_seconds()
        return elapsed >= min_interval and changed > 0
