"""Cache entry, statistics and report models."""

from __future__ import annotations

import time

from pydantic import BaseModel, Field

from soundshelf.types import ArtifactKind, EntryState
from soundshelf.utils.format import format_bytes


class CacheEntry(BaseModel):
    """One materialized artifact."""

    key: str
    kind: ArtifactKind
    path: str  # relative to the cache directory
    size_bytes: int = 0
    created_at: float = Field(default_factory=time.time)
    generation: int = 0
    state: EntryState = EntryState.FRESH
    stale_since: float | None = None

    def mark_stale(self, timestamp: float) -> None:
        if self.state != EntryState.STALE:
            self.state = EntryState.STALE
            self.stale_since = timestamp

    def mark_fresh(self, generation: int) -> None:
        self.state = EntryState.FRESH
        self.stale_since = None
        self.generation = generation


class CacheStats(BaseModel):
    """Per-build lookup statistics."""

    entries: int = 0
    hits: int = 0
    misses: int = 0
    computed: int = 0
    inconsistencies: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


class KindReport(BaseModel):
    kind: ArtifactKind
    fresh_count: int = 0
    fresh_bytes: int = 0
    stale_count: int = 0
    stale_bytes: int = 0


class CacheReport(BaseModel):
    """Counts and sizes grouped by kind and state."""

    kinds: dict[ArtifactKind, KindReport] = Field(default_factory=dict)

    def add(self, entry: CacheEntry) -> None:
        row = self.kinds.setdefault(entry.kind, KindReport(kind=entry.kind))
        if entry.state == EntryState.STALE:
            row.stale_count += 1
            row.stale_bytes += entry.size_bytes
        else:
            row.fresh_count += 1
            row.fresh_bytes += entry.size_bytes

    @property
    def stale_count(self) -> int:
        return sum(r.stale_count for r in self.kinds.values())

    @property
    def reclaimable_bytes(self) -> int:
        return sum(r.stale_bytes for r in self.kinds.values())

    @property
    def total_count(self) -> int:
        return sum(r.fresh_count + r.stale_count for r in self.kinds.values())

    def lines(self) -> list[str]:
        """Human-readable summary, one line per kind plus a total."""
        result: list[str] = []
        for kind in ArtifactKind:
            row = self.kinds.get(kind)
            if row is None:
                continue
            result.append(
                f"{kind.value}: {row.fresh_count} fresh ({format_bytes(row.fresh_bytes)}), "
                f"{row.stale_count} stale ({format_bytes(row.stale_bytes)})"
            )
        if self.stale_count:
            result.append(
                f"{self.stale_count} cached artifacts are stale - run 'soundshelf cache optimize' "
                f"to remove them and reclaim {format_bytes(self.reclaimable_bytes)} of disk space."
            )
        else:
            result.append("No cached artifacts identified as stale.")
        return result
