"""Shared Pydantic models for soundshelf."""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

# ── Enums ──


class ArtifactKind(StrEnum):
    TRANSCODED_AUDIO = "transcoded-audio"
    RESIZED_IMAGE = "resized-image"
    ARCHIVE = "archive"
    WAVEFORM_PEAKS = "waveform-peaks"
    EMBEDDED_COVER_WRITE = "embedded-cover-write"

    @property
    def version(self) -> int:
        return KIND_VERSIONS[self]

    @property
    def salted(self) -> bool:
        """Whether the per-deployment URL salt feeds this kind's keys."""
        return self in _SALTED_KINDS


class EntryState(StrEnum):
    FRESH = "fresh"
    STALE = "stale"
    PURGED = "purged"


class OptimizationStrategy(StrEnum):
    DELAYED = "delayed"
    IMMEDIATE = "immediate"
    WIPE = "wipe"
    MANUAL = "manual"


# Bump a kind's version whenever the bytes its producer writes change
# for the same inputs. Only entries of that kind are dropped on load.
KIND_VERSIONS: dict[ArtifactKind, int] = {
    ArtifactKind.TRANSCODED_AUDIO: 1,
    ArtifactKind.RESIZED_IMAGE: 1,
    ArtifactKind.ARCHIVE: 1,
    ArtifactKind.WAVEFORM_PEAKS: 1,
    ArtifactKind.EMBEDDED_COVER_WRITE: 1,
}

_SALTED_KINDS = frozenset({ArtifactKind.ARCHIVE})


# ── Artifact models ──


class ArtifactRequest(BaseModel):
    """Everything that determines the bytes of one artifact."""

    kind: ArtifactKind
    inputs: list[Path] = Field(default_factory=list)
    texts: list[str] = Field(default_factory=list)
    params: dict[str, Any] = Field(default_factory=dict)
    extension: str = "bin"
    label: str = ""

    def describe(self) -> str:
        if self.label:
            return self.label
        names = ", ".join(p.name for p in self.inputs) or "no inputs"
        return f"{self.kind.value} ({names})"


class Artifact(BaseModel):
    """A resolved artifact on disk."""

    key: str
    kind: ArtifactKind
    path: Path
    size_bytes: int = 0
    cached: bool = False


# ── Catalog models ──


class Track(BaseModel):
    source: Path
    title: str = ""
    number: int | None = None
    artist: str | None = None


class Release(BaseModel):
    """A directory directly containing audio files."""

    slug: str
    title: str
    directory: Path
    tracks: list[Track] = Field(default_factory=list)
    cover: Path | None = None
    artist: str | None = None
    extras: list[Path] = Field(default_factory=list)


class ReleaseResult(BaseModel):
    slug: str
    artifacts: list[Artifact] = Field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BuildResult(BaseModel):
    releases: list[ReleaseResult] = Field(default_factory=list)
    purged: int = 0
    reclaimed_bytes: int = 0
    report_lines: list[str] = Field(default_factory=list)

    @property
    def failed(self) -> list[ReleaseResult]:
        return [r for r in self.releases if not r.ok]

    @property
    def artifact_count(self) -> int:
        return sum(len(r.artifacts) for r in self.releases)
