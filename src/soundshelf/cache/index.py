"""Cache entry store — the persisted index of materialized artifacts."""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Iterator
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from soundshelf.cache.disk import DiskIndexStorage
from soundshelf.cache.keys import artifact_filename
from soundshelf.cache.stats import CacheEntry
from soundshelf.errors.exceptions import CacheConsistencyError, IndexLoadError
from soundshelf.types import ArtifactKind, EntryState

logger = logging.getLogger(__name__)

INDEX_FORMAT = 1
INDEX_DIRNAME = "index"
ARTIFACTS_DIRNAME = "artifacts"


class IndexStorage(Protocol):
    def names(self) -> list[str]: ...

    def read(self, name: str) -> str | None: ...

    def write(self, name: str, document: str) -> None: ...

    def remove(self, name: str) -> None: ...


class CacheIndex:
    """All cache entries known to one build, keyed by cache key.

    Loaded once at build start, mutated while artifacts are requested and
    persisted once at build end. Each artifact kind is persisted as its own
    record, so a damaged or outdated record costs only that kind's entries.
    Mutations take a lock so producers running in worker threads can insert
    concurrently.
    """

    def __init__(self, cache_dir: str | Path, storage: IndexStorage | None = None) -> None:
        self._cache_dir = Path(cache_dir)
        self._storage = storage or DiskIndexStorage(self._cache_dir / INDEX_DIRNAME)
        self._entries: dict[str, CacheEntry] = {}
        self._used: set[str] = set()
        self._generation = 0
        self._build_started = time.time()
        self._lock = threading.Lock()

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    @property
    def artifacts_dir(self) -> Path:
        return self._cache_dir / ARTIFACTS_DIRNAME

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def build_started(self) -> float:
        return self._build_started

    @property
    def used_keys(self) -> frozenset[str]:
        return frozenset(self._used)

    # ── Loading ──

    def load(self, now: float | None = None) -> None:
        """Read every persisted kind record and start a new build generation.

        Never raises for unreadable data: a record that cannot be decoded,
        is outdated or holds an invalid entry drops that kind only.
        """
        self._entries = {}
        self._used = set()
        self._build_started = time.time() if now is None else now
        previous_generation = 0

        for name in self._storage.names():
            try:
                generation, entries = _parse_kind_record(name, self._storage.read(name))
            except IndexLoadError as e:
                logger.warning("Discarding cached %s artifacts: %s", name, e.message)
                continue
            previous_generation = max(previous_generation, generation)
            for entry in entries:
                self._entries[entry.key] = entry

        self._generation = previous_generation + 1
        logger.info(
            "Loaded %d cache entries (build generation %d)", len(self._entries), self._generation
        )

    # ── Entry access ──

    def lookup(self, key: str, intermediate: bool = False) -> CacheEntry | None:
        """Return the entry for ``key`` and mark it used in this build.

        An intermediate lookup keeps the entry stale unless another request
        already used it as a deliverable in this build.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            self._touch(entry, intermediate)
            return entry

    def insert(
        self,
        key: str,
        kind: ArtifactKind,
        path: str,
        size_bytes: int = 0,
        intermediate: bool = False,
    ) -> CacheEntry:
        """Record a newly computed artifact.

        Intermediate artifacts are recorded stale from the start of this
        build, so the policy reclaims them once their consumers are cached.
        Raises CacheConsistencyError if ``key`` is already recorded with a
        different path.
        """
        with self._lock:
            existing = self._entries.get(key)
            if existing is not None:
                if existing.path != path:
                    raise CacheConsistencyError(
                        f"Cache key {key} already maps to '{existing.path}', refusing to "
                        f"record '{path}'",
                        key=key,
                        existing_path=existing.path,
                        new_path=path,
                    )
                existing.size_bytes = size_bytes
                self._touch(existing, intermediate)
                return existing

            entry = CacheEntry(
                key=key,
                kind=kind,
                path=path,
                size_bytes=size_bytes,
                generation=self._generation,
            )
            if intermediate:
                entry.mark_stale(self._build_started)
            self._entries[key] = entry
            self._used.add(key)
            logger.debug("Recorded %s artifact %s", kind.value, path)
            return entry

    def _touch(self, entry: CacheEntry, intermediate: bool) -> None:
        if not intermediate:
            entry.mark_fresh(self._generation)
        elif entry.key not in self._used:
            entry.generation = self._generation
            entry.mark_stale(self._build_started)
        self._used.add(entry.key)

    def remove(self, key: str) -> CacheEntry | None:
        with self._lock:
            self._used.discard(key)
            return self._entries.pop(key, None)

    def is_used(self, key: str) -> bool:
        return key in self._used

    def entries(self) -> list[CacheEntry]:
        return list(self._entries.values())

    def all_entries_of_kind(self, kind: ArtifactKind) -> list[CacheEntry]:
        return [e for e in self._entries.values() if e.kind == kind]

    def artifact_path(self, entry: CacheEntry | str) -> Path:
        """Absolute location of an entry's artifact file."""
        relative = entry.path if isinstance(entry, CacheEntry) else entry
        return self._cache_dir / relative

    def relative_path(self, path: Path) -> str:
        return path.relative_to(self._cache_dir).as_posix()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[CacheEntry]:
        return iter(self.entries())

    # ── Persistence ──

    def kind_record(self, kind: ArtifactKind) -> dict[str, Any]:
        entries = sorted(
            (e for e in self._entries.values() if e.kind == kind and e.state != EntryState.PURGED),
            key=lambda e: e.key,
        )
        return {
            "format": INDEX_FORMAT,
            "kind": kind.value,
            "version": kind.version,
            "generation": self._generation,
            "entries": [e.model_dump(mode="json") for e in entries],
        }

    def persist(self) -> None:
        """Write one record per kind through the storage backend.

        Records of kinds this version no longer knows are removed.
        """
        with self._lock:
            records = {
                kind.value: json.dumps(self.kind_record(kind), indent=1, sort_keys=True)
                for kind in ArtifactKind
            }
        for name, document in records.items():
            self._storage.write(name, document)
        for name in self._storage.names():
            if name not in records:
                logger.debug("Removing index record of unknown kind '%s'", name)
                self._storage.remove(name)
        logger.info("Persisted %d cache entries", len(self._entries))


def _parse_kind_record(name: str, text: str | None) -> tuple[int, list[CacheEntry]]:
    try:
        kind = ArtifactKind(name)
    except ValueError:
        raise IndexLoadError(f"unknown artifact kind '{name}'", kind=name) from None

    if text is None:
        raise IndexLoadError("record could not be read", kind=name)
    try:
        record = json.loads(text)
    except json.JSONDecodeError as e:
        raise IndexLoadError(f"record is corrupt ({e})", kind=name) from e
    if not isinstance(record, dict):
        raise IndexLoadError("record is not a mapping", kind=name)

    if record.get("format") != INDEX_FORMAT:
        raise IndexLoadError(f"unsupported record format {record.get('format')!r}", kind=name)
    if record.get("kind") != name:
        raise IndexLoadError(f"record is labelled '{record.get('kind')}'", kind=name)

    version = record.get("version")
    if version != kind.version:
        raise IndexLoadError(
            f"stored format version {version!r} does not match current version {kind.version}",
            kind=name,
        )

    raw_entries = record.get("entries", [])
    if not isinstance(raw_entries, list):
        raise IndexLoadError("entries are not a list", kind=name)

    try:
        entries = [CacheEntry.model_validate(item) for item in raw_entries]
    except ValidationError as e:
        raise IndexLoadError(f"invalid entry ({e.error_count()} errors)", kind=name) from e

    for entry in entries:
        if entry.kind != kind:
            raise IndexLoadError(f"entry {entry.key} is filed under the wrong kind", kind=name)
        if not _is_artifact_path(entry):
            raise IndexLoadError(
                f"entry {entry.key} points outside the artifacts directory: '{entry.path}'",
                kind=name,
            )
    return _as_int(record.get("generation")), [e for e in entries if e.state != EntryState.PURGED]


def _is_artifact_path(entry: CacheEntry) -> bool:
    """True if ``entry.path`` is ``artifacts/<key>[.<ext>]`` and nothing else."""
    prefix = f"{ARTIFACTS_DIRNAME}/"
    if not entry.key or entry.key.startswith(".") or not entry.path.startswith(prefix):
        return False
    filename = entry.path[len(prefix) :]
    if "/" in filename or "\\" in filename or not filename.startswith(entry.key):
        return False
    return filename == artifact_filename(entry.key, filename[len(entry.key) :])


def _as_int(value: Any) -> int:
    return value if isinstance(value, int) and value >= 0 else 0
