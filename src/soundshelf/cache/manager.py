"""Cache manager — wraps artifact producers with get-or-compute semantics."""

from __future__ import annotations

import logging
import os
import uuid
from collections.abc import Callable
from pathlib import Path

from soundshelf.cache.index import CacheIndex
from soundshelf.cache.keys import artifact_filename, key_for_request
from soundshelf.cache.stats import CacheStats
from soundshelf.errors.exceptions import ProducerError, SoundshelfError
from soundshelf.types import Artifact, ArtifactKind, ArtifactRequest

logger = logging.getLogger(__name__)

# A producer writes exactly one artifact file to the path it is given.
Producer = Callable[[Path], None]

_PARTIAL_PREFIX = ".partial-"


class CacheManager:
    """Resolves artifact requests against a CacheIndex.

    On a hit the recorded file is returned; on a miss the producer runs once,
    writing to a temporary file that is renamed into place and recorded only
    after the producer succeeded.
    """

    def __init__(
        self,
        index: CacheIndex,
        enabled: bool = True,
        salt: str | None = None,
    ) -> None:
        self._index = index
        self._enabled = enabled
        self._salt = salt
        self._stats = CacheStats()

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def index(self) -> CacheIndex:
        return self._index

    def key_for(self, request: ArtifactRequest) -> str:
        return key_for_request(request, salt=self._salt)

    def get_or_compute(
        self, request: ArtifactRequest, producer: Producer, intermediate: bool = False
    ) -> Artifact:
        """Return the artifact for ``request``, computing it on a miss.

        ``intermediate`` marks an artifact that only feeds another one; its
        entry stays stale so the policy reclaims it.
        """
        key = self.key_for(request)
        return self.get_or_compute_key(
            key,
            request.kind,
            request.extension,
            producer,
            label=request.describe(),
            intermediate=intermediate,
        )

    def get_or_compute_key(
        self,
        key: str,
        kind: ArtifactKind,
        extension: str,
        producer: Producer,
        label: str = "",
        intermediate: bool = False,
    ) -> Artifact:
        label = label or f"{kind.value} {key[:12]}"

        if self._enabled:
            entry = self._index.lookup(key, intermediate=intermediate)
            if entry is not None:
                path = self._index.artifact_path(entry)
                if path.is_file():
                    self._stats.hits += 1
                    logger.debug("Cache hit for %s", label)
                    return Artifact(
                        key=key, kind=kind, path=path, size_bytes=entry.size_bytes, cached=True
                    )
                logger.warning(
                    "Cache inconsistency: %s is recorded but %s is missing, recomputing",
                    label,
                    entry.path,
                )
                self._stats.inconsistencies += 1
                self._index.remove(key)

        self._stats.misses += 1
        return self._compute(key, kind, extension, producer, label, intermediate)

    def _compute(
        self,
        key: str,
        kind: ArtifactKind,
        extension: str,
        producer: Producer,
        label: str,
        intermediate: bool,
    ) -> Artifact:
        artifacts_dir = self._index.artifacts_dir
        artifacts_dir.mkdir(parents=True, exist_ok=True)

        filename = artifact_filename(key, extension)
        final_path = artifacts_dir / filename
        # Keeps the extension so producers can infer the output format.
        tmp_path = artifacts_dir / f"{_PARTIAL_PREFIX}{uuid.uuid4().hex[:12]}-{filename}"

        logger.info("Computing %s", label)
        try:
            producer(tmp_path)
            if not tmp_path.is_file():
                raise ProducerError(f"Producer for {label} wrote no output file")
            os.replace(tmp_path, final_path)
        except ProducerError as e:
            e.kind = e.kind or kind.value
            e.key = e.key or key
            raise
        except SoundshelfError:
            raise
        except Exception as e:
            raise ProducerError(
                f"Producing {label} failed: {e}", kind=kind.value, key=key
            ) from e
        finally:
            tmp_path.unlink(missing_ok=True)

        size_bytes = final_path.stat().st_size
        self._index.insert(
            key, kind, self._index.relative_path(final_path), size_bytes, intermediate=intermediate
        )
        self._stats.computed += 1
        return Artifact(key=key, kind=kind, path=final_path, size_bytes=size_bytes, cached=False)

    def stats(self) -> CacheStats:
        return CacheStats(
            entries=len(self._index),
            hits=self._stats.hits,
            misses=self._stats.misses,
            computed=self._stats.computed,
            inconsistencies=self._stats.inconsistencies,
        )
