"""On-disk index storage, one JSON record per artifact kind."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".json"


class DiskIndexStorage:
    """Stores each serialized index record as its own file in ``directory``.

    Writes go to a temporary file in the same directory which is then
    renamed over the record, so a reader observes either the previous
    record or the complete new one. Damage to one record file leaves the
    others readable.
    """

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def record_path(self, name: str) -> Path:
        return self._directory / f"{name}{RECORD_SUFFIX}"

    def names(self) -> list[str]:
        """Names of all stored records, sorted."""
        if not self._directory.is_dir():
            return []
        return sorted(
            p.name[: -len(RECORD_SUFFIX)]
            for p in self._directory.iterdir()
            if p.is_file() and p.name.endswith(RECORD_SUFFIX) and not p.name.startswith(".")
        )

    def read(self, name: str) -> str | None:
        """Return a stored record, or None if it was never persisted or is unreadable."""
        path = self.record_path(name)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read cache index record %s: %s", path, e)
            return None

    def write(self, name: str, document: str) -> None:
        path = self.record_path(name)
        self._directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._directory, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(document)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Persisted cache index record %s (%d bytes)", path, len(document))

    def remove(self, name: str) -> None:
        self.record_path(name).unlink(missing_ok=True)

    def clear(self) -> None:
        for name in self.names():
            self.remove(name)
