"""Zip archives of a release's downloadable files."""

from __future__ import annotations

import functools
import logging
import zipfile
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from soundshelf.types import ArtifactKind, ArtifactRequest

logger = logging.getLogger(__name__)

DEFAULT_COMPRESSION_LEVEL = 6

# Fixed member timestamp so identical inputs give identical archive bytes.
_MEMBER_DATE_TIME = (1980, 1, 1, 0, 0, 0)
_CHUNK_SIZE = 1024 * 1024


def archive_request(
    members: Sequence[tuple[Path, str]],
    compression_level: int = DEFAULT_COMPRESSION_LEVEL,
    label: str = "",
    params: dict[str, Any] | None = None,
) -> ArtifactRequest:
    """Request a zip keyed on ``members``, given as (file, name inside the archive).

    The member files may be the sources the archived files are derived
    from, with ``params`` describing the derivation. The archive can then
    be found in the cache without producing its members first.
    """
    return ArtifactRequest(
        kind=ArtifactKind.ARCHIVE,
        inputs=[path for path, _ in members],
        texts=[name for _, name in members],
        params={**(params or {}), "compression_level": compression_level, "format": "zip"},
        extension="zip",
        label=label,
    )


def write_archive(
    output: Path,
    members: Sequence[tuple[Path, str]],
    compression_level: int = DEFAULT_COMPRESSION_LEVEL,
) -> None:
    with zipfile.ZipFile(
        output, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=compression_level
    ) as archive:
        for path, name in members:
            info = zipfile.ZipInfo(name, date_time=_MEMBER_DATE_TIME)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = 0o644 << 16
            with open(path, "rb") as src, archive.open(info, "w") as dst:
                for chunk in iter(lambda: src.read(_CHUNK_SIZE), b""):
                    dst.write(chunk)
    logger.debug("Wrote archive with %d members", len(members))


def make_archiver(
    members: Sequence[tuple[Path, str]],
    compression_level: int = DEFAULT_COMPRESSION_LEVEL,
) -> Callable[[Path], None]:
    return functools.partial(
        write_archive, members=list(members), compression_level=compression_level
    )
