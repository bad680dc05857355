"""Cache key generation — content-addressed, parameter-aware."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from soundshelf.types import ArtifactKind, ArtifactRequest

_CHUNK_SIZE = 1024 * 1024


def hash_bytes(data: bytes) -> str:
    """Hash raw bytes for cache key use."""
    return hashlib.sha256(data).hexdigest()


def hash_text(text: str) -> str:
    """Hash text content (e.g. an image description) for cache key use."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_file(path: str | Path) -> str:
    """Hash a file's contents in chunks.

    OSError from an unreadable file propagates to the caller.
    """
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def hash_params(params: dict[str, Any] | None) -> str:
    """Deterministic hash of a parameter record via sorted JSON."""
    serialized = json.dumps(params or {}, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


def combine_digests(digests: Iterable[str]) -> str:
    """Combine per-input digests, order-sensitive.

    Each input is hashed on its own first so that shifting a boundary
    between two inputs can never produce the same combined digest.
    """
    joined = "\n".join(digests)
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()


def generate_cache_key(
    kind: ArtifactKind,
    input_digests: Iterable[str],
    params: dict[str, Any] | None = None,
    salt: str | None = None,
) -> str:
    """Generate a SHA256 cache key from all output-affecting inputs.

    Components, in order: kind, kind format version, combined input
    digest, parameter digest, and the URL salt for salted kinds only.
    """
    components = [
        kind.value,
        str(kind.version),
        combine_digests(input_digests),
        hash_params(params),
        (salt or "") if kind.salted else "",
    ]
    combined = "|".join(components)
    return hashlib.sha256(combined.encode("utf-8")).hexdigest()


def key_for_request(request: ArtifactRequest, salt: str | None = None) -> str:
    """Hash every input file and text of a request into its cache key."""
    digests = [hash_file(p) for p in request.inputs]
    digests.extend(hash_text(t) for t in request.texts)
    return generate_cache_key(request.kind, digests, request.params, salt=salt)


def artifact_filename(key: str, extension: str) -> str:
    """Filename of an artifact inside the cache, derived from the key only."""
    extension = extension.lstrip(".")
    return f"{key}.{extension}" if extension else key
