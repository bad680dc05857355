"""Formatting helpers for reports and build summaries."""

from __future__ import annotations

_BYTES_KB = 1024
_BYTES_MB = 1024 * _BYTES_KB
_BYTES_GB = 1024 * _BYTES_MB


def format_bytes(size: int) -> str:
    """Adaptively format a byte count as B, KB, MB or GB."""
    if size >= 512 * _BYTES_MB:
        return f"{size / _BYTES_GB:.1f}GB"  # e.g. "0.5GB", "13.8GB"
    if size >= 100 * _BYTES_MB:
        return f"{size // _BYTES_MB}MB"  # e.g. "267MB"
    if size >= 512 * _BYTES_KB:
        return f"{size / _BYTES_MB:.1f}MB"  # e.g. "0.5MB", "62.4MB"
    if size >= _BYTES_KB:
        return f"{size // _BYTES_KB}KB"
    return f"{size}B"


def slugify(text: str) -> str:
    """Lowercase, ASCII-alphanumeric words joined by dashes."""
    chars = [c.lower() if c.isascii() and c.isalnum() else "-" for c in text]
    slug = "".join(chars)
    while "--" in slug:
        slug = slug.replace("--", "-")
    return slug.strip("-") or "untitled"
