"""In-memory index storage, a drop-in for DiskIndexStorage in tests."""

from __future__ import annotations


class MemoryIndexStorage:
    """Keeps the serialized index records in a dict."""

    def __init__(self, documents: dict[str, str] | None = None) -> None:
        self.documents: dict[str, str] = dict(documents or {})
        self.writes = 0

    def names(self) -> list[str]:
        return sorted(self.documents)

    def read(self, name: str) -> str | None:
        return self.documents.get(name)

    def write(self, name: str, document: str) -> None:
        self.documents[name] = document
        self.writes += 1

    def remove(self, name: str) -> None:
        self.documents.pop(name, None)

    def clear(self) -> None:
        self.documents.clear()
