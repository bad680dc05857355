"""Custom exception hierarchy for soundshelf."""

from __future__ import annotations

from typing import Any


class SoundshelfError(Exception):
    """Base exception for all soundshelf errors."""

    def __init__(self, message: str = "", **kwargs: Any) -> None:
        super().__init__(message)
        self.message = message


class ProducerError(SoundshelfError):
    """An artifact producer failed; nothing was cached for its key.

    Examples: ffmpeg exit code != 0, ffmpeg hung past the timeout,
    unreadable source image.
    """

    def __init__(
        self,
        message: str = "",
        kind: str | None = None,
        key: str | None = None,
        fatal: bool = True,
        returncode: int | None = None,
        stderr: str = "",
        timed_out: bool = False,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.key = key
        self.fatal = fatal
        self.returncode = returncode
        self.stderr = stderr
        self.timed_out = timed_out


class CacheConsistencyError(SoundshelfError):
    """Same cache key mapped to two different artifact paths.

    Fatal for the build: indicates a hashing or producer-determinism bug.
    """

    def __init__(
        self,
        message: str = "",
        key: str = "",
        existing_path: str | None = None,
        new_path: str | None = None,
    ) -> None:
        super().__init__(message)
        self.key = key
        self.existing_path = existing_path
        self.new_path = new_path


class IndexLoadError(SoundshelfError):
    """A persisted index section could not be used and was dropped."""

    def __init__(self, message: str = "", kind: str | None = None) -> None:
        super().__init__(message)
        self.kind = kind


class ReleaseLevelError(SoundshelfError):
    """Error isolated to a single release; other releases continue."""

    def __init__(
        self,
        message: str = "",
        release: str = "",
        inner: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.release = release
        self.inner = inner


class ConfigError(SoundshelfError):
    """Invalid configuration value."""

    def __init__(self, message: str = "", key: str | None = None) -> None:
        super().__init__(message)
        self.key = key
