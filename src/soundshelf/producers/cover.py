"""Writing a cover image into an audio file's tags."""

from __future__ import annotations

import functools
from collections.abc import Callable
from pathlib import Path

from soundshelf.producers.runner import DEFAULT_TIMEOUT, run_external
from soundshelf.types import ArtifactKind, ArtifactRequest


def cover_request(audio: Path, cover: Path) -> ArtifactRequest:
    extension = audio.suffix.lstrip(".") or "bin"
    return ArtifactRequest(
        kind=ArtifactKind.EMBEDDED_COVER_WRITE,
        inputs=[audio, cover],
        params={"disposition": "attached_pic", "extension": extension},
        extension=extension,
        label=f"{audio.name} with embedded cover",
    )


def build_cover_command(
    audio: Path, cover: Path, output: Path, ffmpeg_binary: str = "ffmpeg"
) -> list[str]:
    return [
        ffmpeg_binary, "-y", "-v", "error",
        "-i", str(audio),
        "-i", str(cover),
        "-map", "0:a",
        "-map", "1:v",
        "-codec", "copy",
        "-disposition:v", "attached_pic",
        "-metadata:s:v", "title=Album cover",
        "-metadata:s:v", "comment=Cover (front)",
        str(output),
    ]


def embed_cover(
    output: Path,
    audio: Path,
    cover: Path,
    ffmpeg_binary: str = "ffmpeg",
    timeout: float | None = DEFAULT_TIMEOUT,
) -> None:
    run_external(build_cover_command(audio, cover, output, ffmpeg_binary), timeout=timeout)


def make_cover_writer(
    audio: Path,
    cover: Path,
    ffmpeg_binary: str = "ffmpeg",
    timeout: float | None = DEFAULT_TIMEOUT,
) -> Callable[[Path], None]:
    return functools.partial(
        embed_cover, audio=audio, cover=cover, ffmpeg_binary=ffmpeg_binary, timeout=timeout
    )
