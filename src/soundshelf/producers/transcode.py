"""Audio transcoding through ffmpeg."""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from enum import StrEnum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel

from soundshelf.producers.runner import DEFAULT_TIMEOUT, run_external
from soundshelf.types import ArtifactKind, ArtifactRequest

logger = logging.getLogger(__name__)


class AudioFormat(StrEnum):
    AAC = "aac"
    AIFF = "aiff"
    ALAC = "alac"
    FLAC = "flac"
    MP3_V0 = "mp3-v0"
    MP3_V5 = "mp3-v5"
    MP3_V7 = "mp3-v7"
    OGG_VORBIS = "ogg-vorbis"
    OPUS_48 = "opus-48"
    OPUS_96 = "opus-96"
    OPUS_128 = "opus-128"
    WAV = "wav"

    @property
    def extension(self) -> str:
        return _EXTENSIONS[self]

    @property
    def family(self) -> str:
        """Container/codec family, used for tag handling decisions."""
        return self.value.split("-")[0]

    @property
    def lossless(self) -> bool:
        return self in {AudioFormat.AIFF, AudioFormat.ALAC, AudioFormat.FLAC, AudioFormat.WAV}

    @property
    def supports_embedded_cover(self) -> bool:
        return self in {
            AudioFormat.FLAC,
            AudioFormat.MP3_V0,
            AudioFormat.MP3_V5,
            AudioFormat.MP3_V7,
            AudioFormat.ALAC,
        }


_EXTENSIONS: dict[AudioFormat, str] = {
    AudioFormat.AAC: "aac",
    AudioFormat.AIFF: "aiff",
    AudioFormat.ALAC: "m4a",
    AudioFormat.FLAC: "flac",
    AudioFormat.MP3_V0: "mp3",
    AudioFormat.MP3_V5: "mp3",
    AudioFormat.MP3_V7: "mp3",
    AudioFormat.OGG_VORBIS: "ogg",
    AudioFormat.OPUS_48: "opus",
    AudioFormat.OPUS_96: "opus",
    AudioFormat.OPUS_128: "opus",
    AudioFormat.WAV: "wav",
}

_CODEC_ARGS: dict[AudioFormat, list[str]] = {
    AudioFormat.AAC: ["-codec:a", "aac", "-b:a", "256k"],
    AudioFormat.AIFF: [],
    AudioFormat.ALAC: ["-vn", "-codec:a", "alac"],
    AudioFormat.FLAC: ["-codec:a", "flac"],
    AudioFormat.MP3_V0: ["-codec:a", "libmp3lame", "-qscale:a", "0"],
    AudioFormat.MP3_V5: ["-codec:a", "libmp3lame", "-qscale:a", "5"],
    AudioFormat.MP3_V7: ["-codec:a", "libmp3lame", "-qscale:a", "7"],
    AudioFormat.OGG_VORBIS: ["-codec:a", "libvorbis", "-qscale:a", "6"],
    AudioFormat.OPUS_48: ["-codec:a", "libopus", "-b:a", "48k"],
    AudioFormat.OPUS_96: ["-codec:a", "libopus", "-b:a", "96k"],
    AudioFormat.OPUS_128: ["-codec:a", "libopus", "-b:a", "128k"],
    AudioFormat.WAV: [],
}

# Families whose tags ffmpeg only carries over into other families when the
# stream metadata is mapped explicitly.
_STREAM_TAGGED_FAMILIES = {"ogg", "opus"}
# Muxers that only write ID3v2 tags when asked to.
_ID3_OPT_IN_FAMILIES = {"aac", "aiff"}


def source_family(source: Path) -> str:
    suffix = source.suffix.lower().lstrip(".")
    return {"oga": "ogg", "m4a": "alac", "aif": "aiff"}.get(suffix, suffix)


class TagMapping(BaseModel):
    """How tags of the source file end up in the transcode."""

    mode: Literal["copy", "remove", "custom"] = "copy"
    album: str | None = None
    album_artist: str | None = None
    artist: str | None = None
    title: str | None = None
    track: int | None = None

    def custom_fields(self) -> list[tuple[str, str]]:
        fields = [
            ("album", self.album),
            ("album_artist", self.album_artist),
            ("artist", self.artist),
            ("title", self.title),
            ("track", str(self.track) if self.track is not None else None),
        ]
        return [(name, value) for name, value in fields if value is not None]


def build_ffmpeg_command(
    source: Path,
    output: Path,
    target: AudioFormat,
    tag_mapping: TagMapping | None = None,
    ffmpeg_binary: str = "ffmpeg",
) -> list[str]:
    tags = tag_mapping or TagMapping()
    command = [ffmpeg_binary, "-y", "-v", "error", "-i", str(source)]

    if tags.mode == "copy":
        if source_family(source) in _STREAM_TAGGED_FAMILIES and target.family not in (
            _STREAM_TAGGED_FAMILIES
        ):
            command += ["-map_metadata", "0:s:a:0"]
        command += _tag_write_flags(target)
    elif tags.mode == "custom":
        command += ["-map_metadata", "-1", "-vn"]
        for name, value in tags.custom_fields():
            command += ["-metadata", f"{name}={value}"]
        command += _tag_write_flags(target)
    else:
        command += ["-map_metadata", "-1", "-vn"]

    command += _CODEC_ARGS[target]
    command.append(str(output))
    return command


def _tag_write_flags(target: AudioFormat) -> list[str]:
    if target.family in _ID3_OPT_IN_FAMILIES:
        return ["-write_id3v2", "1"]
    return []


def transcode_request(
    source: Path,
    target: AudioFormat,
    tag_mapping: TagMapping | None = None,
) -> ArtifactRequest:
    tags = tag_mapping or TagMapping()
    return ArtifactRequest(
        kind=ArtifactKind.TRANSCODED_AUDIO,
        inputs=[source],
        params={
            "format": target.value,
            "source_family": source_family(source),
            "tags": tags.model_dump(mode="json"),
        },
        extension=target.extension,
        label=f"{source.name} as {target.value}",
    )


def transcode(
    output: Path,
    source: Path,
    target: AudioFormat,
    tag_mapping: TagMapping | None = None,
    ffmpeg_binary: str = "ffmpeg",
    timeout: float | None = DEFAULT_TIMEOUT,
) -> None:
    command = build_ffmpeg_command(source, output, target, tag_mapping, ffmpeg_binary)
    run_external(command, timeout=timeout)


def make_transcoder(
    source: Path,
    target: AudioFormat,
    tag_mapping: TagMapping | None = None,
    ffmpeg_binary: str = "ffmpeg",
    timeout: float | None = DEFAULT_TIMEOUT,
) -> Callable[[Path], None]:
    return functools.partial(
        transcode,
        source=source,
        target=target,
        tag_mapping=tag_mapping,
        ffmpeg_binary=ffmpeg_binary,
        timeout=timeout,
    )
