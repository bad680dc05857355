"""Waveform peaks computed from decoded PCM samples."""

from __future__ import annotations

import functools
import json
import logging
from collections.abc import Callable
from pathlib import Path

import numpy as np

from soundshelf.errors.exceptions import ProducerError
from soundshelf.producers.runner import DEFAULT_TIMEOUT, run_external
from soundshelf.types import ArtifactKind, ArtifactRequest

logger = logging.getLogger(__name__)

DEFAULT_POINTS = 320
DECODE_SAMPLE_RATE = 22050


def waveform_request(source: Path, points: int = DEFAULT_POINTS) -> ArtifactRequest:
    return ArtifactRequest(
        kind=ArtifactKind.WAVEFORM_PEAKS,
        inputs=[source],
        params={"points": points, "sample_rate": DECODE_SAMPLE_RATE, "channels": 1},
        extension="json",
        label=f"waveform of {source.name}",
    )


def build_decode_command(source: Path, ffmpeg_binary: str = "ffmpeg") -> list[str]:
    return [
        ffmpeg_binary, "-v", "error",
        "-i", str(source),
        "-vn",
        "-ac", "1",
        "-ar", str(DECODE_SAMPLE_RATE),
        "-f", "f32le",
        "-acodec", "pcm_f32le",
        "-",
    ]


def compute_peaks(samples: np.ndarray, points: int = DEFAULT_POINTS) -> list[float]:
    """Mean absolute amplitude per window, upscaled to the loudest sample.

    The loudest window ends up at the track's absolute peak amplitude, so
    quiet tracks look quiet and the shape stays readable.
    """
    amplitudes = np.abs(np.asarray(samples, dtype=np.float32))
    if amplitudes.size == 0 or points <= 0:
        return []

    edges = np.linspace(0, amplitudes.size, points + 1).astype(np.int64)
    peaks = np.array(
        [amplitudes[a:b].mean() if b > a else 0.0 for a, b in zip(edges[:-1], edges[1:])],
        dtype=np.float64,
    )

    window_max = peaks.max()
    if window_max <= 0:
        return [0.0] * points
    upscale = float(amplitudes.max()) / window_max
    return [round(float(p), 4) for p in peaks * upscale]


def extract_waveform(
    output: Path,
    source: Path,
    points: int = DEFAULT_POINTS,
    ffmpeg_binary: str = "ffmpeg",
    timeout: float | None = DEFAULT_TIMEOUT,
) -> None:
    result = run_external(build_decode_command(source, ffmpeg_binary), timeout=timeout)
    samples = np.frombuffer(result.stdout, dtype="<f4")
    if samples.size == 0:
        raise ProducerError(
            f"Decoding {source.name} produced no samples", kind=ArtifactKind.WAVEFORM_PEAKS.value
        )
    peaks = compute_peaks(samples, points)
    duration = samples.size / DECODE_SAMPLE_RATE
    output.write_text(
        json.dumps({"duration": round(duration, 3), "points": points, "peaks": peaks}),
        encoding="utf-8",
    )


def make_waveform_extractor(
    source: Path,
    points: int = DEFAULT_POINTS,
    ffmpeg_binary: str = "ffmpeg",
    timeout: float | None = DEFAULT_TIMEOUT,
) -> Callable[[Path], None]:
    return functools.partial(
        extract_waveform, source=source, points=points, ffmpeg_binary=ffmpeg_binary, timeout=timeout
    )
