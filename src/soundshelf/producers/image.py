"""Cover image resizing with Pillow."""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError

from soundshelf.errors.exceptions import ProducerError
from soundshelf.types import ArtifactKind, ArtifactRequest

logger = logging.getLogger(__name__)

DEFAULT_QUALITY = 80

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif", ".tif", ".tiff", ".bmp"}


def resize_request(
    source: Path,
    max_edge: int,
    square: bool = False,
    quality: int = DEFAULT_QUALITY,
) -> ArtifactRequest:
    return ArtifactRequest(
        kind=ArtifactKind.RESIZED_IMAGE,
        inputs=[source],
        params={"max_edge": max_edge, "square": square, "quality": quality, "format": "jpeg"},
        extension="jpg",
        label=f"{source.name} at {max_edge}px",
    )


def resize_image(
    output: Path,
    source: Path,
    max_edge: int,
    square: bool = False,
    quality: int = DEFAULT_QUALITY,
) -> tuple[int, int]:
    """Write a JPEG no larger than ``max_edge`` on either side.

    Images are never upscaled. ``square`` crops to the centered square
    first. Returns the written dimensions.
    """
    try:
        with Image.open(source) as img:
            img = ImageOps.exif_transpose(img)
            img = img.convert("RGB")
            if square:
                edge = min(img.size)
                left = (img.width - edge) // 2
                top = (img.height - edge) // 2
                img = img.crop((left, top, left + edge, top + edge))
            img.thumbnail((max_edge, max_edge), Image.Resampling.LANCZOS)
            img.save(output, format="JPEG", quality=quality, optimize=True)
            return img.size
    except (UnidentifiedImageError, OSError) as e:
        raise ProducerError(
            f"Could not resize {source.name}: {e}", kind=ArtifactKind.RESIZED_IMAGE.value
        ) from e


def make_resizer(
    source: Path,
    max_edge: int,
    square: bool = False,
    quality: int = DEFAULT_QUALITY,
) -> Callable[[Path], None]:
    return functools.partial(
        resize_image, source=source, max_edge=max_edge, square=square, quality=quality
    )
