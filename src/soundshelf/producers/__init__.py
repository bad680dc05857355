"""Artifact producers — each writes one artifact file to the path it is given."""

from soundshelf.producers.archive import archive_request, make_archiver
from soundshelf.producers.cover import cover_request, make_cover_writer
from soundshelf.producers.image import make_resizer, resize_request
from soundshelf.producers.runner import run_external
from soundshelf.producers.transcode import AudioFormat, TagMapping, make_transcoder, transcode_request
from soundshelf.producers.waveform import make_waveform_extractor, waveform_request

__all__ = [
    "AudioFormat",
    "TagMapping",
    "archive_request",
    "cover_request",
    "make_archiver",
    "make_cover_writer",
    "make_resizer",
    "make_transcoder",
    "make_waveform_extractor",
    "resize_request",
    "run_external",
    "transcode_request",
    "waveform_request",
]
