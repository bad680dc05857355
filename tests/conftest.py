import subprocess
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from soundshelf.cache.index import CacheIndex
from soundshelf.cache.memory import MemoryIndexStorage


@pytest.fixture
def cache_dir(tmp_path):
    path = tmp_path / "cache"
    path.mkdir()
    return path


@pytest.fixture
def memory_index(cache_dir):
    """A loaded index whose persisted document lives in memory."""
    index = CacheIndex(cache_dir, storage=MemoryIndexStorage())
    index.load()
    return index


@pytest.fixture
def sample_cover(tmp_path):
    """Write a 600x400 PNG and return its path."""
    path = tmp_path / "cover_source.png"
    Image.new("RGB", (600, 400), color=(200, 30, 90)).save(path)
    return path


@pytest.fixture
def catalog(tmp_path, sample_cover):
    """A catalog with one release of two tracks and a cover image."""
    root = tmp_path / "catalog"
    release = root / "First Album"
    release.mkdir(parents=True)
    (release / "01 Opening.flac").write_bytes(b"flac-one")
    (release / "02 Closing.flac").write_bytes(b"flac-two")
    (release / "cover.png").write_bytes(sample_cover.read_bytes())
    (release / "liner-notes.txt").write_text("Thanks for listening.")
    return root


class FakeFfmpeg:
    """Stands in for subprocess.run: records commands, writes fake outputs."""

    def __init__(self) -> None:
        self.commands: list[list[str]] = []
        self.fail_on: str | None = None

    def __call__(self, command, **kwargs):
        self.commands.append(list(command))
        if self.fail_on and any(self.fail_on in part for part in command):
            return subprocess.CompletedProcess(command, 1, stdout=b"", stderr=b"boom")
        if command[-1] == "-":
            samples = np.sin(np.linspace(0, 40, 22050)).astype("<f4")
            return subprocess.CompletedProcess(command, 0, stdout=samples.tobytes(), stderr=b"")
        output = Path(command[-1])
        source = Path(command[command.index("-i") + 1])
        output.write_bytes(b"encoded:" + source.read_bytes() + " ".join(command[:-1]).encode())
        return subprocess.CompletedProcess(command, 0, stdout=b"", stderr=b"")

    @property
    def runs(self) -> int:
        return len(self.commands)


@pytest.fixture
def fake_ffmpeg(monkeypatch):
    fake = FakeFfmpeg()
    monkeypatch.setattr("soundshelf.producers.runner.subprocess.run", fake)
    return fake
