"""Tests for the external process runner."""

import subprocess
from unittest.mock import patch

import pytest

from soundshelf.errors.exceptions import ProducerError
from soundshelf.producers.runner import run_external


class TestRunExternal:
    def test_success_returns_output(self, monkeypatch):
        def fake_run(command, **kwargs):
            return subprocess.CompletedProcess(command, 0, stdout=b"ok", stderr=b"")

        monkeypatch.setattr("soundshelf.producers.runner.subprocess.run", fake_run)
        assert run_external(["ffmpeg", "-version"]).stdout == b"ok"

    def test_passes_timeout(self, monkeypatch):
        seen = {}

        def fake_run(command, **kwargs):
            seen.update(kwargs)
            return subprocess.CompletedProcess(command, 0, stdout=b"", stderr=b"")

        monkeypatch.setattr("soundshelf.producers.runner.subprocess.run", fake_run)
        run_external(["ffmpeg"], timeout=12)
        assert seen["timeout"] == 12
        assert seen["capture_output"] is True

    def test_nonzero_exit_is_fatal(self, monkeypatch):
        def fake_run(command, **kwargs):
            return subprocess.CompletedProcess(command, 1, stdout=b"", stderr=b"Unknown encoder")

        monkeypatch.setattr("soundshelf.producers.runner.subprocess.run", fake_run)
        with pytest.raises(ProducerError) as exc_info:
            run_external(["ffmpeg", "-i", "x"])
        err = exc_info.value
        assert err.fatal is True
        assert err.returncode == 1
        assert "Unknown encoder" in err.stderr
        assert "exit code 1" in err.message

    def test_timeout(self, monkeypatch):
        def fake_run(command, **kwargs):
            raise subprocess.TimeoutExpired(command, kwargs["timeout"], stderr=b"stuck")

        monkeypatch.setattr("soundshelf.producers.runner.subprocess.run", fake_run)
        with pytest.raises(ProducerError) as exc_info:
            run_external(["ffmpeg"], timeout=5)
        assert exc_info.value.timed_out is True
        assert exc_info.value.fatal is True
        assert exc_info.value.stderr == "stuck"

    def test_missing_binary(self):
        with pytest.raises(ProducerError, match="could not be executed"):
            run_external(["definitely-not-a-real-binary-soundshelf"])

    def test_command_passed_through_unchanged(self):
        completed = subprocess.CompletedProcess(["ffmpeg"], 0, stdout=b"", stderr=b"")
        with patch("soundshelf.producers.runner.subprocess.run", return_value=completed) as mock_run:
            run_external(["ffmpeg", "-i", "in.flac", "out.opus"])
        mock_run.assert_called_once()
        assert mock_run.call_args.args[0] == ["ffmpeg", "-i", "in.flac", "out.opus"]
