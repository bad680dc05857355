"""Tests for CLI commands."""

import pytest
from click.testing import CliRunner

from soundshelf.cache.index import CacheIndex
from soundshelf.cli import cli
from soundshelf.types import ArtifactKind, EntryState


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def no_global_config(tmp_path, monkeypatch):
    monkeypatch.setattr(
        "soundshelf.config.hierarchy._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml"
    )


@pytest.fixture
def seeded_cache(tmp_path):
    """A cache with one fresh and one stale transcode."""
    cache_dir = tmp_path / "catalog" / ".faircamp_cache"
    index = CacheIndex(cache_dir)
    index.load()
    index.artifacts_dir.mkdir(parents=True)
    for key in ("fresh", "stale"):
        (index.artifacts_dir / f"{key}.opus").write_bytes(b"x" * 2048)
        index.insert(key, ArtifactKind.TRANSCODED_AUDIO, f"artifacts/{key}.opus", 2048)
    index.lookup("stale").mark_stale(0.0)
    index.persist()
    return cache_dir


def _reload(cache_dir):
    index = CacheIndex(cache_dir)
    index.load()
    return index


class TestCLIGroup:
    def test_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "soundshelf" in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0


class TestBuildCommand:
    def test_help(self, runner):
        result = runner.invoke(cli, ["build", "--help"])
        assert result.exit_code == 0
        assert "--strategy" in result.output
        assert "--no-cache" in result.output

    def test_nonexistent_catalog(self, runner):
        result = runner.invoke(cli, ["build", "does-not-exist"])
        assert result.exit_code != 0

    def test_empty_catalog(self, runner, tmp_path):
        result = runner.invoke(cli, ["build", str(tmp_path)])
        assert result.exit_code == 0
        assert "No releases found" in result.output

    def test_invalid_strategy_rejected(self, runner, tmp_path):
        result = runner.invoke(cli, ["build", str(tmp_path), "--strategy", "sometimes"])
        assert result.exit_code != 0

    def test_builds_catalog(self, runner, catalog, fake_ffmpeg, tmp_path):
        build_dir = tmp_path / "public"
        result = runner.invoke(cli, ["build", str(catalog), "--build-dir", str(build_dir)])
        assert result.exit_code == 0, result.output
        assert "Built 1 of 1 releases" in result.output
        assert (build_dir / "first-album").is_dir()

    def test_failed_release_exit_code(self, runner, catalog, fake_ffmpeg):
        fake_ffmpeg.fail_on = "First Album"
        result = runner.invoke(cli, ["build", str(catalog)])
        assert result.exit_code == 1
        assert "Failed" in result.output


class TestCacheCommands:
    def test_cache_help(self, runner):
        result = runner.invoke(cli, ["cache", "--help"])
        assert result.exit_code == 0
        for command in ("report", "optimize", "wipe"):
            assert command in result.output

    def test_report(self, runner, seeded_cache):
        result = runner.invoke(cli, ["cache", "report", str(seeded_cache.parent)])
        assert result.exit_code == 0
        assert "Cache Report" in result.output
        assert "transcoded-audio" in result.output
        assert "soundshelf cache optimize" in result.output

    def test_optimize_purges_stale_only(self, runner, seeded_cache):
        result = runner.invoke(cli, ["cache", "optimize", str(seeded_cache.parent)])
        assert result.exit_code == 0
        assert "Purged 1 stale artifacts" in result.output
        index = _reload(seeded_cache)
        assert "fresh" in index
        assert "stale" not in index
        assert not (seeded_cache / "artifacts" / "stale.opus").exists()

    def test_optimize_with_cache_dir_option(self, runner, seeded_cache, tmp_path):
        elsewhere = tmp_path / "elsewhere"
        elsewhere.mkdir()
        result = runner.invoke(
            cli, ["cache", "optimize", str(elsewhere), "--cache-dir", str(seeded_cache)]
        )
        assert result.exit_code == 0
        assert "stale" not in _reload(seeded_cache)

    def test_wipe_needs_confirmation(self, runner, seeded_cache):
        result = runner.invoke(cli, ["cache", "wipe", str(seeded_cache.parent)], input="n\n")
        assert result.exit_code != 0
        assert len(_reload(seeded_cache)) == 2

    def test_wipe_with_yes(self, runner, seeded_cache):
        result = runner.invoke(cli, ["cache", "wipe", str(seeded_cache.parent), "--yes"])
        assert result.exit_code == 0
        assert "Cache wiped: 2 artifacts" in result.output
        assert len(_reload(seeded_cache)) == 0
        assert list((seeded_cache / "artifacts").iterdir()) == []

    def test_stale_state_persisted(self, seeded_cache):
        index = _reload(seeded_cache)
        states = {e.key: e.state for e in index.entries()}
        assert states == {"fresh": EntryState.FRESH, "stale": EntryState.STALE}
