"""Tests for CacheManager get-or-compute semantics."""

import pytest

from soundshelf.cache.manager import CacheManager
from soundshelf.errors.exceptions import ProducerError
from soundshelf.types import ArtifactKind, ArtifactRequest, EntryState


class CountingProducer:
    def __init__(self, payload: bytes = b"artifact", error: Exception | None = None):
        self.calls = 0
        self.payload = payload
        self.error = error

    def __call__(self, output):
        self.calls += 1
        if self.error is not None:
            output.write_bytes(b"half written")
            raise self.error
        output.write_bytes(self.payload)


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "track.flac"
    path.write_bytes(b"source audio")
    return path


def _request(source, fmt="opus-128"):
    return ArtifactRequest(
        kind=ArtifactKind.TRANSCODED_AUDIO,
        inputs=[source],
        params={"format": fmt},
        extension="opus",
    )


class TestGetOrCompute:
    def test_miss_computes_and_records(self, memory_index, source):
        mgr = CacheManager(memory_index)
        producer = CountingProducer()
        artifact = mgr.get_or_compute(_request(source), producer)
        assert producer.calls == 1
        assert artifact.cached is False
        assert artifact.path.read_bytes() == b"artifact"
        assert artifact.path.name == f"{artifact.key}.opus"
        assert artifact.path.parent == memory_index.artifacts_dir
        assert artifact.key in memory_index
        assert artifact.size_bytes == len(b"artifact")

    def test_second_request_hits(self, memory_index, source):
        mgr = CacheManager(memory_index)
        producer = CountingProducer()
        first = mgr.get_or_compute(_request(source), producer)
        second = mgr.get_or_compute(_request(source), producer)
        assert producer.calls == 1
        assert second.cached is True
        assert second.path == first.path
        stats = mgr.stats()
        assert (stats.hits, stats.misses, stats.computed) == (1, 1, 1)

    def test_different_params_compute_separately(self, memory_index, source):
        mgr = CacheManager(memory_index)
        producer = CountingProducer()
        a = mgr.get_or_compute(_request(source, "opus-96"), producer)
        b = mgr.get_or_compute(_request(source, "opus-128"), producer)
        assert producer.calls == 2
        assert a.key != b.key

    def test_missing_file_is_recomputed(self, memory_index, source, caplog):
        mgr = CacheManager(memory_index)
        producer = CountingProducer()
        artifact = mgr.get_or_compute(_request(source), producer)
        artifact.path.unlink()

        with caplog.at_level("WARNING"):
            again = mgr.get_or_compute(_request(source), producer)
        assert producer.calls == 2
        assert again.path.exists()
        assert "Cache inconsistency" in caplog.text
        assert mgr.stats().inconsistencies == 1

    def test_producer_failure_caches_nothing(self, memory_index, source):
        mgr = CacheManager(memory_index)
        producer = CountingProducer(error=RuntimeError("encoder crashed"))
        with pytest.raises(ProducerError) as exc_info:
            mgr.get_or_compute(_request(source), producer)
        assert "encoder crashed" in str(exc_info.value)
        assert exc_info.value.kind == "transcoded-audio"
        assert exc_info.value.key is not None
        assert len(memory_index) == 0
        assert list(memory_index.artifacts_dir.iterdir()) == []

    def test_producer_error_passes_through(self, memory_index, source):
        mgr = CacheManager(memory_index)
        error = ProducerError("ffmpeg returned exit code 1", returncode=1)
        with pytest.raises(ProducerError) as exc_info:
            mgr.get_or_compute(_request(source), CountingProducer(error=error))
        assert exc_info.value is error
        assert error.kind == "transcoded-audio"

    def test_failure_leaves_other_entries(self, memory_index, source, tmp_path):
        mgr = CacheManager(memory_index)
        good = mgr.get_or_compute(_request(source), CountingProducer())
        with pytest.raises(ProducerError):
            mgr.get_or_compute(_request(source, "mp3-v0"), CountingProducer(error=OSError("x")))
        assert good.key in memory_index
        assert len(memory_index) == 1

    def test_producer_writing_nothing_fails(self, memory_index, source):
        mgr = CacheManager(memory_index)
        with pytest.raises(ProducerError, match="wrote no output"):
            mgr.get_or_compute(_request(source), lambda output: None)
        assert len(memory_index) == 0

    def test_interrupt_leaves_no_partial_file(self, memory_index, source):
        mgr = CacheManager(memory_index)
        with pytest.raises(KeyboardInterrupt):
            mgr.get_or_compute(_request(source), CountingProducer(error=KeyboardInterrupt()))
        assert len(memory_index) == 0
        assert list(memory_index.artifacts_dir.iterdir()) == []

    def test_disabled_always_computes(self, memory_index, source):
        mgr = CacheManager(memory_index, enabled=False)
        producer = CountingProducer()
        mgr.get_or_compute(_request(source), producer)
        mgr.get_or_compute(_request(source), producer)
        assert producer.calls == 2
        assert mgr.enabled is False

    def test_salt_changes_archive_location(self, memory_index, source):
        request = ArtifactRequest(kind=ArtifactKind.ARCHIVE, inputs=[source], extension="zip")
        a = CacheManager(memory_index, salt="one").key_for(request)
        b = CacheManager(memory_index, salt="two").key_for(request)
        assert a != b

    def test_intermediate_artifact_recorded_stale(self, memory_index, source):
        mgr = CacheManager(memory_index)
        artifact = mgr.get_or_compute(_request(source), CountingProducer(), intermediate=True)
        entry = memory_index.lookup(artifact.key, intermediate=True)
        assert entry.state == EntryState.STALE
        assert entry.stale_since == memory_index.build_started

    def test_intermediate_hit_is_served(self, memory_index, source):
        mgr = CacheManager(memory_index)
        producer = CountingProducer()
        mgr.get_or_compute(_request(source), producer, intermediate=True)
        again = mgr.get_or_compute(_request(source), producer, intermediate=True)
        assert again.cached
        assert producer.calls == 1

    def test_nested_producer_calls(self, memory_index, source):
        mgr = CacheManager(memory_index)
        inner = CountingProducer(payload=b"member")

        def outer(output):
            member = mgr.get_or_compute(_request(source, "flac"), inner, intermediate=True)
            output.write_bytes(b"zip:" + member.path.read_bytes())

        archive = ArtifactRequest(kind=ArtifactKind.ARCHIVE, inputs=[source], extension="zip")
        artifact = mgr.get_or_compute(archive, outer)
        assert artifact.path.read_bytes() == b"zip:member"
        assert mgr.get_or_compute(archive, outer).cached
        assert inner.calls == 1
