"""Build orchestration — catalog scan, per-release artifacts, end-of-build optimization."""

from __future__ import annotations

import logging
import os
import shutil
import time
from pathlib import Path

from soundshelf.cache.index import CacheIndex, IndexStorage
from soundshelf.cache.keys import hash_text
from soundshelf.cache.manager import CacheManager
from soundshelf.cache.policy import CachePolicy, OptimizationOutcome
from soundshelf.concurrency.pool import ConcurrencyPool
from soundshelf.config.schema import BuildSettings
from soundshelf.errors.exceptions import CacheConsistencyError, ReleaseLevelError, SoundshelfError
from soundshelf.producers.archive import archive_request, make_archiver
from soundshelf.producers.cover import cover_request, make_cover_writer
from soundshelf.producers.image import IMAGE_EXTENSIONS, make_resizer, resize_request
from soundshelf.producers.transcode import (
    AudioFormat,
    TagMapping,
    make_transcoder,
    source_family,
    transcode_request,
)
from soundshelf.producers.waveform import make_waveform_extractor, waveform_request
from soundshelf.types import Artifact, BuildResult, Release, ReleaseResult, Track
from soundshelf.utils.format import slugify

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = {".aac", ".aif", ".aiff", ".alac", ".flac", ".m4a", ".mp3", ".ogg", ".opus", ".wav"}
_MANIFEST_EXTENSIONS = {".eno", ".yaml", ".yml"}


# ── Catalog ──


def scan_catalog(catalog_dir: str | Path, exclude: set[Path] | None = None) -> list[Release]:
    """Find every release under ``catalog_dir``.

    A release is a directory directly containing audio files. Hidden
    directories and those in ``exclude`` are skipped.
    """
    root = Path(catalog_dir).resolve()
    excluded = {p.resolve() for p in (exclude or set())}
    releases: list[Release] = []
    slugs: set[str] = set()

    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        dirnames[:] = sorted(
            d for d in dirnames if not d.startswith(".") and (current / d).resolve() not in excluded
        )
        files = sorted(current / f for f in filenames if not f.startswith("."))
        audio = [f for f in files if f.suffix.lower() in AUDIO_EXTENSIONS]
        if not audio:
            continue

        images = [f for f in files if f.suffix.lower() in IMAGE_EXTENSIONS]
        extras = [
            f
            for f in files
            if f not in audio and f not in images and f.suffix.lower() not in _MANIFEST_EXTENSIONS
        ]
        title = current.name if current != root else root.name
        slug = _unique_slug(slugify(title), slugs)
        releases.append(
            Release(
                slug=slug,
                title=title,
                directory=current,
                tracks=[Track(source=f, title=f.stem, number=n) for n, f in enumerate(audio, 1)],
                cover=images[0] if images else None,
                extras=extras,
            )
        )

    logger.info("Found %d releases in %s", len(releases), root)
    return releases


def _unique_slug(slug: str, taken: set[str]) -> str:
    candidate = slug
    counter = 2
    while candidate in taken:
        candidate = f"{slug}-{counter}"
        counter += 1
    taken.add(candidate)
    return candidate


# ── Build session ──


class BuildSession:
    """One build invocation: owns the cache index from load to persist.

    The index is persisted exactly once, after every release has been
    processed and the optimization policy ran. A build that raises before
    that point leaves the previous index untouched on disk.
    """

    def __init__(
        self,
        settings: BuildSettings,
        storage: IndexStorage | None = None,
    ) -> None:
        self.settings = settings
        self.index = CacheIndex(settings.cache_dir, storage=storage)
        self.policy = CachePolicy(settings.cache_strategy, settings.grace_period_seconds)
        self.cache = CacheManager(
            self.index, enabled=not settings.no_cache, salt=settings.url_salt or None
        )
        self._pool = ConcurrencyPool(max_workers=settings.max_workers)

    def run(self, releases: list[Release] | None = None, now: float | None = None) -> BuildResult:
        started = time.time() if now is None else now
        if releases is None:
            releases = scan_catalog(
                self.settings.catalog_dir,
                exclude={self.settings.cache_dir, self.settings.build_dir},
            )

        self.index.load(now=started)
        outcome = OptimizationOutcome()
        outcome.merge(self.policy.begin_build(self.index, now=started))

        results = self._pool.run(self.build_release, releases)
        release_results: list[ReleaseResult] = []
        for release, result in zip(releases, results):
            if isinstance(result, CacheConsistencyError):
                logger.error("Aborting build: %s", result.message)
                raise result
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.error("Release '%s' failed unexpectedly: %s", release.slug, result)
                result = ReleaseResult(slug=release.slug, error=str(result))
            release_results.append(result)

        finished = self.policy.finish_build(self.index, now=time.time() if now is None else now)
        outcome.merge(finished)
        self.index.persist()

        stats = self.cache.stats()
        logger.info(
            "Build finished: %d hits, %d computed, %d inconsistencies",
            stats.hits,
            stats.computed,
            stats.inconsistencies,
        )
        return BuildResult(
            releases=release_results,
            purged=outcome.purged,
            reclaimed_bytes=outcome.reclaimed_bytes,
            report_lines=finished.report.lines() if finished.report else [],
        )

    def build_release(self, release: Release) -> ReleaseResult:
        """Produce and publish all artifacts of one release.

        Failures stay local to the release, except consistency violations
        which abort the build.
        """
        try:
            artifacts = self._release_artifacts(release)
        except CacheConsistencyError:
            raise
        except (SoundshelfError, OSError) as e:
            error = ReleaseLevelError(
                f"Release '{release.slug}' failed: {e}", release=release.slug, inner=e
            )
            logger.error("%s", error.message)
            return ReleaseResult(slug=release.slug, error=error.message)
        return ReleaseResult(slug=release.slug, artifacts=artifacts)

    def _release_artifacts(self, release: Release) -> list[Artifact]:
        settings = self.settings
        out_dir = settings.build_dir / release.slug
        produced: list[Artifact] = []

        if release.cover is not None:
            for edge in settings.cover_edge_sizes:
                artifact = self.cache.get_or_compute(
                    resize_request(release.cover, edge), make_resizer(release.cover, edge)
                )
                _publish(artifact.path, out_dir / f"cover_{edge}.jpg")
                produced.append(artifact)

        for track in release.tracks:
            track_name = f"{track.number or 0:02d}-{slugify(track.title)}"

            peaks = self.cache.get_or_compute(
                waveform_request(track.source, settings.waveform_points),
                make_waveform_extractor(
                    track.source,
                    settings.waveform_points,
                    settings.ffmpeg_binary,
                    settings.producer_timeout,
                ),
            )
            _publish(peaks.path, out_dir / "peaks" / f"{track_name}.json")
            produced.append(peaks)

            for fmt in settings.streaming_formats:
                stream = self._transcode(track.source, fmt, TagMapping(mode="remove"))
                _publish(stream.path, out_dir / fmt.value / f"{track_name}.{fmt.extension}")
                produced.append(stream)

        for fmt in settings.download_formats:
            archive = self._archive(release, fmt)
            _publish(
                archive.path,
                out_dir / self._download_hash(release, fmt) / f"{release.slug}-{fmt.value}.zip",
            )
            produced.append(archive)

        return produced

    def _archive(self, release: Release, fmt: AudioFormat) -> Artifact:
        """Release archive in ``fmt``.

        Keyed on the source files and on how they are transcoded, so a cached
        archive needs none of its per-track transcodes. Those transcodes are
        intermediate artifacts and are only produced on an archive miss.
        """
        settings = self.settings
        track_members = [(track.source, _member_name(track, fmt)) for track in release.tracks]
        extras: list[tuple[Path, str]] = []
        if release.cover is not None:
            extras.append((release.cover, f"cover{release.cover.suffix.lower()}"))
        extras.extend((extra, extra.name) for extra in release.extras)

        request = archive_request(
            track_members + extras,
            settings.archive_compression_level,
            label=f"{release.slug} {fmt.value} archive",
            params={
                "audio_format": fmt.value,
                "source_families": [source_family(track.source) for track in release.tracks],
                "tags": [
                    _download_tags(release, track).model_dump(mode="json")
                    for track in release.tracks
                ],
                "embedded_cover": release.cover is not None and fmt.supports_embedded_cover,
            },
        )

        def produce(output: Path) -> None:
            members = [
                (self._download(release, track, fmt).path, name)
                for track, (_, name) in zip(release.tracks, track_members)
            ]
            make_archiver(members + extras, settings.archive_compression_level)(output)

        return self.cache.get_or_compute(request, produce)

    def _download(self, release: Release, track: Track, fmt: AudioFormat) -> Artifact:
        download = self._transcode(
            track.source, fmt, _download_tags(release, track), intermediate=True
        )
        if release.cover is not None and fmt.supports_embedded_cover:
            download = self.cache.get_or_compute(
                cover_request(download.path, release.cover),
                make_cover_writer(
                    download.path,
                    release.cover,
                    self.settings.ffmpeg_binary,
                    self.settings.producer_timeout,
                ),
                intermediate=True,
            )
        return download

    def _transcode(
        self, source: Path, fmt: AudioFormat, tags: TagMapping, intermediate: bool = False
    ) -> Artifact:
        return self.cache.get_or_compute(
            transcode_request(source, fmt, tags),
            make_transcoder(
                source, fmt, tags, self.settings.ffmpeg_binary, self.settings.producer_timeout
            ),
            intermediate=intermediate,
        )

    def _download_hash(self, release: Release, fmt: AudioFormat) -> str:
        """Salted directory name; changing the salt rotates all download URLs."""
        return hash_text(f"{self.settings.url_salt}|{release.slug}|{fmt.value}")[:16]


def _download_tags(release: Release, track: Track) -> TagMapping:
    return TagMapping(
        mode="custom",
        album=release.title,
        artist=track.artist or release.artist,
        title=track.title,
        track=track.number,
    )


def _member_name(track: Track, fmt: AudioFormat) -> str:
    return f"{track.number or 0:02d} {track.title}.{fmt.extension}"


def _publish(source: Path, target: Path) -> None:
    """Place a cached artifact into the build directory (hard link, else copy)."""
    target.parent.mkdir(parents=True, exist_ok=True)
    target.unlink(missing_ok=True)
    try:
        os.link(source, target)
    except OSError:
        shutil.copy2(source, target)
