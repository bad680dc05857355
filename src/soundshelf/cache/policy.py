"""Optimization policy — staleness transitions and purging of cache entries.

Per entry: fresh → stale when a build does not use it, stale → fresh when
a later build uses it again, stale → purged when the configured strategy
says so. Intermediate artifacts, which only feed another artifact, start out
stale. Purging deletes the artifact file first and removes the index
record only once the file is confirmed gone.
"""

from __future__ import annotations

import logging
import time

from pydantic import BaseModel

from soundshelf.cache.index import CacheIndex
from soundshelf.cache.stats import CacheEntry, CacheReport
from soundshelf.errors.exceptions import ConfigError
from soundshelf.types import EntryState, OptimizationStrategy

logger = logging.getLogger(__name__)

DEFAULT_GRACE_SECONDS = 24 * 60 * 60

_REPORTING_STRATEGIES = {OptimizationStrategy.DELAYED, OptimizationStrategy.MANUAL}


class OptimizationOutcome(BaseModel):
    """What one optimization pass did."""

    marked_stale: int = 0
    purged: int = 0
    reclaimed_bytes: int = 0
    purge_failures: int = 0
    orphans_removed: int = 0
    report: CacheReport | None = None

    def merge(self, other: OptimizationOutcome) -> None:
        self.marked_stale += other.marked_stale
        self.purged += other.purged
        self.reclaimed_bytes += other.reclaimed_bytes
        self.purge_failures += other.purge_failures
        self.orphans_removed += other.orphans_removed


class CachePolicy:
    """Schedules the stale → purged edge according to a strategy.

    Args:
        strategy: One of delayed, immediate, wipe, manual.
        grace_period: Seconds a stale entry survives under ``delayed``,
            measured from the start of the build that marked it stale.
    """

    def __init__(
        self,
        strategy: OptimizationStrategy | str = OptimizationStrategy.DELAYED,
        grace_period: float = DEFAULT_GRACE_SECONDS,
    ) -> None:
        try:
            self._strategy = OptimizationStrategy(strategy)
        except ValueError:
            raise ConfigError(
                f"Unknown cache optimization strategy '{strategy}'", key="cache_strategy"
            ) from None
        if grace_period < 0:
            raise ConfigError("Grace period must not be negative", key="grace_period_hours")
        self._grace_period = grace_period
        self._build_started: float | None = None

    @property
    def strategy(self) -> OptimizationStrategy:
        return self._strategy

    @property
    def grace_period(self) -> float:
        return self._grace_period

    def begin_build(self, index: CacheIndex, now: float | None = None) -> OptimizationOutcome:
        """Run start-of-build housekeeping on a freshly loaded index."""
        self._build_started = time.time() if now is None else now
        outcome = OptimizationOutcome()
        if self._strategy == OptimizationStrategy.WIPE:
            logger.info("Wiping the cache before building")
            outcome.merge(self.purge_all(index))
        outcome.orphans_removed = self.remove_orphans(index)
        return outcome

    def finish_build(self, index: CacheIndex, now: float | None = None) -> OptimizationOutcome:
        """Apply end-of-build transitions.

        Fresh entries the build did not use become stale. Stale entries,
        including intermediates used by this build, are purged once the
        strategy deems them obsolete.
        """
        now = time.time() if now is None else now
        stale_timestamp = self._build_started if self._build_started is not None else now
        outcome = OptimizationOutcome()

        for entry in index.entries():
            if entry.state == EntryState.FRESH:
                if index.is_used(entry.key):
                    continue
                entry.mark_stale(stale_timestamp)
                outcome.marked_stale += 1
                if self._purges_on_staleness():
                    self._purge(index, entry, outcome)
            elif entry.state == EntryState.STALE and self._is_obsolete(entry, now):
                self._purge(index, entry, outcome)

        if outcome.marked_stale or outcome.purged:
            logger.info(
                "Cache optimization: %d entries became stale, %d purged",
                outcome.marked_stale,
                outcome.purged,
            )
        if self._strategy in _REPORTING_STRATEGIES:
            outcome.report = self.report(index)
        return outcome

    def purge_stale(self, index: CacheIndex) -> OptimizationOutcome:
        """Purge every stale entry now, regardless of the grace window."""
        outcome = OptimizationOutcome()
        for entry in index.entries():
            if entry.state == EntryState.STALE:
                self._purge(index, entry, outcome)
        return outcome

    def purge_all(self, index: CacheIndex) -> OptimizationOutcome:
        """Purge every entry, whatever its state."""
        outcome = OptimizationOutcome()
        for entry in index.entries():
            self._purge(index, entry, outcome)
        return outcome

    def report(self, index: CacheIndex) -> CacheReport:
        report = CacheReport()
        for entry in index.entries():
            report.add(entry)
        return report

    def remove_orphans(self, index: CacheIndex) -> int:
        """Delete files in the artifacts directory that no entry references.

        These are leftovers of interrupted builds, interrupted purges and of
        kinds dropped on load.
        """
        artifacts_dir = index.artifacts_dir
        if not artifacts_dir.is_dir():
            return 0

        referenced = {index.artifact_path(e).name for e in index.entries()}
        removed = 0
        for path in sorted(artifacts_dir.iterdir()):
            if not path.is_file() or path.name in referenced:
                continue
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning("Could not remove orphaned cache file %s: %s", path, e)
                continue
            logger.debug("Removed orphaned cache file %s", path.name)
            removed += 1

        if removed:
            logger.info("Removed %d orphaned cache files", removed)
        return removed

    def _purges_on_staleness(self) -> bool:
        return self._strategy in (OptimizationStrategy.IMMEDIATE, OptimizationStrategy.WIPE)

    def _is_obsolete(self, entry: CacheEntry, now: float) -> bool:
        if self._strategy == OptimizationStrategy.MANUAL:
            return False
        if self._strategy == OptimizationStrategy.DELAYED:
            stale_since = entry.stale_since if entry.stale_since is not None else now
            return now - stale_since >= self._grace_period
        return True

    def _purge(self, index: CacheIndex, entry: CacheEntry, outcome: OptimizationOutcome) -> bool:
        path = index.artifact_path(entry)
        try:
            path.unlink()
        except FileNotFoundError:
            logger.debug("Artifact %s was already gone", entry.path)
        except OSError as e:
            logger.warning("Could not purge cached artifact %s, will retry next build: %s", path, e)
            outcome.purge_failures += 1
            return False

        index.remove(entry.key)
        entry.state = EntryState.PURGED
        outcome.purged += 1
        outcome.reclaimed_bytes += entry.size_bytes
        logger.debug("Purged %s artifact %s", entry.kind.value, entry.path)
        return True
