"""Bounded async pool running blocking build jobs in worker threads."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class ConcurrencyPool:
    """Runs independent jobs concurrently, at most ``max_workers`` at a time.

    Jobs are plain blocking callables (they shell out to ffmpeg or crunch
    images) and run through ``asyncio.to_thread``. Anything they share must
    do its own locking; the cache index does.
    """

    def __init__(self, max_workers: int = 4) -> None:
        self._max_workers = max(1, max_workers)

    @property
    def max_workers(self) -> int:
        return self._max_workers

    async def process_batch(
        self,
        job_fn: Callable[[T], R],
        items: Sequence[T],
    ) -> list[R | BaseException]:
        """Run ``job_fn`` over ``items``.

        Returns one result per item, in input order. A job that raised is
        represented by its exception so one failure never cancels the rest.
        """
        semaphore = asyncio.Semaphore(self._max_workers)

        async def worker(item: T) -> R:
            async with semaphore:
                return await asyncio.to_thread(job_fn, item)

        results = await asyncio.gather(*(worker(i) for i in items), return_exceptions=True)
        for item, result in zip(items, results):
            if isinstance(result, Exception):
                logger.debug("Job for %s raised %s", item, type(result).__name__)
        return list(results)

    def run(self, job_fn: Callable[[T], R], items: Sequence[T]) -> list[R | BaseException]:
        """Blocking entry point for callers outside an event loop."""
        return asyncio.run(self.process_batch(job_fn, items))
