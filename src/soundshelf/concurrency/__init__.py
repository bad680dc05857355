"""Concurrency — bounded async pool for independent build jobs."""

from soundshelf.concurrency.pool import ConcurrencyPool

__all__ = ["ConcurrencyPool"]
