"""Build-time artifact cache — content-addressed keys, persisted index, staleness policy."""

from soundshelf.cache.index import CacheIndex
from soundshelf.cache.keys import generate_cache_key, hash_file, key_for_request
from soundshelf.cache.manager import CacheManager
from soundshelf.cache.policy import CachePolicy, OptimizationOutcome
from soundshelf.cache.stats import CacheEntry, CacheReport, CacheStats

__all__ = [
    "CacheIndex",
    "CacheManager",
    "CachePolicy",
    "OptimizationOutcome",
    "CacheEntry",
    "CacheReport",
    "CacheStats",
    "generate_cache_key",
    "hash_file",
    "key_for_request",
]
