"""soundshelf — static music catalog builder with an incremental artifact cache."""

from soundshelf.cache.index import CacheIndex
from soundshelf.cache.manager import CacheManager
from soundshelf.cache.policy import CachePolicy
from soundshelf.types import ArtifactKind, OptimizationStrategy

__version__ = "0.3.0"

__all__ = [
    "ArtifactKind",
    "CacheIndex",
    "CacheManager",
    "CachePolicy",
    "OptimizationStrategy",
    "__version__",
]
