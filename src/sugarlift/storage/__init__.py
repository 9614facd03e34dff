"""Cache persistence for Sugarlift."""

from .cache import Cache, CacheItem

__all__ = ["Cache", "CacheItem"]
