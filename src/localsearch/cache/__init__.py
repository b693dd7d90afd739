"""Precomputed summary and embedding cache."""

from .store import CacheStore, InMemoryCacheStore, JsonCacheStore, normalize_source_id

__all__ = [
    "CacheStore",
    "InMemoryCacheStore",
    "JsonCacheStore",
    "normalize_source_id",
]
