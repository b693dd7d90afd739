"""Read-only lookup of precomputed per-source summaries and embeddings."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Mapping, Protocol, Sequence

from localsearch.metrics.observability import PipelineMetrics, get_logger
from localsearch.models import Vector

DEFAULT_ROOT_TOKEN = "Knowledge"


def normalize_source_id(path: str, root_token: str = DEFAULT_ROOT_TOKEN) -> str:
    """Reduce a machine-specific source path to the key used by the cache files.

    Separators are unified to ``/`` and everything before the first
    ``<root_token>/`` segment is dropped. The precomputed files prefix every
    key with ``<root_token>/``, so ``C:\\docs\\Knowledge\\26\\a.md`` becomes
    ``Knowledge/Knowledge/26/a.md``.
    """

    unified = path.replace("\\", "/")
    marker = f"{root_token}/"
    index = unified.find(marker)
    tail = unified[index:] if index >= 0 else unified
    return f"{marker}{tail}"


class CacheStore(Protocol):
    """Protocol for precomputed summary/embedding lookups."""

    def normalize(self, path: str) -> str:
        """Return the cache key for a source path."""

    def get_summary(self, key: str) -> str | None:
        """Return the cached synopsis for a normalized key, if any."""

    def get_embedding(self, key: str) -> Vector | None:
        """Return the cached synopsis embedding for a normalized key, if any."""


class InMemoryCacheStore:
    """Cache backed by plain mappings, populated once at construction."""

    def __init__(
        self,
        summaries: Mapping[str, str] | None = None,
        embeddings: Mapping[str, Sequence[float]] | None = None,
        *,
        root_token: str = DEFAULT_ROOT_TOKEN,
    ) -> None:
        self._summaries = dict(summaries or {})
        self._embeddings = {key: tuple(float(v) for v in value) for key, value in (embeddings or {}).items()}
        self._root_token = root_token

    @property
    def summary_count(self) -> int:
        return len(self._summaries)

    @property
    def embedding_count(self) -> int:
        return len(self._embeddings)

    def normalize(self, path: str) -> str:
        return normalize_source_id(path, self._root_token)

    def get_summary(self, key: str) -> str | None:
        summary = self._summaries.get(key)
        PipelineMetrics.record_cache_lookup("summary", summary is not None)
        return summary

    def get_embedding(self, key: str) -> Vector | None:
        vector = self._embeddings.get(key)
        PipelineMetrics.record_cache_lookup("embedding", vector is not None)
        return vector


class JsonCacheStore(InMemoryCacheStore):
    """Cache loaded from the precomputed ``final_summaries.json``/``final_embeddings.json`` files."""

    _logger = get_logger("cache")

    @classmethod
    def load(
        cls,
        summaries_path: Path | None,
        embeddings_path: Path | None,
        *,
        root_token: str = DEFAULT_ROOT_TOKEN,
    ) -> "JsonCacheStore":
        summaries = cls._read_mapping(summaries_path)
        embeddings = cls._read_mapping(embeddings_path)
        store = cls(
            {str(k): str(v) for k, v in summaries.items() if isinstance(v, str)},
            {str(k): v for k, v in embeddings.items() if isinstance(v, list)},
            root_token=root_token,
        )
        cls._logger.info(
            "cache.loaded",
            summaries=store.summary_count,
            embeddings=store.embedding_count,
        )
        return store

    @classmethod
    def _read_mapping(cls, path: Path | None) -> Mapping[str, object]:
        if path is None:
            return {}
        try:
            loaded = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            cls._logger.warning("cache.unavailable", path=str(path), detail=str(exc))
            return {}
        if not isinstance(loaded, dict):
            cls._logger.warning("cache.invalid", path=str(path), detail="expected a JSON object")
            return {}
        return loaded
