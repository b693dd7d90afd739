"""Embedding-similarity reranking of source synopses."""

from __future__ import annotations

import asyncio
import time
from typing import Sequence

from localsearch.cache import CacheStore
from localsearch.embeddings import EmbeddingBackend, cosine_similarity
from localsearch.errors import EmbeddingError
from localsearch.metrics.observability import PipelineMetrics, get_logger
from localsearch.models import RankedSource, SourceSynopsis, Vector

DEFAULT_TOP_K = 5


class Reranker:
    """Score synopses against the query embedding and keep the top ``top_k``."""

    def __init__(
        self,
        embeddings: EmbeddingBackend,
        cache: CacheStore | None = None,
        *,
        top_k: int = DEFAULT_TOP_K,
        timeout_seconds: float = 30.0,
    ) -> None:
        if top_k < 1:
            raise ValueError("top_k must be at least 1")
        self._embeddings = embeddings
        self._cache = cache
        self._top_k = top_k
        self._timeout = timeout_seconds
        self._logger = get_logger("rerank")

    async def rerank(self, query: str, synopses: Sequence[SourceSynopsis]) -> list[RankedSource]:
        if not synopses:
            return []
        start = time.perf_counter()
        known: list[Vector | None] = [self._known_embedding(synopsis) for synopsis in synopses]
        missing = [index for index, vector in enumerate(known) if vector is None]
        query_vector, fresh = await self._bounded(
            self._embeddings.embed_query(query),
            self._embed_missing([synopses[index].text for index in missing]),
        )
        self._fill(known, missing, fresh)
        fresh_indices = set(missing)

        # precomputed vectors from another embedding model are treated as misses
        stale = [
            index
            for index, vector in enumerate(known)
            if index not in fresh_indices and vector is not None and len(vector) != len(query_vector)
        ]
        if stale:
            self._logger.warning(
                "rerank.cache_dimension_mismatch",
                stale=len(stale),
                expected_dim=len(query_vector),
            )
            for _ in stale:
                PipelineMetrics.record_cache_lookup("embedding", False)
            (refreshed,) = await self._bounded(self._embed_missing([synopses[index].text for index in stale]))
            self._fill(known, stale, refreshed)

        try:
            scored = [
                RankedSource(synopsis=synopsis, score=cosine_similarity(query_vector, vector))
                for synopsis, vector in zip(synopses, known)
            ]
        except ValueError as exc:
            raise EmbeddingError("Embedding model returned vectors of inconsistent dimensions") from exc
        # sorted() is stable, so equal scores keep retrieval order
        ranked = sorted(scored, key=lambda item: item.score, reverse=True)[: self._top_k]
        duration = time.perf_counter() - start
        PipelineMetrics.observe_rerank(duration, (item.score for item in ranked))
        self._logger.info(
            "rerank.complete",
            synopsis_count=len(synopses),
            embedded=len(missing) + len(stale),
            kept=len(ranked),
            duration_seconds=duration,
        )
        return ranked

    def _known_embedding(self, synopsis: SourceSynopsis) -> Vector | None:
        if synopsis.embedding is not None:
            return synopsis.embedding
        if self._cache is None:
            return None
        return self._cache.get_embedding(self._cache.normalize(synopsis.source.path))

    async def _embed_missing(self, texts: Sequence[str]) -> Sequence[Vector]:
        if not texts:
            return []
        return await self._embeddings.embed_documents(texts)

    async def _bounded(self, *calls) -> list:
        try:
            return await asyncio.wait_for(asyncio.gather(*calls), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise EmbeddingError(f"Embedding timed out after {self._timeout}s") from exc
        except EmbeddingError:
            raise
        except Exception as exc:
            raise EmbeddingError("Embedding model call failed") from exc

    @staticmethod
    def _fill(known: list[Vector | None], indices: Sequence[int], vectors: Sequence[Vector]) -> None:
        if len(vectors) != len(indices):
            raise EmbeddingError(f"Expected {len(indices)} embeddings, received {len(vectors)}")
        for index, vector in zip(indices, vectors):
            known[index] = tuple(vector)
