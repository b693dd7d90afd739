"""Embedding backends for the local search pipeline."""

from __future__ import annotations

import hashlib
import logging
import math
from dataclasses import dataclass
from typing import Protocol, Sequence

from langchain_community.embeddings import HuggingFaceEmbeddings
from langchain_core.embeddings import Embeddings as LangChainEmbeddings

from localsearch.models import Vector

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmbeddingConfig:
    """Configuration for embedding backends."""

    model: str = "BAAI/bge-small-en-v1.5"
    dim: int = 384
    use_model: bool = False
    device: str | None = None
    normalize: bool = True
    cache_folder: str | None = None


class EmbeddingBackend(Protocol):
    """Protocol describing embedding behaviour."""

    async def embed_query(self, text: str) -> Vector:
        """Return the embedding vector for a query string."""

    async def embed_documents(self, texts: Sequence[str]) -> Sequence[Vector]:
        """Return one embedding vector per text, in input order."""


class HashEmbeddingBackend:
    """Deterministic lightweight embedding fallback used for testing."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self._config = config or EmbeddingConfig()

    def _hash_to_vector(self, text: str) -> Vector:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        repeat = (self._config.dim + len(digest) - 1) // len(digest)
        raw = (digest * repeat)[: self._config.dim]
        vector = [byte / 255.0 for byte in raw]
        if self._config.normalize:
            norm = math.sqrt(sum(value * value for value in vector)) or 1.0
            vector = [value / norm for value in vector]
        return tuple(vector)

    async def embed_query(self, text: str) -> Vector:
        return self._hash_to_vector(text)

    async def embed_documents(self, texts: Sequence[str]) -> Sequence[Vector]:
        return [self._hash_to_vector(text) for text in texts]


class HuggingFaceEmbeddingBackend:
    """Embedding backend that optionally runs a sentence-embedding model via LangChain."""

    def __init__(self, config: EmbeddingConfig | None = None) -> None:
        self._config = config or EmbeddingConfig()
        self._delegate = HashEmbeddingBackend(self._config)
        self._client: LangChainEmbeddings | None = None
        if not self._config.use_model:
            LOGGER.info("HuggingFaceEmbeddingBackend running in hash-only mode.")
            return
        try:
            model_kwargs = {"device": self._config.device} if self._config.device else {}
            self._client = HuggingFaceEmbeddings(
                model_name=self._config.model,
                model_kwargs=model_kwargs,
                encode_kwargs={"normalize_embeddings": self._config.normalize},
                cache_folder=self._config.cache_folder,
            )
            LOGGER.info("Loaded embedding model %s", self._config.model)
        except Exception as exc:  # pragma: no cover - defensive import/runtime guard
            LOGGER.warning("Falling back to hash embeddings: %s", exc)
            self._client = None

    async def embed_query(self, text: str) -> Vector:
        if self._client is None:
            return await self._delegate.embed_query(text)
        vector = tuple(await self._client.aembed_query(text))
        return self._normalize(vector)

    async def embed_documents(self, texts: Sequence[str]) -> Sequence[Vector]:
        if not texts:
            return []
        if self._client is None:
            return await self._delegate.embed_documents(texts)
        vectors = await self._client.aembed_documents(list(texts))
        if len(vectors) != len(texts):
            LOGGER.error("Embedding backend returned %d vectors for %d texts", len(vectors), len(texts))
            raise ValueError("Mismatch between number of texts and embedding vectors")
        if vectors and len(vectors[0]) != self._config.dim:
            LOGGER.warning(
                "Embedding dim mismatch: configured=%d, actual=%d",
                self._config.dim,
                len(vectors[0]),
            )
        return [self._normalize(tuple(vector)) for vector in vectors]

    def _normalize(self, vector: Vector) -> Vector:
        if not self._config.normalize:
            return vector
        norm = math.sqrt(sum(value * value for value in vector)) or 1.0
        return tuple(value / norm for value in vector)
