"""Search index access for the local search pipeline."""

from __future__ import annotations

import asyncio
import hashlib
import time
from pathlib import Path
from typing import Any, Iterable, Mapping, MutableMapping, Protocol, Sequence

import chromadb
from chromadb.api import ClientAPI
from elasticsearch import AsyncElasticsearch

from localsearch.embeddings import EmbeddingBackend
from localsearch.errors import RetrievalError
from localsearch.metrics.observability import PipelineMetrics, get_logger
from localsearch.models import RawCandidate


class SearchBackend(Protocol):
    """Protocol for text-search indexes returning ranked candidate records."""

    async def search(self, query: str, *, corpus_id: str) -> Sequence[RawCandidate]:
        """Return candidates for ``query`` in retrieval order."""


class ElasticsearchSearchBackend:
    """Full-text search over an Elasticsearch index of markdown documents."""

    def __init__(
        self,
        client: AsyncElasticsearch,
        *,
        title_field: str = "filename",
        body_field: str = "content",
        path_field: str = "filename",
        size: int = 10,
    ) -> None:
        self._client = client
        self._title_field = title_field
        self._body_field = body_field
        self._path_field = path_field
        self._size = size

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "ElasticsearchSearchBackend":
        return cls(AsyncElasticsearch(hosts=[url]), **kwargs)

    async def search(self, query: str, *, corpus_id: str) -> Sequence[RawCandidate]:
        response = await self._client.search(
            index=corpus_id,
            query={
                "multi_match": {
                    "query": query,
                    "fields": [self._title_field, self._body_field],
                },
            },
            size=self._size,
        )
        hits = response["hits"]["hits"]
        return [self._to_candidate(hit["_source"]) for hit in hits if hit.get("_source") is not None]

    async def close(self) -> None:
        await self._client.close()

    def _to_candidate(self, source: Mapping[str, Any]) -> RawCandidate:
        title = str(source.get(self._title_field) or "")
        body = source.get(self._body_field)
        path = str(source.get(self._path_field) or title)
        return RawCandidate(title=title, path=path, body=str(body) if body else None)


class ChromaSearchBackend:
    """Vector search over a Chroma collection; ``corpus_id`` filters on ``dataset_id``."""

    def __init__(
        self,
        embedding_backend: EmbeddingBackend,
        collection_name: str = "localsearch",
        *,
        client: ClientAPI | None = None,
        persist_directory: str | Path | None = None,
        size: int = 10,
    ) -> None:
        if client is not None:
            self._client = client
        elif persist_directory is not None:
            self._client = chromadb.PersistentClient(path=str(persist_directory))
        else:
            self._client = chromadb.EphemeralClient()
        self._collection = self._client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )
        self._backend = embedding_backend
        self._size = size

    async def upsert(self, candidates: Sequence[RawCandidate], *, corpus_id: str) -> Sequence[str]:
        """Index documents for later search. Used to populate a local corpus out-of-band."""

        if not candidates:
            return []
        vectors = await self._backend.embed_documents([candidate.content for candidate in candidates])
        ids = [self._document_id(candidate, corpus_id, order) for order, candidate in enumerate(candidates)]
        metadatas = [self._serialize(candidate, corpus_id) for candidate in candidates]
        await asyncio.to_thread(
            self._collection.upsert,
            ids=ids,
            documents=[candidate.content for candidate in candidates],
            embeddings=[list(vector) for vector in vectors],
            metadatas=metadatas,
        )
        return ids

    async def search(self, query: str, *, corpus_id: str) -> Sequence[RawCandidate]:
        vector = list(await self._backend.embed_query(query))
        results = await asyncio.to_thread(
            self._collection.query,
            query_embeddings=[vector],
            n_results=self._size,
            where={"dataset_id": corpus_id},
        )
        documents = self._first(results.get("documents", []))
        metadatas = self._first(results.get("metadatas", []))
        return [self._deserialize(doc, md) for doc, md in zip(documents, metadatas, strict=False)]

    @staticmethod
    def _document_id(candidate: RawCandidate, corpus_id: str, order: int) -> str:
        digest = hashlib.sha1(f"{corpus_id}:{candidate.path}:{candidate.content}".encode("utf-8")).hexdigest()
        return f"{digest[:16]}-{order}"

    @staticmethod
    def _serialize(candidate: RawCandidate, corpus_id: str) -> MutableMapping[str, object]:
        return {
            "title": candidate.title,
            "source_path": candidate.path,
            "has_body": bool(candidate.body),
            "dataset_id": corpus_id,
        }

    @staticmethod
    def _deserialize(document: str | None, metadata: Mapping[str, object] | None) -> RawCandidate:
        metadata = metadata or {}
        title = str(metadata.get("title", ""))
        body = document if metadata.get("has_body", True) else None
        return RawCandidate(title=title, path=str(metadata.get("source_path", title)), body=body or None)

    @staticmethod
    def _first(value: object) -> Iterable:
        if isinstance(value, list):
            return value[0] if value else []
        return []


class Retriever:
    """Timeout-bound wrapper around a search backend.

    Failures are retried; once retries are exhausted the failure is logged and
    counted, and an empty candidate list is returned unless ``strict`` is set.
    """

    def __init__(
        self,
        backend: SearchBackend,
        *,
        timeout_seconds: float = 10.0,
        retries: int = 1,
        strict: bool = False,
    ) -> None:
        self._backend = backend
        self._timeout = timeout_seconds
        self._retries = max(0, retries)
        self._strict = strict
        self._logger = get_logger("retrieval")
        self.last_error: BaseException | None = None

    async def search(self, query: str, corpus_id: str) -> list[RawCandidate]:
        start = time.perf_counter()
        error: BaseException | None = None
        for attempt in range(self._retries + 1):
            try:
                candidates = await asyncio.wait_for(
                    self._backend.search(query, corpus_id=corpus_id),
                    timeout=self._timeout,
                )
            except asyncio.TimeoutError as exc:
                error = exc
                self._logger.warning("retrieval.timeout", attempt=attempt + 1, timeout_seconds=self._timeout)
            except Exception as exc:
                error = exc
                self._logger.warning("retrieval.attempt_failed", attempt=attempt + 1, detail=str(exc))
            else:
                self.last_error = None
                candidates = list(candidates)
                duration = time.perf_counter() - start
                PipelineMetrics.observe_retrieval(duration, len(candidates))
                self._logger.info(
                    "retrieval.complete",
                    query=query,
                    corpus_id=corpus_id,
                    candidate_count=len(candidates),
                    duration_seconds=duration,
                )
                return candidates

        self.last_error = error
        PipelineMetrics.record_retrieval_failure()
        self._logger.error("retrieval.failed", query=query, corpus_id=corpus_id, detail=repr(error))
        if self._strict:
            raise RetrievalError(f"Search index failed for corpus {corpus_id!r}") from error
        return []

    async def close(self) -> None:
        """Release the backend client, for backends holding one."""

        close = getattr(self._backend, "close", None)
        if close is not None:
            await close()
