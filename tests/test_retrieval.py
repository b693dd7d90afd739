from __future__ import annotations

import asyncio
from uuid import uuid4

import chromadb
import pytest

from localsearch.embeddings import EmbeddingConfig, HashEmbeddingBackend
from localsearch.errors import RetrievalError
from localsearch.models import RawCandidate
from localsearch.retrieval import ChromaSearchBackend, ElasticsearchSearchBackend, Retriever
from stubs import ClosableSearch, StubSearch


class FlakySearch(StubSearch):
    def __init__(self, failures: int, candidates) -> None:
        super().__init__(candidates)
        self.failures = failures

    async def search(self, query, *, corpus_id):
        self.calls.append((query, corpus_id))
        if len(self.calls) <= self.failures:
            raise ConnectionError("index unavailable")
        return list(self.candidates)


class HangingSearch(StubSearch):
    async def search(self, query, *, corpus_id):
        self.calls.append((query, corpus_id))
        await asyncio.sleep(1)
        return []


def test_retriever_returns_candidates_in_order():
    candidates = [RawCandidate(title="b", path="b"), RawCandidate(title="a", path="a")]
    search = StubSearch(candidates)

    result = asyncio.run(Retriever(search, retries=0).search("Docker", "knowledge"))

    assert result == candidates
    assert search.calls == [("Docker", "knowledge")]


def test_retriever_fails_open_and_records_error():
    search = StubSearch(error=ConnectionError("index unavailable"))
    retriever = Retriever(search, retries=1)

    assert asyncio.run(retriever.search("Docker", "knowledge")) == []
    assert len(search.calls) == 2
    assert isinstance(retriever.last_error, ConnectionError)


def test_retriever_strict_mode_raises():
    retriever = Retriever(StubSearch(error=ConnectionError("down")), retries=0, strict=True)

    with pytest.raises(RetrievalError):
        asyncio.run(retriever.search("Docker", "knowledge"))


def test_retriever_retries_after_transient_failure():
    candidates = [RawCandidate(title="a", path="a")]
    search = FlakySearch(failures=1, candidates=candidates)
    retriever = Retriever(search, retries=1)

    assert asyncio.run(retriever.search("Docker", "knowledge")) == candidates
    assert retriever.last_error is None


def test_retriever_times_out():
    retriever = Retriever(HangingSearch(), timeout_seconds=0.05, retries=0)

    assert asyncio.run(retriever.search("Docker", "knowledge")) == []
    assert isinstance(retriever.last_error, asyncio.TimeoutError)


class FakeElasticsearch:
    def __init__(self, hits) -> None:
        self.hits = hits
        self.requests: list[dict] = []
        self.closed = False

    async def search(self, **kwargs):
        self.requests.append(kwargs)
        return {"hits": {"hits": self.hits}}

    async def close(self) -> None:
        self.closed = True


def test_elasticsearch_backend_maps_hits():
    client = FakeElasticsearch(
        [
            {"_source": {"filename": "Knowledge/docker.md", "content": "Docker runs containers."}},
            {"_source": {"filename": "Knowledge/empty.md", "content": ""}},
            {"_id": "missing-source"},
        ],
    )
    backend = ElasticsearchSearchBackend(client, size=3)

    candidates = asyncio.run(backend.search("docker", corpus_id="knowledge"))

    assert candidates == [
        RawCandidate(title="Knowledge/docker.md", path="Knowledge/docker.md", body="Docker runs containers."),
        RawCandidate(title="Knowledge/empty.md", path="Knowledge/empty.md", body=None),
    ]
    request = client.requests[0]
    assert request["index"] == "knowledge"
    assert request["size"] == 3
    assert request["query"]["multi_match"] == {"query": "docker", "fields": ["filename", "content"]}

    asyncio.run(backend.close())
    assert client.closed


def test_chroma_backend_filters_by_corpus():
    backend = ChromaSearchBackend(
        HashEmbeddingBackend(EmbeddingConfig(dim=16)),
        collection_name=f"test-{uuid4().hex}",
        client=chromadb.EphemeralClient(),
        size=5,
    )

    async def scenario():
        await backend.upsert(
            [
                RawCandidate(title="docker", path="Knowledge/docker.md", body="Docker runs containers."),
                RawCandidate(title="k8s", path="Knowledge/k8s.md"),
            ],
            corpus_id="knowledge",
        )
        await backend.upsert([RawCandidate(title="other", path="Other/x.md", body="Other corpus.")], corpus_id="other")
        return await backend.search("Docker runs containers.", corpus_id="knowledge")

    candidates = asyncio.run(scenario())

    assert {candidate.path for candidate in candidates} == {"Knowledge/docker.md", "Knowledge/k8s.md"}
    title_only = next(candidate for candidate in candidates if candidate.title == "k8s")
    assert title_only.body is None
    assert title_only.content == "k8s"


def test_retriever_close_releases_backend_client():
    search = ClosableSearch()

    asyncio.run(Retriever(search).close())
    asyncio.run(Retriever(StubSearch()).close())

    assert search.closed
