from __future__ import annotations

import asyncio
import math
from typing import Sequence

import pytest

from localsearch.cache import InMemoryCacheStore
from localsearch.errors import EmbeddingError
from localsearch.models import SourceMetadata, SourceSynopsis, Vector
from localsearch.retrieval import Reranker
from stubs import TableEmbeddings


def _synopsis(name: str, embedding: Vector | None = None) -> SourceSynopsis:
    return SourceSynopsis(source=SourceMetadata(title=name, path=f"/data/Knowledge/{name}.md"), text=name, embedding=embedding)


def _angle(degrees: float) -> Vector:
    radians = math.radians(degrees)
    return (math.cos(radians), math.sin(radians))


def _embeddings(angles: dict[str, float]) -> TableEmbeddings:
    table = {name: _angle(value) for name, value in angles.items()}
    table["query"] = (1.0, 0.0)
    return TableEmbeddings(table)


def _run(reranker: Reranker, synopses: Sequence[SourceSynopsis]):
    return asyncio.run(reranker.rerank("query", synopses))


def test_empty_input_makes_no_calls():
    embeddings = TableEmbeddings()
    assert _run(Reranker(embeddings), []) == []
    assert embeddings.query_calls == []
    assert embeddings.document_calls == []


def test_small_lists_are_only_reordered():
    embeddings = _embeddings({"far": 80, "near": 10, "mid": 45})
    synopses = [_synopsis("far"), _synopsis("near"), _synopsis("mid")]

    ranked = _run(Reranker(embeddings, top_k=5), synopses)

    assert [item.source.title for item in ranked] == ["near", "mid", "far"]
    assert [item.score for item in ranked] == sorted((item.score for item in ranked), reverse=True)
    assert embeddings.query_calls == ["query"]
    assert embeddings.document_calls == [["far", "near", "mid"]]


def test_large_lists_keep_exactly_top_k():
    angles = {f"s{i}": float(i * 10) for i in range(9)}
    embeddings = _embeddings(angles)
    synopses = [_synopsis(name) for name in reversed(list(angles))]

    ranked = _run(Reranker(embeddings, top_k=5), synopses)

    assert len(ranked) == 5
    kept = {item.source.title for item in ranked}
    assert kept == {"s0", "s1", "s2", "s3", "s4"}
    excluded_best = max(math.cos(math.radians(angles[name])) for name in angles if name not in kept)
    assert all(item.score >= excluded_best for item in ranked)


def test_ties_keep_retrieval_order():
    embeddings = _embeddings({"first": 30, "second": 30, "third": 30})
    synopses = [_synopsis("first"), _synopsis("second"), _synopsis("third")]

    ranked = _run(Reranker(embeddings, top_k=2), synopses)

    assert [item.source.title for item in ranked] == ["first", "second"]


def test_cached_and_attached_embeddings_skip_the_model():
    cache = InMemoryCacheStore(embeddings={"Knowledge/Knowledge/cached.md": [0.0, 1.0]})
    embeddings = _embeddings({"fresh": 20})
    synopses = [_synopsis("cached"), _synopsis("attached", embedding=(1.0, 0.0)), _synopsis("fresh")]

    ranked = _run(Reranker(embeddings, cache), synopses)

    assert embeddings.embedded_texts == ["fresh"]
    assert [item.source.title for item in ranked] == ["attached", "fresh", "cached"]
    assert ranked[0].score == pytest.approx(1.0)
    assert ranked[2].score == pytest.approx(0.0)


def test_fully_cached_list_makes_no_document_calls():
    cache = InMemoryCacheStore(embeddings={"Knowledge/Knowledge/a.md": [1.0, 0.0]})

    embeddings = TableEmbeddings()
    _run(Reranker(embeddings, cache), [_synopsis("a")])

    assert embeddings.document_calls == []
    assert embeddings.query_calls == ["query"]


class BrokenEmbeddings(TableEmbeddings):
    async def embed_documents(self, texts):
        raise RuntimeError("embedding service down")


class SlowEmbeddings(TableEmbeddings):
    async def embed_query(self, text):
        await asyncio.sleep(0.5)
        return (1.0, 0.0)


def test_failures_and_timeouts_raise_embedding_error():
    with pytest.raises(EmbeddingError):
        _run(Reranker(BrokenEmbeddings()), [_synopsis("x")])
    with pytest.raises(EmbeddingError):
        _run(Reranker(SlowEmbeddings(), timeout_seconds=0.01), [_synopsis("x")])


def test_cached_vectors_from_another_model_are_recomputed():
    cache = InMemoryCacheStore(
        embeddings={
            "Knowledge/Knowledge/legacy.md": [0.1] * 1536,
            "Knowledge/Knowledge/current.md": list(_angle(60)),
        },
    )
    embeddings = _embeddings({"legacy": 10, "fresh": 30})
    synopses = [_synopsis("legacy"), _synopsis("current"), _synopsis("fresh")]

    ranked = _run(Reranker(embeddings, cache), synopses)

    assert [item.source.title for item in ranked] == ["legacy", "fresh", "current"]
    assert ranked[0].score == pytest.approx(math.cos(math.radians(10)))
    assert embeddings.document_calls == [["fresh"], ["legacy"]]


def test_inconsistent_fresh_embeddings_raise_embedding_error():
    embeddings = TableEmbeddings({"query": (1.0, 0.0), "x": (1.0, 0.0, 0.0)})
    with pytest.raises(EmbeddingError):
        _run(Reranker(embeddings), [_synopsis("x")])
