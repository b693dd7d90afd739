"""Retrieval: search index access, source grouping and reranking."""

from .grouping import DocumentGrouper
from .rerank import Reranker
from .service import ChromaSearchBackend, ElasticsearchSearchBackend, Retriever, SearchBackend

__all__ = [
    "ChromaSearchBackend",
    "DocumentGrouper",
    "ElasticsearchSearchBackend",
    "Reranker",
    "Retriever",
    "SearchBackend",
]
