"""Embedding services."""

from .service import (
    EmbeddingBackend,
    EmbeddingConfig,
    HashEmbeddingBackend,
    HuggingFaceEmbeddingBackend,
)
from .similarity import cosine_similarity

__all__ = [
    "EmbeddingBackend",
    "EmbeddingConfig",
    "HashEmbeddingBackend",
    "HuggingFaceEmbeddingBackend",
    "cosine_similarity",
]
