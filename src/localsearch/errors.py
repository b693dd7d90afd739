"""Error taxonomy for the local search pipeline."""

from __future__ import annotations


class LocalSearchError(RuntimeError):
    """Base class for failures raised inside the answering pipeline."""


class ParseError(LocalSearchError):
    """Raised when model output does not contain the expected delimited block."""


class RetrievalError(LocalSearchError):
    """Raised when the search index is unreachable or returned an error."""


class GenerationError(LocalSearchError):
    """Raised when a generation model call fails or times out."""


class EmbeddingError(LocalSearchError):
    """Raised when an embedding model call fails or times out."""


__all__ = [
    "EmbeddingError",
    "GenerationError",
    "LocalSearchError",
    "ParseError",
    "RetrievalError",
]
