"""Shared domain models used across the local search pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Tuple

Role = Literal["user", "assistant"]
Vector = Tuple[float, ...]


@dataclass(frozen=True)
class ConversationTurn:
    """One message of the conversation history."""

    role: Role
    content: str


@dataclass(frozen=True)
class RawCandidate:
    """Search hit as returned by the index, before grouping."""

    title: str
    path: str
    body: str | None = None

    @property
    def content(self) -> str:
        return self.body if self.body else self.title

    @property
    def is_empty(self) -> bool:
        return not self.body and not self.title


@dataclass(frozen=True)
class SourceMetadata:
    """Identifying information for a source document."""

    title: str
    path: str


@dataclass(frozen=True)
class SourceGroup:
    """Fragments of one source merged in retrieval order."""

    source: SourceMetadata
    fragments: Tuple[str, ...]

    @property
    def text(self) -> str:
        return "\n\n".join(self.fragments)

    @property
    def fragment_count(self) -> int:
        return len(self.fragments)


@dataclass(frozen=True)
class SourceSynopsis:
    """Summary of a source group, optionally carrying a precomputed embedding."""

    source: SourceMetadata
    text: str
    original_content: str = ""
    embedding: Vector | None = None
    from_cache: bool = False


@dataclass(frozen=True)
class RankedSource:
    """Synopsis scored against the query embedding."""

    synopsis: SourceSynopsis
    score: float

    @property
    def source(self) -> SourceMetadata:
        return self.synopsis.source
