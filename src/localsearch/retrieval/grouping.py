"""Merge raw search hits into per-source groups."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from localsearch.models import RawCandidate, SourceGroup, SourceMetadata

DEFAULT_FRAGMENT_CAP = 10


@dataclass
class _GroupBuilder:
    source: SourceMetadata
    fragments: list[str] = field(default_factory=list)

    def freeze(self) -> SourceGroup:
        return SourceGroup(source=self.source, fragments=tuple(self.fragments))


class DocumentGrouper:
    """Group candidates by exact source path, preserving first-seen order.

    Each group merges at most ``cap`` fragments. A further fragment for a
    source whose group is full opens a new group for the same path, so one
    source can appear in several groups.
    """

    def __init__(self, cap: int = DEFAULT_FRAGMENT_CAP) -> None:
        if cap < 1:
            raise ValueError("cap must be at least 1")
        self._cap = cap

    @property
    def cap(self) -> int:
        return self._cap

    def group(self, candidates: Iterable[RawCandidate]) -> list[SourceGroup]:
        builders: list[_GroupBuilder] = []
        open_groups: dict[str, _GroupBuilder] = {}
        for candidate in candidates:
            if candidate.is_empty:
                continue
            builder = open_groups.get(candidate.path)
            if builder is None or len(builder.fragments) >= self._cap:
                builder = _GroupBuilder(SourceMetadata(title=candidate.title, path=candidate.path))
                builders.append(builder)
                open_groups[candidate.path] = builder
            builder.fragments.append(candidate.content)
        return [builder.freeze() for builder in builders]
