"""Typed events streamed to the caller for one request.

A request produces ``sources? response* (end | error)``: at most one
``sources`` event, then the answer chunks in generation order, then exactly
one terminal event.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, ClassVar, Sequence, Union

from localsearch.models import RankedSource


@dataclass(frozen=True)
class SourceRef:
    """Source metadata exposed to the caller; ``index`` matches the ``[n]`` citations."""

    index: int
    title: str
    path: str

    def to_dict(self) -> dict[str, Any]:
        return {"index": self.index, "title": self.title, "path": self.path}


@dataclass(frozen=True)
class SourcesEvent:
    type: ClassVar[str] = "sources"
    sources: tuple[SourceRef, ...]

    @classmethod
    def from_ranked(cls, ranked: Sequence[RankedSource]) -> "SourcesEvent":
        return cls(
            tuple(
                SourceRef(index=index, title=item.source.title, path=item.source.path)
                for index, item in enumerate(ranked, start=1)
            ),
        )

    @property
    def data(self) -> list[dict[str, Any]]:
        return [ref.to_dict() for ref in self.sources]


@dataclass(frozen=True)
class ResponseEvent:
    type: ClassVar[str] = "response"
    chunk: str

    @property
    def data(self) -> str:
        return self.chunk


@dataclass(frozen=True)
class EndEvent:
    type: ClassVar[str] = "end"

    @property
    def data(self) -> None:
        return None


@dataclass(frozen=True)
class ErrorEvent:
    type: ClassVar[str] = "error"
    message: str

    @property
    def data(self) -> str:
        return self.message


StreamEvent = Union[SourcesEvent, ResponseEvent, EndEvent, ErrorEvent]

TERMINAL_EVENT_TYPES = frozenset({EndEvent.type, ErrorEvent.type})


def event_to_dict(event: StreamEvent) -> dict[str, Any]:
    payload: dict[str, Any] = {"type": event.type}
    if event.data is not None:
        payload["data"] = event.data
    return payload


def event_to_json(event: StreamEvent) -> str:
    return json.dumps(event_to_dict(event), ensure_ascii=False)


def is_terminal(event: StreamEvent) -> bool:
    return event.type in TERMINAL_EVENT_TYPES
