from __future__ import annotations

import asyncio
from typing import Sequence

import pytest

from localsearch.cache import InMemoryCacheStore
from localsearch.errors import GenerationError
from localsearch.models import SourceGroup, SourceMetadata
from localsearch.services.generation import ChatPrompt, GenerationOptions
from localsearch.services.summarizer import SourceSummarizer
from stubs import ScriptedChat


def _group(path: str, *fragments: str) -> SourceGroup:
    return SourceGroup(source=SourceMetadata(title=path.rsplit("/", 1)[-1], path=path), fragments=tuple(fragments))


class SlowChat:
    """Completes after a per-text delay and tracks how many calls overlap."""

    def __init__(self, delays: dict[str, float]) -> None:
        self.delays = delays
        self.in_flight = 0
        self.max_in_flight = 0

    async def complete(self, prompt: ChatPrompt, *, options: GenerationOptions | None = None) -> str:
        text = prompt.user.split("<text>")[1].split("</text>")[0].strip()
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(text, 0.01))
        finally:
            self.in_flight -= 1
        return f"summary of {text}"


def test_cached_summary_skips_model():
    chat = ScriptedChat()
    cache = InMemoryCacheStore({"Knowledge/Knowledge/3/c.md": "Precomputed synopsis."})
    summarizer = SourceSummarizer(chat, cache)

    synopsis = asyncio.run(summarizer.summarize(_group("D:\\corpus\\Knowledge\\3\\c.md", "body"), "query"))

    assert synopsis.text == "Precomputed synopsis."
    assert synopsis.from_cache is True
    assert synopsis.original_content == "body"
    assert chat.complete_calls == []


def test_cache_miss_calls_model_deterministically():
    chat = ScriptedChat()
    summarizer = SourceSummarizer(chat, InMemoryCacheStore())

    synopsis = asyncio.run(summarizer.summarize(_group("Knowledge/1/a.md", "first", "second"), "what is a?"))

    assert synopsis.text == "Synopsis: first\n\nsecond"
    assert synopsis.from_cache is False
    prompt, options = chat.complete_calls[0]
    assert "<query>\nwhat is a?\n</query>" in prompt.user
    assert options is not None and options.temperature == 0.0


def test_summarize_all_keeps_group_order_and_bounds_concurrency():
    texts = [f"doc-{i}" for i in range(6)]
    # later groups finish first
    chat = SlowChat({text: 0.06 - 0.01 * i for i, text in enumerate(texts)})
    summarizer = SourceSummarizer(chat, None, max_concurrency=2)
    groups: Sequence[SourceGroup] = [_group(f"p/{text}", text) for text in texts]

    synopses = asyncio.run(summarizer.summarize_all(groups, "q"))

    assert [synopsis.text for synopsis in synopses] == [f"summary of {text}" for text in texts]
    assert chat.max_in_flight == 2


def test_summarize_all_with_no_groups():
    assert asyncio.run(SourceSummarizer(ScriptedChat()).summarize_all([], "q")) == []


def test_timeout_becomes_generation_error():
    chat = SlowChat({"slow": 0.5})
    summarizer = SourceSummarizer(chat, None, timeout_seconds=0.01)

    with pytest.raises(GenerationError):
        asyncio.run(summarizer.summarize_all([_group("p/slow", "slow")], "q"))


class FailingChat(SlowChat):
    """Fails immediately for texts listed in ``failing``; others sleep as configured."""

    def __init__(self, delays: dict[str, float], failing: set[str]) -> None:
        super().__init__(delays)
        self.failing = failing
        self.tasks: list[asyncio.Task] = []

    async def complete(self, prompt: ChatPrompt, *, options: GenerationOptions | None = None) -> str:
        self.tasks.append(asyncio.current_task())
        text = prompt.user.split("<text>")[1].split("</text>")[0].strip()
        if text in self.failing:
            raise RuntimeError(f"model failed on {text}")
        return await super().complete(prompt, options=options)


def test_failure_settles_every_sibling_before_raising():
    chat = FailingChat({"slow": 10.0}, failing={"first", "second"})
    summarizer = SourceSummarizer(chat, None, timeout_seconds=30.0)
    groups = [_group("p/first", "first"), _group("p/second", "second"), _group("p/slow", "slow")]

    async def scenario() -> list[bool]:
        with pytest.raises(RuntimeError):
            await summarizer.summarize_all(groups, "q")
        return [task.done() for task in chat.tasks]

    settled = asyncio.run(scenario())

    assert len(settled) == 3
    assert all(settled)
    assert chat.in_flight == 0


def test_invalid_concurrency():
    with pytest.raises(ValueError):
        SourceSummarizer(ScriptedChat(), max_concurrency=0)
