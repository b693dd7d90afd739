"""Cache-aware per-source summarization."""

from __future__ import annotations

import asyncio
from typing import Sequence

from localsearch.cache import CacheStore
from localsearch.errors import GenerationError
from localsearch.metrics.observability import PipelineMetrics, TimedSection, get_logger
from localsearch.models import SourceGroup, SourceSynopsis
from localsearch.services.generation import DETERMINISTIC, ChatBackend, ChatPrompt
from localsearch.services.prompts import SOURCE_SUMMARY_PROMPT


class SourceSummarizer:
    """Produce a synopsis per source group, preferring precomputed summaries.

    ``summarize_all`` runs one task per group. At most ``max_concurrency``
    model calls are in flight per request; results keep group order.
    """

    def __init__(
        self,
        chat: ChatBackend,
        cache: CacheStore | None = None,
        *,
        max_concurrency: int = 8,
        timeout_seconds: float = 60.0,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._chat = chat
        self._cache = cache
        self._max_concurrency = max_concurrency
        self._timeout = timeout_seconds
        self._logger = get_logger("summarizer")

    async def summarize(
        self,
        group: SourceGroup,
        query: str,
        *,
        limiter: asyncio.Semaphore | None = None,
    ) -> SourceSynopsis:
        cached = self._cached_summary(group)
        if cached is not None:
            return SourceSynopsis(
                source=group.source,
                text=cached,
                original_content=group.text,
                from_cache=True,
            )
        prompt = ChatPrompt(user=SOURCE_SUMMARY_PROMPT.format(query=query, text=group.text))
        if limiter is None:
            summary = await self._complete(prompt, group)
        else:
            async with limiter:
                summary = await self._complete(prompt, group)
        return SourceSynopsis(source=group.source, text=summary, original_content=group.text)

    async def summarize_all(self, groups: Sequence[SourceGroup], query: str) -> list[SourceSynopsis]:
        if not groups:
            return []
        limiter = asyncio.Semaphore(self._max_concurrency)
        tasks = [asyncio.ensure_future(self.summarize(group, query, limiter=limiter)) for group in groups]
        with TimedSection(PipelineMetrics.observe_summarization) as timer:
            try:
                synopses = await asyncio.gather(*tasks)
            except BaseException:
                # one failure abandons the rest of the batch
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise
        self._logger.info(
            "summaries.complete",
            group_count=len(groups),
            cached=sum(1 for synopsis in synopses if synopsis.from_cache),
            duration_seconds=timer.duration,
        )
        return list(synopses)

    def _cached_summary(self, group: SourceGroup) -> str | None:
        if self._cache is None:
            return None
        return self._cache.get_summary(self._cache.normalize(group.source.path))

    async def _complete(self, prompt: ChatPrompt, group: SourceGroup) -> str:
        try:
            return await asyncio.wait_for(
                self._chat.complete(prompt, options=DETERMINISTIC),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as exc:
            raise GenerationError(f"Summarizing {group.source.path!r} timed out after {self._timeout}s") from exc
