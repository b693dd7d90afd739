"""Final answer rendering over ranked sources."""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import AsyncIterator, Sequence

from localsearch.errors import GenerationError
from localsearch.metrics.observability import PipelineMetrics, get_logger
from localsearch.models import ConversationTurn, RankedSource
from localsearch.services.generation import ChatBackend, ChatPrompt, GenerationOptions
from localsearch.services.prompts import ANSWER_SYSTEM_PROMPT, FALLBACK_ANSWER, WRITING_ASSISTANT_PROMPT


class PromptBuilder:
    """Builds the system prompts for answer generation."""

    def build_context(self, sources: Sequence[RankedSource]) -> str:
        # numbering is 1-based so it lines up with the [n] citation markers
        return "\n".join(f"{index}. {source.synopsis.text}" for index, source in enumerate(sources, start=1))

    def answer_system_prompt(self, sources: Sequence[RankedSource], *, now: datetime | None = None) -> str:
        return ANSWER_SYSTEM_PROMPT.format(
            fallback=FALLBACK_ANSWER,
            context=self.build_context(sources),
            date=_isoformat(now),
        )

    def writing_system_prompt(self, *, now: datetime | None = None) -> str:
        return WRITING_ASSISTANT_PROMPT.format(date=_isoformat(now))


def _isoformat(now: datetime | None) -> str:
    return (now or datetime.now(timezone.utc)).isoformat()


class AnswerGenerator:
    """Stream a cited answer for the ranked sources.

    With ``retrieval=True`` and no sources the fixed fallback sentence is
    returned without calling the model. With ``retrieval=False`` the answer is
    written in writing-assistant mode.
    """

    def __init__(
        self,
        chat: ChatBackend,
        *,
        options: GenerationOptions | None = None,
        prompt_builder: PromptBuilder | None = None,
        chunk_timeout_seconds: float = 60.0,
    ) -> None:
        self._chat = chat
        self._options = options or GenerationOptions()
        self._prompt_builder = prompt_builder or PromptBuilder()
        self._chunk_timeout = chunk_timeout_seconds
        self._logger = get_logger("answer")

    async def generate(
        self,
        query: str,
        history: Sequence[ConversationTurn],
        sources: Sequence[RankedSource],
        *,
        retrieval: bool = True,
    ) -> AsyncIterator[str]:
        if retrieval and not sources:
            self._logger.info("answer.fallback", query=query)
            yield FALLBACK_ANSWER
            return
        if retrieval:
            system = self._prompt_builder.answer_system_prompt(sources)
        else:
            system = self._prompt_builder.writing_system_prompt()
        prompt = ChatPrompt(user=query, system=system, history=tuple(history))

        start = time.perf_counter()
        chunk_count = 0
        stream = self._chat.stream(prompt, options=self._options)
        try:
            while True:
                try:
                    chunk = await asyncio.wait_for(stream.__anext__(), timeout=self._chunk_timeout)
                except StopAsyncIteration:
                    break
                except asyncio.TimeoutError as exc:
                    raise GenerationError(f"No answer chunk within {self._chunk_timeout}s") from exc
                chunk_count += 1
                yield chunk
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
        duration = time.perf_counter() - start
        PipelineMetrics.observe_generation(duration)
        self._logger.info(
            "answer.complete",
            source_count=len(sources),
            chunk_count=chunk_count,
            duration_seconds=duration,
        )
