"""Turn a follow-up question into a standalone search query."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Sequence

from localsearch.errors import GenerationError, ParseError
from localsearch.metrics.observability import get_logger
from localsearch.models import ConversationTurn
from localsearch.services.generation import DETERMINISTIC, ChatBackend, ChatPrompt
from localsearch.services.prompts import NOT_NEEDED, QUESTION_REPHRASING_PROMPT


class TagOutputParser:
    """Extract the single ``<key>...</key>`` block from model output."""

    def __init__(self, key: str = "question") -> None:
        self._start = f"<{key}>"
        self._end = f"</{key}>"

    def parse(self, text: str) -> str:
        start = text.find(self._start)
        if start < 0:
            raise ParseError(f"Missing {self._start} block in model output")
        start += len(self._start)
        end = text.find(self._end, start)
        if end < 0:
            raise ParseError(f"Unterminated {self._start} block in model output")
        value = text[start:end].strip()
        if not value:
            raise ParseError(f"Empty {self._start} block in model output")
        return value


@dataclass(frozen=True)
class RephrasedQuery:
    query: str
    retrieval_needed: bool

    @classmethod
    def not_needed(cls) -> "RephrasedQuery":
        return cls(query="", retrieval_needed=False)


def format_chat_history(history: Sequence[ConversationTurn]) -> str:
    return "\n".join(f"{turn.role}: {turn.content}" for turn in history)


class QueryRephraser:
    """Rephrase a follow-up question, or signal that no retrieval is needed.

    When ``fallback_to_question`` is set, unparseable model output falls back
    to searching for the raw follow-up question; otherwise ``ParseError``
    propagates.
    """

    def __init__(
        self,
        chat: ChatBackend,
        *,
        parser: TagOutputParser | None = None,
        fallback_to_question: bool = False,
        timeout_seconds: float = 60.0,
    ) -> None:
        self._chat = chat
        self._timeout = timeout_seconds
        self._parser = parser or TagOutputParser("question")
        self._fallback_to_question = fallback_to_question
        self._logger = get_logger("rephrase")

    async def rephrase(self, history: Sequence[ConversationTurn], question: str) -> RephrasedQuery:
        prompt = QUESTION_REPHRASING_PROMPT.format(
            chat_history=format_chat_history(history),
            query=question,
        )
        try:
            output = await asyncio.wait_for(
                self._chat.complete(ChatPrompt(user=prompt), options=DETERMINISTIC),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as exc:
            raise GenerationError(f"Rephrasing timed out after {self._timeout}s") from exc
        try:
            rephrased = self._parser.parse(output)
        except ParseError:
            if not self._fallback_to_question:
                raise
            self._logger.warning("rephrase.fallback", question=question)
            rephrased = question.strip()
        if rephrased.lower() == NOT_NEEDED:
            self._logger.info("rephrase.not_needed")
            return RephrasedQuery.not_needed()
        self._logger.info("rephrase.complete", query=rephrased)
        return RephrasedQuery(query=rephrased, retrieval_needed=True)
