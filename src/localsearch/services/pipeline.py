"""End-to-end orchestration of the local search answering pipeline."""

from __future__ import annotations

from contextlib import aclosing
from enum import Enum
from typing import AsyncIterator, Sequence
from uuid import uuid4

from localsearch.metrics.observability import PipelineMetrics, get_logger
from localsearch.models import ConversationTurn, RankedSource
from localsearch.retrieval import DocumentGrouper, Reranker, Retriever
from localsearch.services.answer import AnswerGenerator
from localsearch.services.events import EndEvent, ErrorEvent, ResponseEvent, SourcesEvent, StreamEvent
from localsearch.services.prompts import ERROR_MESSAGE
from localsearch.services.rephrase import QueryRephraser
from localsearch.services.summarizer import SourceSummarizer


class FocusMode(str, Enum):
    LOCAL_SEARCH = "localSearch"
    WRITING_ASSISTANT = "writingAssistant"


class PipelineState(str, Enum):
    REPHRASING = "rephrasing"
    SHORT_CIRCUIT = "short_circuit"
    RETRIEVING = "retrieving"
    GROUPING = "grouping"
    SUMMARIZING = "summarizing"
    RERANKING = "reranking"
    ANSWERING = "answering"
    DONE = "done"
    FAILED = "failed"


class LocalSearchPipeline:
    """Answer a question over the local corpus as a stream of events.

    ``stream`` is a pull-based async generator: nothing runs ahead of the
    consumer, and closing the generator abandons the remaining work. Any
    failure ends the stream with a single generic ``error`` event; the detail
    is only logged.
    """

    def __init__(
        self,
        *,
        rephraser: QueryRephraser,
        retriever: Retriever,
        grouper: DocumentGrouper,
        summarizer: SourceSummarizer,
        reranker: Reranker,
        answerer: AnswerGenerator,
        default_corpus: str = "knowledge",
        error_message: str = ERROR_MESSAGE,
    ) -> None:
        self._rephraser = rephraser
        self._retriever = retriever
        self._grouper = grouper
        self._summarizer = summarizer
        self._reranker = reranker
        self._answerer = answerer
        self._default_corpus = default_corpus
        self._error_message = error_message
        self._logger = get_logger("pipeline")

    async def stream(
        self,
        query: str,
        history: Sequence[ConversationTurn] = (),
        *,
        corpus_id: str | None = None,
        focus_mode: FocusMode = FocusMode.LOCAL_SEARCH,
    ) -> AsyncIterator[StreamEvent]:
        request_id = uuid4().hex
        logger = self._logger.bind(request_id=request_id, focus_mode=FocusMode(focus_mode).value)
        history = tuple(history)
        state = PipelineState.REPHRASING
        try:
            retrieval = FocusMode(focus_mode) is FocusMode.LOCAL_SEARCH
            ranked: list[RankedSource] = []
            if retrieval:
                rephrased = await self._rephraser.rephrase(history, query)
                retrieval = rephrased.retrieval_needed
            if not retrieval:
                state = PipelineState.SHORT_CIRCUIT
                logger.info("pipeline.short_circuit")
            else:
                state = PipelineState.RETRIEVING
                candidates = await self._retriever.search(rephrased.query, corpus_id or self._default_corpus)

                state = PipelineState.GROUPING
                groups = self._grouper.group(candidates)
                PipelineMetrics.observe_groups(len(groups))

                state = PipelineState.SUMMARIZING
                synopses = await self._summarizer.summarize_all(groups, rephrased.query)

                state = PipelineState.RERANKING
                ranked = await self._reranker.rerank(rephrased.query, synopses)
                yield SourcesEvent.from_ranked(ranked)

            state = PipelineState.ANSWERING
            async with aclosing(self._answerer.generate(query, history, ranked, retrieval=retrieval)) as chunks:
                async for chunk in chunks:
                    yield ResponseEvent(chunk)
        except Exception:
            PipelineMetrics.record_pipeline_error(state.value)
            logger.error("pipeline.failed", state=state.value, exc_info=True)
            yield ErrorEvent(self._error_message)
            return

        state = PipelineState.DONE
        logger.info("pipeline.complete", state=state.value, source_count=len(ranked))
        yield EndEvent()

    async def aclose(self) -> None:
        await self._retriever.close()

    async def collect(
        self,
        query: str,
        history: Sequence[ConversationTurn] = (),
        **kwargs,
    ) -> list[StreamEvent]:
        """Drain ``stream`` into a list."""

        return [event async for event in self.stream(query, history, **kwargs)]
