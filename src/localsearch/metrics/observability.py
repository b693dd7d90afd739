"""Observability helpers for the local search pipeline."""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable

import structlog
from prometheus_client import Counter, Histogram

_logger_configured = False


def configure_logging(level: int = logging.INFO) -> None:
    global _logger_configured  # noqa: PLW0603 - module-level guard
    if _logger_configured:
        return
    logging.basicConfig(level=level, format="%(message)s")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _logger_configured = True


def bind_correlation_id(correlation_id: str) -> None:
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)


def clear_correlation_id() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str = "localsearch") -> structlog.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)


def _clamp_score(score: float) -> float:
    if score < -1.0:
        return -1.0
    if score > 1.0:
        return 1.0
    return score


class PipelineMetrics:
    """Prometheus metrics for pipeline stages."""

    retrieval_latency = Histogram(
        "localsearch_retrieval_duration_seconds",
        "Time spent querying the search index.",
        buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0),
    )
    candidate_count = Histogram(
        "localsearch_candidate_count",
        "Number of raw candidates returned by the search index.",
        buckets=(0, 1, 2, 5, 10, 20, 50),
    )
    group_count = Histogram(
        "localsearch_source_group_count",
        "Number of source groups produced per query.",
        buckets=(0, 1, 2, 3, 5, 8, 13),
    )
    summarization_latency = Histogram(
        "localsearch_summarization_duration_seconds",
        "Time spent summarizing all source groups of a query.",
        buckets=(0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
    )
    rerank_latency = Histogram(
        "localsearch_rerank_duration_seconds",
        "Time spent embedding and ranking synopses.",
        buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0),
    )
    similarity_score = Histogram(
        "localsearch_similarity_score",
        "Cosine similarity of ranked sources to the query.",
        buckets=(-0.5, 0.0, 0.25, 0.5, 0.75, 1.0),
    )
    generation_latency = Histogram(
        "localsearch_answer_duration_seconds",
        "Time spent streaming the final answer.",
        buckets=(0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0),
    )
    cache_lookups = Counter(
        "localsearch_cache_lookups_total",
        "Precomputed cache lookups by kind and outcome.",
        ["kind", "outcome"],
    )
    retrieval_failures = Counter(
        "localsearch_retrieval_failures_total",
        "Search index calls that failed after all retries.",
    )
    pipeline_errors = Counter(
        "localsearch_pipeline_errors_total",
        "Requests terminated with an error event, by pipeline state.",
        ["state"],
    )

    @classmethod
    def observe_retrieval(cls, duration_seconds: float, candidate_count: int) -> None:
        cls.retrieval_latency.observe(duration_seconds)
        cls.candidate_count.observe(candidate_count)

    @classmethod
    def observe_groups(cls, group_count: int) -> None:
        cls.group_count.observe(group_count)

    @classmethod
    def observe_summarization(cls, duration_seconds: float) -> None:
        cls.summarization_latency.observe(duration_seconds)

    @classmethod
    def observe_rerank(cls, duration_seconds: float, scores: Iterable[float]) -> None:
        cls.rerank_latency.observe(duration_seconds)
        for score in scores:
            cls.similarity_score.observe(_clamp_score(score))

    @classmethod
    def observe_generation(cls, duration_seconds: float) -> None:
        cls.generation_latency.observe(duration_seconds)

    @classmethod
    def record_cache_lookup(cls, kind: str, hit: bool) -> None:
        cls.cache_lookups.labels(kind=kind, outcome="hit" if hit else "miss").inc()

    @classmethod
    def record_retrieval_failure(cls) -> None:
        cls.retrieval_failures.inc()

    @classmethod
    def record_pipeline_error(cls, state: str) -> None:
        cls.pipeline_errors.labels(state=state).inc()


class TimedSection:
    """Context manager capturing elapsed time for metrics."""

    def __init__(self, callback: Callable[[float], None]) -> None:
        self._callback = callback
        self._start = 0.0
        self.duration = 0.0

    def __enter__(self) -> "TimedSection":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        self.duration = time.perf_counter() - self._start
        self._callback(self.duration)


__all__ = [
    "PipelineMetrics",
    "TimedSection",
    "bind_correlation_id",
    "clear_correlation_id",
    "configure_logging",
    "get_logger",
]
