"""Service layer orchestrations for local search."""

from .answer import AnswerGenerator, PromptBuilder
from .events import EndEvent, ErrorEvent, ResponseEvent, SourceRef, SourcesEvent, StreamEvent
from .generation import ChatBackend, ChatPrompt, GenerationOptions, LangChainChatBackend
from .pipeline import FocusMode, LocalSearchPipeline, PipelineState
from .rephrase import QueryRephraser, RephrasedQuery, TagOutputParser
from .summarizer import SourceSummarizer

__all__ = [
    "AnswerGenerator",
    "ChatBackend",
    "ChatPrompt",
    "EndEvent",
    "ErrorEvent",
    "FocusMode",
    "GenerationOptions",
    "LangChainChatBackend",
    "LocalSearchPipeline",
    "PipelineState",
    "PromptBuilder",
    "QueryRephraser",
    "RephrasedQuery",
    "ResponseEvent",
    "SourceRef",
    "SourceSummarizer",
    "SourcesEvent",
    "StreamEvent",
    "TagOutputParser",
]
