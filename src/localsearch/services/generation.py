"""Generation backends for the local search pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Protocol, Sequence

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from localsearch.errors import GenerationError
from localsearch.models import ConversationTurn


@dataclass(frozen=True)
class GenerationOptions:
    """Per-call sampling configuration. ``None`` keeps the model's own default."""

    temperature: float | None = None
    max_tokens: int | None = None


DETERMINISTIC = GenerationOptions(temperature=0.0)


@dataclass(frozen=True)
class ChatPrompt:
    """Rendered prompt: system instruction, prior turns and the user turn."""

    user: str
    system: str | None = None
    history: Sequence[ConversationTurn] = field(default_factory=tuple)


class ChatBackend(Protocol):
    """Protocol describing generation behaviour."""

    async def complete(self, prompt: ChatPrompt, *, options: GenerationOptions | None = None) -> str:
        """Return the full completion for the prompt."""

    def stream(self, prompt: ChatPrompt, *, options: GenerationOptions | None = None) -> AsyncIterator[str]:
        """Yield the completion incrementally, in model emission order."""


class LangChainChatBackend:
    """Adapter running prompts through any LangChain chat model.

    Sampling options are bound per call, so the wrapped model is never mutated.
    """

    def __init__(self, model: BaseChatModel) -> None:
        self._model = model

    async def complete(self, prompt: ChatPrompt, *, options: GenerationOptions | None = None) -> str:
        try:
            message = await self._runnable(options).ainvoke(to_messages(prompt))
        except Exception as exc:
            raise GenerationError("Generation model call failed") from exc
        return content_text(message.content).strip()

    async def stream(self, prompt: ChatPrompt, *, options: GenerationOptions | None = None) -> AsyncIterator[str]:
        try:
            async for chunk in self._runnable(options).astream(to_messages(prompt)):
                text = content_text(chunk.content)
                if text:
                    yield text
        except Exception as exc:
            raise GenerationError("Generation model stream failed") from exc

    def _runnable(self, options: GenerationOptions | None):
        kwargs: dict[str, Any] = {}
        if options is not None:
            if options.temperature is not None:
                kwargs["temperature"] = options.temperature
            if options.max_tokens is not None:
                kwargs["max_tokens"] = options.max_tokens
        return self._model.bind(**kwargs) if kwargs else self._model


def to_messages(prompt: ChatPrompt) -> list[BaseMessage]:
    messages: list[BaseMessage] = []
    if prompt.system:
        messages.append(SystemMessage(content=prompt.system))
    for turn in prompt.history:
        if turn.role == "assistant":
            messages.append(AIMessage(content=turn.content))
        else:
            messages.append(HumanMessage(content=turn.content))
    messages.append(HumanMessage(content=prompt.user))
    return messages


def content_text(content: Any) -> str:
    """Flatten LangChain message content (plain string or content blocks) to text."""

    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(str(block.get("text", "")))
        return "".join(parts)
    return ""
