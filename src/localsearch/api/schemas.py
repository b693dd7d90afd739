"""Pydantic models for the local search API."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from localsearch.models import ConversationTurn
from localsearch.services.pipeline import FocusMode


class HistoryMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str

    def to_turn(self) -> ConversationTurn:
        return ConversationTurn(role=self.role, content=self.content)


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1, description="Follow-up question from the user")
    history: List[HistoryMessage] = Field(default_factory=list, description="Prior conversation, oldest first")
    focus_mode: FocusMode = Field(default=FocusMode.LOCAL_SEARCH, description="localSearch or writingAssistant")
    corpus_id: Optional[str] = Field(default=None, description="Index to search; defaults to the configured corpus")


class HealthResponse(BaseModel):
    status: str
    version: str
    environment: str
