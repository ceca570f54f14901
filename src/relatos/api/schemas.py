"""Pydantic models for the agent's inbound chat payload.

These are the boundary contract. The agent validates raw caller input against
ChatInput and answers with a canned message instead of raising when it fails.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from relatos.retrieval.params import StatusValue

MAX_MESSAGES = 40
MAX_MESSAGE_CHARS = 10_000
MAX_PERIODO_DIAS = 365


class ChatMessage(BaseModel):
    """A single message in the conversation history."""

    role: Literal["user", "assistant"]
    content: str = Field(..., min_length=1, max_length=MAX_MESSAGE_CHARS, strict=True)


class UiContext(BaseModel):
    """Filters currently applied on the caller's screen (not typed by the user)."""

    status: StatusValue | None = None
    periodo_dias: int | None = Field(None, ge=1, le=MAX_PERIODO_DIAS, strict=True)

    @property
    def is_empty(self) -> bool:
        return not (self.status or self.periodo_dias)


class ChatInput(BaseModel):
    """Validated agent input: conversation history plus optional UI filters."""

    model_config = ConfigDict(extra="forbid")

    messages: list[ChatMessage] = Field(..., min_length=1, max_length=MAX_MESSAGES)
    ui: UiContext | None = None
