"""Request and result types of the dispatch client."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from edge_ai_dispatch.agent.postprocess import TokenUsage

Role = Literal["system", "user", "assistant"]


class ContentPart(BaseModel):
    """One part of a multimodal message."""

    type: Literal["text", "image_url"]
    text: str | None = None
    image_url: dict[str, Any] | None = None


class ChatMessage(BaseModel):
    role: Role
    content: str | list[ContentPart]

    @field_validator("content")
    @classmethod
    def content_not_empty_list(cls, v):
        if isinstance(v, list) and not v:
            raise ValueError("content parts must not be empty")
        return v

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class DispatchOptions(BaseModel):
    """Per-call options; unset fields fall back to model and client defaults."""

    model: str | None = Field(default=None, min_length=1)
    max_tokens: int | None = Field(default=None, gt=0)
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    timeout_ms: int | None = Field(default=None, gt=0)
    retries: int | None = Field(default=None, ge=0)
    system_prompt: str | None = None


class AIResult(BaseModel):
    response: str
    thinking: str | None = None
    model: str
    provider: str
    usage: TokenUsage
    duration_ms: float = Field(ge=0)
    attempts: int = Field(ge=1)
    finish_reason: str | None = None


class JSONResult(BaseModel):
    """Outcome of ``generate_json``.

    ``success`` is False when the model answered but no JSON could be
    extracted or it failed validation; ``error`` says which.
    """

    success: bool
    data: Any = None
    error: str | None = None
    raw: str | None = None
    thinking: str | None = None
    model: str
    usage: TokenUsage | None = None
    duration_ms: float = Field(default=0, ge=0)
    attempts: int = Field(default=1, ge=1)
