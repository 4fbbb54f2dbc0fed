"""Pydantic models for chat requests."""

from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    """Represents a single conversation entry."""

    role: Literal["system", "user", "assistant"]
    content: str

    model_config = ConfigDict(extra="ignore")


class ChatRequest(BaseModel):
    """Incoming chat turn: the new prompt plus caller-owned history."""

    prompt: str
    history: List[ChatMessage] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


__all__ = ["ChatMessage", "ChatRequest"]
