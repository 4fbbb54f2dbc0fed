"""Pydantic models for the streaming avatar API."""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class VoiceSettings(BaseModel):
    voice_id: str
    rate: Optional[float] = None


class NewSessionRequest(BaseModel):
    """Parameters for creating a streaming avatar session."""

    quality: Literal["low", "medium", "high"] = "high"
    avatar_name: str
    voice: VoiceSettings
    version: str = "v2"

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class NewSessionData(BaseModel):
    """Session details returned when the avatar session is created."""

    session_id: str
    url: Optional[str] = None
    access_token: Optional[str] = None
    session_duration_limit: Optional[int] = None

    model_config = ConfigDict(extra="allow")


class TaskRequest(BaseModel):
    """A single speak command for an active session."""

    session_id: str
    text: str = Field(min_length=1)
    task_type: Literal["repeat", "talk"] = "repeat"


class TaskResult(BaseModel):
    """Acknowledgement for an accepted speak command."""

    task_id: Optional[str] = None
    duration_ms: Optional[float] = None

    model_config = ConfigDict(extra="allow")


__all__ = [
    "NewSessionData",
    "NewSessionRequest",
    "TaskRequest",
    "TaskResult",
    "VoiceSettings",
]
