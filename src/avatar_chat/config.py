"""Application configuration using environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Chat completions (Anthropic Messages API)
    anthropic_api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices(
            "ANTHROPIC_API_KEY", "CLAUDE_API_KEY", "anthropic_api_key"
        ),
    )
    anthropic_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://api.anthropic.com/v1"),
        validation_alias=AliasChoices("ANTHROPIC_BASE_URL", "anthropic_base_url"),
    )
    anthropic_version: str = Field(
        default="2023-06-01",
        validation_alias=AliasChoices("ANTHROPIC_VERSION", "anthropic_version"),
    )
    chat_model: str = Field(
        default="claude-3-sonnet-20240229",
        validation_alias=AliasChoices("CHAT_MODEL", "chat_model"),
    )
    chat_max_tokens: int = Field(
        default=1024,
        ge=1,
        validation_alias=AliasChoices("CHAT_MAX_TOKENS", "chat_max_tokens"),
    )
    chat_system_prompt: Optional[str] = Field(
        default=(
            "You are a friendly digital twin speaking through a video avatar. "
            "Answer conversationally in short, complete sentences and avoid "
            "markdown, lists, and code blocks."
        ),
        validation_alias=AliasChoices("CHAT_SYSTEM_PROMPT", "chat_system_prompt"),
    )
    request_timeout: float = Field(
        default=120.0,
        ge=1,
        validation_alias=AliasChoices("REQUEST_TIMEOUT", "request_timeout"),
    )
    history_max_entries: int = Field(
        default=20,
        ge=0,
        validation_alias=AliasChoices("HISTORY_MAX_ENTRIES", "history_max_entries"),
        description="Most recent non-system history entries kept per turn.",
    )

    # Streaming avatar (HeyGen)
    heygen_api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("HEYGEN_API_KEY", "heygen_api_key"),
    )
    heygen_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://api.heygen.com"),
        validation_alias=AliasChoices("HEYGEN_BASE_URL", "heygen_base_url"),
    )
    heygen_avatar_id: str = Field(
        default="e3bbda33f6044eb4a0e3f4a04182526c",
        validation_alias=AliasChoices("HEYGEN_AVATAR_ID", "heygen_avatar_id"),
    )
    heygen_voice_id: str = Field(
        default="dabaf51591344a7e974a4d05b0cf9f1b",
        validation_alias=AliasChoices("HEYGEN_VOICE_ID", "heygen_voice_id"),
    )
    heygen_quality: Literal["low", "medium", "high"] = Field(
        default="high",
        validation_alias=AliasChoices("HEYGEN_QUALITY", "heygen_quality"),
    )
    heygen_task_type: Literal["repeat", "talk"] = Field(
        default="repeat",
        validation_alias=AliasChoices("HEYGEN_TASK_TYPE", "heygen_task_type"),
    )

    # Speech-to-text (OpenAI transcription)
    openai_api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_API_KEY", "openai_api_key"),
    )
    transcription_model: str = Field(
        default="whisper-1",
        validation_alias=AliasChoices("TRANSCRIPTION_MODEL", "transcription_model"),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["Settings", "get_settings"]
