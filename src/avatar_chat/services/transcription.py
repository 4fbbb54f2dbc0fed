"""Speech-to-text for recorded prompts using the OpenAI transcription API."""

from __future__ import annotations

import logging
from typing import Any, Optional

import openai
from fastapi import status

from ..config import Settings

logger = logging.getLogger(__name__)


class TranscriptionError(Exception):
    """Raised when a recording cannot be transcribed."""

    def __init__(self, status_code: int, detail: Any):
        super().__init__(str(detail))
        self.status_code = status_code
        self.detail = detail


class TranscriptionService:
    """Turn an uploaded audio recording into best-effort text."""

    def __init__(
        self,
        settings: Settings,
        client: Optional[openai.AsyncOpenAI] = None,
    ):
        self._settings = settings
        self._client = client

    def _get_client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            api_key = self._settings.openai_api_key
            if api_key is None or not api_key.get_secret_value():
                raise TranscriptionError(
                    status.HTTP_503_SERVICE_UNAVAILABLE,
                    "OpenAI API key is not configured on server",
                )
            self._client = openai.AsyncOpenAI(
                api_key=api_key.get_secret_value(),
                timeout=self._settings.request_timeout,
            )
        return self._client

    async def transcribe(
        self,
        filename: str,
        data: bytes,
        content_type: Optional[str] = None,
    ) -> str:
        """Return the transcript for one recording."""

        client = self._get_client()
        logger.info(
            "Sending %s (%s, %d bytes) for transcription",
            filename,
            content_type or "unknown type",
            len(data),
        )

        upload = (filename, data, content_type) if content_type else (filename, data)
        try:
            result = await client.audio.transcriptions.create(
                model=self._settings.transcription_model,
                file=upload,
            )
        except openai.APIStatusError as exc:
            logger.error(
                "Transcription API responded with %d: %s", exc.status_code, exc.message
            )
            raise TranscriptionError(exc.status_code, exc.message) from exc
        except openai.APIConnectionError as exc:
            logger.error("Error calling transcription API: %s", exc)
            raise TranscriptionError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

        text = getattr(result, "text", None)
        if not isinstance(text, str):
            raise TranscriptionError(
                status.HTTP_502_BAD_GATEWAY, "No transcription text received"
            )
        return text.strip()


__all__ = ["TranscriptionError", "TranscriptionService"]
