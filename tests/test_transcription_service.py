from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest

from avatar_chat.config import Settings
from avatar_chat.services.transcription import TranscriptionError, TranscriptionService


class DummyTranscriptions:
    def __init__(self, result: Any) -> None:
        self.result = result
        self.kwargs: dict[str, Any] = {}

    async def create(self, **kwargs: Any) -> Any:
        self.kwargs = kwargs
        return self.result


def make_service(settings: Settings, result: Any) -> tuple[TranscriptionService, DummyTranscriptions]:
    transcriptions = DummyTranscriptions(result)
    client = SimpleNamespace(audio=SimpleNamespace(transcriptions=transcriptions))
    return TranscriptionService(settings, client=client), transcriptions  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_transcribe_strips_text(settings: Settings) -> None:
    service, transcriptions = make_service(settings, SimpleNamespace(text="  hello there \n"))

    text = await service.transcribe("clip.wav", b"audio", "audio/wav")

    assert text == "hello there"
    assert transcriptions.kwargs == {
        "model": "whisper-1",
        "file": ("clip.wav", b"audio", "audio/wav"),
    }


@pytest.mark.asyncio
async def test_transcribe_without_content_type(settings: Settings) -> None:
    service, transcriptions = make_service(settings, SimpleNamespace(text="ok"))

    await service.transcribe("clip.webm", b"audio")

    assert transcriptions.kwargs["file"] == ("clip.webm", b"audio")


@pytest.mark.asyncio
async def test_missing_text_is_bad_gateway(settings: Settings) -> None:
    service, _ = make_service(settings, SimpleNamespace())

    with pytest.raises(TranscriptionError) as excinfo:
        await service.transcribe("clip.wav", b"audio")

    assert excinfo.value.status_code == 502


@pytest.mark.asyncio
async def test_missing_api_key_is_service_unavailable() -> None:
    service = TranscriptionService(Settings(openai_api_key=None))

    with pytest.raises(TranscriptionError) as excinfo:
        await service.transcribe("clip.wav", b"audio")

    assert excinfo.value.status_code == 503
