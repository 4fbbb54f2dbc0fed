from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile, status
from fastapi.responses import JSONResponse

from ..services.transcription import TranscriptionError, TranscriptionService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["transcribe"])


def get_transcription_service(request: Request) -> TranscriptionService:
    return request.app.state.transcription_service


@router.post("/transcribe", response_model=None)
async def transcribe_audio(
    file: Optional[UploadFile] = File(default=None),
    service: TranscriptionService = Depends(get_transcription_service),
) -> JSONResponse:
    if file is None:
        logger.error("No file uploaded")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "No file uploaded"},
        )

    data = await file.read()
    filename = file.filename or "audio.wav"
    try:
        text = await service.transcribe(filename, data, file.content_type)
    except TranscriptionError as exc:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": f"Transcription API error: {exc.detail}"},
        )
    except Exception:
        logger.exception("Error transcribing audio")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Error transcribing audio"},
        )

    return JSONResponse({"text": text})
