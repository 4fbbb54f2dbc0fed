"""Application factory for the FastAPI service."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .anthropic_client import AnthropicClient
from .config import get_settings
from .routers.avatar import router as avatar_router
from .routers.chat import router as chat_router
from .routers.transcribe import router as transcribe_router
from .services.transcription import TranscriptionService

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _configure_logging() -> None:
    """Configure logging based on LOG_LEVEL environment variable."""
    # Load .env file first to ensure LOG_FILE is available
    load_dotenv()

    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    log_file = os.getenv("LOG_FILE")
    handlers: list[logging.Handler] = []

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))
        handlers.append(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))
    handlers.append(console_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        force=True,  # Override any existing configuration
    )

    logging.getLogger("avatar_chat").setLevel(log_level)
    logging.getLogger("uvicorn").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(log_level)
    logging.getLogger("uvicorn.error").setLevel(log_level)

    # Quiet down noisy third-party libraries unless debugging
    if log_level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
        logging.getLogger("openai").setLevel(logging.WARNING)


def create_app() -> FastAPI:
    _configure_logging()

    settings = get_settings()
    transcription_service = TranscriptionService(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            yield
        finally:
            await AnthropicClient.aclose_shared()

    app = FastAPI(
        title="Avatar Chat Backend",
        version="0.1.0",
        description="Chat, avatar token and transcription relay for a streaming avatar.",
        lifespan=lifespan,
    )

    app.state.transcription_service = transcription_service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(chat_router)
    app.include_router(avatar_router)
    app.include_router(transcribe_router)

    @app.get("/health", tags=["health"])
    async def healthcheck() -> dict[str, str | bool]:
        return {
            "status": "ok",
            "chat_model": settings.chat_model,
            "avatar_configured": settings.heygen_api_key is not None,
            "transcription_configured": settings.openai_api_key is not None,
        }

    return app


__all__ = ["create_app"]
