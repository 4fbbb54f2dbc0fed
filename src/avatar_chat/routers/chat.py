"""Chat streaming API routes."""

from __future__ import annotations

import json
import logging
from typing import AsyncGenerator, Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse, Response, StreamingResponse

from ..anthropic_client import AnthropicClient, AnthropicError
from ..config import Settings, get_settings
from ..schemas.chat import ChatRequest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["chat"])


def get_anthropic_client(
    settings: Settings = Depends(get_settings),
) -> AnthropicClient:
    return AnthropicClient(settings)


def _error_response(status_code: int, detail: object) -> JSONResponse:
    message = detail if isinstance(detail, str) else json.dumps(detail)
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("/chat", response_model=None)
async def stream_chat(
    payload: ChatRequest,
    client: AnthropicClient = Depends(get_anthropic_client),
) -> Response:
    """Relay the assistant reply as a plain-text UTF-8 stream.

    The upstream request is opened before the response starts so that a
    rejected request still produces a proper error status. Failures after the
    first byte abort the response body.
    """

    if not payload.prompt.strip():
        return _error_response(status.HTTP_400_BAD_REQUEST, "Prompt must not be empty")

    stream = client.stream_text(payload.prompt, payload.history)
    first: Optional[str]
    try:
        first = await anext(stream)
    except StopAsyncIteration:
        first = None
    except AnthropicError as exc:
        logger.error("Error in chat route: %s", exc.detail)
        return _error_response(exc.status_code, exc.detail)
    except Exception:
        logger.exception("Error in chat route")
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An error occurred processing your request",
        )

    async def relay() -> AsyncGenerator[bytes, None]:
        try:
            if first:
                yield first.encode("utf-8")
            async for text in stream:
                yield text.encode("utf-8")
        except AnthropicError as exc:
            logger.error("Error in stream processing: %s", exc.detail)
            raise
        finally:
            await stream.aclose()

    return StreamingResponse(relay(), media_type="text/plain; charset=utf-8")


__all__ = ["get_anthropic_client", "router"]
