"""Chat stream sources consumed by a speech turn."""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Optional, Protocol, Sequence

import httpx

from ..schemas.chat import ChatMessage
from .errors import SourceError

logger = logging.getLogger(__name__)


class ChatStreamSource(Protocol):
    """Opens a chat reply as a stream of raw byte chunks."""

    def open(
        self, prompt: str, history: Optional[Sequence[ChatMessage]] = None
    ) -> AsyncIterator[bytes]: ...


class HttpChatSource:
    """Read the plain-text reply streamed by the ``/api/chat`` relay."""

    def __init__(
        self,
        base_url: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self._url = f"{base_url.rstrip('/')}/api/chat"
        self._client = client
        self._timeout = timeout

    async def open(
        self, prompt: str, history: Optional[Sequence[ChatMessage]] = None
    ) -> AsyncIterator[bytes]:
        payload = {
            "prompt": prompt,
            "history": [entry.model_dump() for entry in history or []],
        }

        client = self._client or httpx.AsyncClient(timeout=self._timeout)
        try:
            async with client.stream("POST", self._url, json=payload) as response:
                if response.status_code >= 400:
                    body = await response.aread()
                    detail = self._extract_error_detail(body)
                    logger.error(
                        "Chat relay responded with status %d: %s",
                        response.status_code,
                        detail,
                    )
                    raise SourceError(detail, status_code=response.status_code)

                async for chunk in response.aiter_bytes():
                    yield chunk
        except httpx.HTTPError as exc:
            raise SourceError(str(exc) or type(exc).__name__) from exc
        finally:
            if self._client is None:
                await client.aclose()

    @staticmethod
    def _extract_error_detail(raw: bytes) -> Any:
        text = raw.decode("utf-8", errors="replace")
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            return text or "Chat relay returned an empty error response."
        if isinstance(payload, dict):
            return payload.get("error") or payload.get("detail") or payload
        return payload


__all__ = ["ChatStreamSource", "HttpChatSource"]
