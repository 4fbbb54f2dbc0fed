"""Anthropic Messages API streaming client utilities."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Iterable, Optional, Sequence

import httpx
from fastapi import status

from .config import Settings
from .pipeline.history import truncate_history
from .schemas.chat import ChatMessage

logger = logging.getLogger(__name__)


class AnthropicError(Exception):
    """Wrap transport or API failures when communicating with Anthropic."""

    def __init__(self, status_code: int, detail: Any):
        super().__init__(str(detail))
        self.status_code = status_code
        self.detail = detail


@dataclass
class ServerSentEvent:
    """One event from the Messages API event stream."""

    data: str
    event: str = "message"
    event_id: Optional[str] = None


class AnthropicClient:
    """Client responsible for streaming chat replies from Anthropic."""

    _pool_lock: asyncio.Lock = asyncio.Lock()
    _pool: dict[tuple[str, float], httpx.AsyncClient] = {}

    def __init__(self, settings: Settings):
        self._settings = settings

    def _pool_key(self) -> tuple[str, float]:
        return (self._base_url, float(self._settings.request_timeout))

    async def _get_http_client(self) -> httpx.AsyncClient:
        key = self._pool_key()
        client = self.__class__._pool.get(key)
        if client is not None:
            return client

        async with self.__class__._pool_lock:
            client = self.__class__._pool.get(key)
            if client is None:
                timeout = httpx.Timeout(self._settings.request_timeout, connect=10.0)
                limits = httpx.Limits(
                    max_connections=50,
                    max_keepalive_connections=20,
                )
                client = httpx.AsyncClient(
                    timeout=timeout,
                    limits=limits,
                    http2=True,
                )
                self.__class__._pool[key] = client
        return client

    @property
    def _headers(self) -> dict[str, str]:
        api_key = self._settings.anthropic_api_key
        if api_key is None or not api_key.get_secret_value():
            raise AnthropicError(
                status.HTTP_503_SERVICE_UNAVAILABLE,
                "Anthropic API key is not configured on server",
            )
        return {
            "x-api-key": api_key.get_secret_value(),
            "anthropic-version": self._settings.anthropic_version,
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }

    @property
    def _base_url(self) -> str:
        """Return the Anthropic API base URL without a trailing slash."""

        return str(self._settings.anthropic_base_url).rstrip("/")

    def build_payload(
        self, prompt: str, history: Optional[Sequence[ChatMessage]] = None
    ) -> dict[str, Any]:
        """Build a streaming Messages API request for one chat turn."""

        entries = truncate_history(
            list(history or []), self._settings.history_max_entries
        )

        system_parts: list[str] = []
        if self._settings.chat_system_prompt:
            system_parts.append(self._settings.chat_system_prompt)
        messages: list[dict[str, str]] = []
        for entry in entries:
            if entry.role == "system":
                system_parts.append(entry.content)
            else:
                messages.append({"role": entry.role, "content": entry.content})
        messages.append({"role": "user", "content": prompt})

        payload: dict[str, Any] = {
            "model": self._settings.chat_model,
            "max_tokens": self._settings.chat_max_tokens,
            "messages": messages,
            "stream": True,
        }
        if system_parts:
            payload["system"] = "\n\n".join(system_parts)
        return payload

    async def stream_text(
        self, prompt: str, history: Optional[Sequence[ChatMessage]] = None
    ) -> AsyncGenerator[str, None]:
        """Stream the assistant reply as plain text increments."""

        payload = self.build_payload(prompt, history)
        async for event in self.stream_events(payload):
            if event.data == "[DONE]":
                return
            if event.event == "ping" or not event.data:
                continue

            try:
                data = json.loads(event.data)
            except json.JSONDecodeError as exc:
                logger.error("Error parsing stream event %r: %s", event.data, exc)
                raise AnthropicError(
                    status.HTTP_502_BAD_GATEWAY,
                    f"Malformed stream event: {exc.msg}",
                ) from exc

            event_type = data.get("type") if isinstance(data, dict) else None
            if event_type == "content_block_delta":
                text = self._extract_delta_text(data)
                if text:
                    yield text
            elif event_type == "message_stop":
                return
            elif event_type == "error":
                detail = data.get("error") or data
                raise AnthropicError(status.HTTP_502_BAD_GATEWAY, detail)

    @staticmethod
    def _extract_delta_text(data: dict[str, Any]) -> Optional[str]:
        delta = data.get("delta")
        if not isinstance(delta, dict):
            return None
        text = delta.get("text")
        return text if isinstance(text, str) else None

    async def stream_events(
        self, payload: dict[str, Any]
    ) -> AsyncGenerator[ServerSentEvent, None]:
        """Yield raw Messages API events for an already built request body."""

        url = f"{self._base_url}/messages"
        headers = self._headers

        client = await self._get_http_client()
        try:
            async with client.stream(
                "POST",
                url,
                headers=headers,
                json=payload,
            ) as response:
                if response.status_code >= 400:
                    body = await response.aread()
                    detail = self._extract_error_detail(body)
                    raise AnthropicError(response.status_code, detail)

                logger.debug(
                    "Streaming reply from %s (request-id=%s)",
                    payload.get("model"),
                    response.headers.get("request-id"),
                )
                async for event in self._iter_events(response):
                    yield event
        except httpx.HTTPError as exc:
            raise AnthropicError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

    @classmethod
    async def aclose_shared(cls) -> None:
        async with cls._pool_lock:
            clients = list(cls._pool.values())
            cls._pool.clear()
        for client in clients:
            try:
                await client.aclose()
            except Exception:  # pragma: no cover
                logger.debug("Error closing pooled HTTP client", exc_info=True)

    async def _iter_events(
        self, response: httpx.Response
    ) -> AsyncGenerator[ServerSentEvent, None]:
        buffer: list[str] = []
        async for line in response.aiter_lines():
            if not line:
                if buffer:
                    yield self._parse_event(buffer)
                    buffer.clear()
                continue
            if line.startswith(":"):
                continue
            buffer.append(line)
        if buffer:
            yield self._parse_event(buffer)

    def _parse_event(self, lines: Iterable[str]) -> ServerSentEvent:
        event_name: Optional[str] = None
        event_id: Optional[str] = None
        data_lines: list[str] = []

        for line in lines:
            field, _, value = line.partition(":")
            value = value.lstrip(" ")
            if field == "event":
                event_name = value or None
            elif field == "data":
                data_lines.append(value)
            elif field == "id":
                event_id = value or None

        data = "\n".join(data_lines)
        return ServerSentEvent(
            data=data, event=event_name or "message", event_id=event_id
        )

    @staticmethod
    def _extract_error_detail(raw: bytes) -> Any:
        if not raw:
            return "Anthropic returned an empty error response."
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            text = raw.decode("utf-8", errors="ignore")
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            return text
        if isinstance(payload, dict):
            error = payload.get("error")
            if isinstance(error, dict) and error.get("message"):
                return error["message"]
            return error or payload
        return payload


__all__ = ["AnthropicClient", "AnthropicError", "ServerSentEvent"]
