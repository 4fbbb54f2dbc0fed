"""HeyGen streaming avatar REST client."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional

import httpx
from fastapi import status

from .config import Settings
from .schemas.avatar import NewSessionData, NewSessionRequest, TaskRequest, TaskResult

logger = logging.getLogger(__name__)


class HeyGenError(Exception):
    """Wrap transport or API failures when communicating with HeyGen."""

    def __init__(self, status_code: int, detail: Any):
        super().__init__(str(detail))
        self.status_code = status_code
        self.detail = detail


class HeyGenClient:
    """Issue streaming tokens and drive avatar sessions.

    Token creation authenticates with the account API key. Every session
    call authenticates with the short-lived streaming token, which is what
    the browser SDK does with the token handed out by the backend.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def _base_url(self) -> str:
        return str(self._settings.heygen_base_url).rstrip("/")

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self._settings.request_timeout, connect=10.0),
                transport=self._transport,
            )
        return self._client

    def _api_key_headers(self) -> dict[str, str]:
        api_key = self._settings.heygen_api_key
        if api_key is None or not api_key.get_secret_value():
            raise HeyGenError(
                status.HTTP_503_SERVICE_UNAVAILABLE, "API key is missing from .env"
            )
        return {
            "accept": "application/json",
            "content-type": "application/json",
            "x-api-key": api_key.get_secret_value(),
        }

    @staticmethod
    def _token_headers(token: str) -> dict[str, str]:
        return {
            "accept": "application/json",
            "content-type": "application/json",
            "Authorization": f"Bearer {token}",
        }

    async def create_token(self) -> str:
        """Return a short-lived streaming access token."""

        data = await self._post(
            "/v1/streaming.create_token", headers=self._api_key_headers()
        )
        token = data.get("token") if isinstance(data, Mapping) else None
        if not isinstance(token, str) or not token:
            raise HeyGenError(
                status.HTTP_502_BAD_GATEWAY, "Unexpected API response structure"
            )
        return token

    async def new_session(
        self, token: str, request: NewSessionRequest
    ) -> NewSessionData:
        data = await self._post(
            "/v1/streaming.new",
            headers=self._token_headers(token),
            payload=request.to_payload(),
        )
        if not isinstance(data, Mapping) or not data.get("session_id"):
            raise HeyGenError(
                status.HTTP_502_BAD_GATEWAY, "Unexpected API response structure"
            )
        session = NewSessionData.model_validate(dict(data))
        logger.info("Created avatar session %s", session.session_id)
        return session

    async def start_session(self, token: str, session_id: str) -> None:
        await self._post(
            "/v1/streaming.start",
            headers=self._token_headers(token),
            payload={"session_id": session_id},
        )
        logger.info("Started avatar session %s", session_id)

    async def speak(
        self,
        token: str,
        session_id: str,
        text: str,
        task_type: str = "repeat",
    ) -> TaskResult:
        """Ask the avatar to speak ``text`` and return the task acknowledgement."""

        request = TaskRequest(session_id=session_id, text=text, task_type=task_type)
        data = await self._post(
            "/v1/streaming.task",
            headers=self._token_headers(token),
            payload=request.model_dump(),
        )
        return TaskResult.model_validate(dict(data) if isinstance(data, Mapping) else {})

    async def stop_session(self, token: str, session_id: str) -> None:
        await self._post(
            "/v1/streaming.stop",
            headers=self._token_headers(token),
            payload={"session_id": session_id},
        )
        logger.info("Stopped avatar session %s", session_id)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _post(
        self,
        path: str,
        *,
        headers: dict[str, str],
        payload: Optional[dict[str, Any]] = None,
    ) -> Any:
        client = self._get_http_client()
        try:
            response = await client.post(path, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            raise HeyGenError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

        if response.status_code >= 400:
            detail = self._extract_error_detail(response.content)
            logger.error(
                "HeyGen %s responded with status %d: %s",
                path,
                response.status_code,
                detail,
            )
            raise HeyGenError(response.status_code, detail)

        try:
            body = response.json()
        except ValueError as exc:
            raise HeyGenError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

        logger.debug("HeyGen %s response: %s", path, body)
        if isinstance(body, Mapping):
            error = body.get("error")
            if error:
                raise HeyGenError(status.HTTP_502_BAD_GATEWAY, error)
            return body.get("data")
        return None

    @staticmethod
    def _extract_error_detail(raw: bytes) -> Any:
        if not raw:
            return "HeyGen returned an empty error response."
        text = raw.decode("utf-8", errors="ignore")
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            return text
        if isinstance(payload, dict):
            return payload.get("message") or payload.get("error") or payload
        return payload


__all__ = ["HeyGenClient", "HeyGenError"]
