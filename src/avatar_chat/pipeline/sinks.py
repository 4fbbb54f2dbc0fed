"""Speech sinks that make the avatar say dispatched sentences."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from ..heygen import HeyGenClient, HeyGenError
from ..schemas.avatar import TaskResult
from .errors import DispatchError

logger = logging.getLogger(__name__)


@dataclass
class SpeechSession:
    """Destination for dispatched sentences."""

    session_id: str
    active: bool = True
    url: Optional[str] = None
    access_token: Optional[str] = None


class SpeechSink(Protocol):
    async def dispatch(self, sentence: str, session: SpeechSession) -> Any: ...


class HeyGenSpeechSink:
    """Send each sentence to a HeyGen streaming session as a speak task."""

    def __init__(self, client: HeyGenClient, token: str, task_type: str = "repeat"):
        self._client = client
        self._token = token
        self._task_type = task_type

    async def dispatch(self, sentence: str, session: SpeechSession) -> TaskResult:
        if not session.active:
            raise DispatchError(f"Avatar session {session.session_id} is not active")

        try:
            return await self._client.speak(
                self._token, session.session_id, sentence, self._task_type
            )
        except HeyGenError as exc:
            logger.error("Error speaking text: %s", exc.detail)
            raise DispatchError(exc.detail, status_code=exc.status_code) from exc


__all__ = ["HeyGenSpeechSink", "SpeechSession", "SpeechSink"]
