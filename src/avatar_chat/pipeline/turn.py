"""
Speech Turn: streamed chat reply to ordered avatar speech.

Architecture:
    ChatStreamSource.open() → StreamDecoder → SentenceSegmenter → sentence_queue
                                                                      │
                                                                      ▼
                                                          SpeechSink.dispatch()

A producer task reads and segments the chat stream while the consumer
dispatches sentences one at a time. Each dispatch is awaited before the next
one starts, so the avatar never receives sentence N+1 before sentence N has
been accepted, while later text keeps buffering in the meantime.

A failing source or decoder aborts the turn: sentences still queued are
dropped and the trailing buffer is never flushed. A failing dispatch cancels
the producer and discards everything that has not been spoken yet.

Usage:
    turn = SpeechTurn(HttpChatSource(server_url), HeyGenSpeechSink(client, token))
    result = await turn.run("Tell me a joke", session, history=log.messages())
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass, field
from typing import (
    Any,
    AsyncGenerator,
    AsyncIterator,
    Callable,
    List,
    Optional,
    Sequence,
)

from ..schemas.chat import ChatMessage
from .decoder import StreamDecoder
from .errors import DispatchError, TurnError, TurnInProgressError
from .segmenter import SentenceSegmenter
from .sinks import SpeechSession, SpeechSink
from .sources import ChatStreamSource

logger = logging.getLogger(__name__)


@dataclass
class TurnEvent:
    """A sentence the speech sink has acknowledged."""

    index: int
    sentence: str
    ack: Any = None


@dataclass
class TurnResult:
    """Outcome of a completed turn."""

    sentences: List[str] = field(default_factory=list)
    acks: List[Any] = field(default_factory=list)
    text: str = ""


class TurnGuard:
    """Registry of speech sessions that currently have a turn running."""

    def __init__(self) -> None:
        self._active: set[str] = set()

    def is_active(self, session_id: str) -> bool:
        return session_id in self._active

    @asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[None]:
        if session_id in self._active:
            raise TurnInProgressError(
                f"A turn is already running for session {session_id}"
            )
        self._active.add(session_id)
        try:
            yield
        finally:
            self._active.discard(session_id)


class _ProducerOutcome:
    def __init__(self) -> None:
        self.error: Optional[BaseException] = None


class SpeechTurn:
    """Run chat turns through decode, segmentation and ordered dispatch."""

    def __init__(
        self,
        source: ChatStreamSource,
        sink: SpeechSink,
        *,
        guard: Optional[TurnGuard] = None,
        decoder: Optional[StreamDecoder] = None,
        terminators: Optional[str] = None,
    ):
        self._source = source
        self._sink = sink
        self._guard = guard or TurnGuard()
        self._decoder = decoder or StreamDecoder()
        self._terminators = terminators

    def stream(
        self,
        prompt: str,
        session: SpeechSession,
        history: Optional[Sequence[ChatMessage]] = None,
    ) -> AsyncGenerator[TurnEvent, None]:
        """Yield an event for every sentence the sink acknowledges."""

        return self._events(prompt, session, history, TurnResult(), None)

    async def run(
        self,
        prompt: str,
        session: SpeechSession,
        history: Optional[Sequence[ChatMessage]] = None,
        *,
        on_sentence: Optional[Callable[[TurnEvent], None]] = None,
        on_fragment: Optional[Callable[[str], None]] = None,
    ) -> TurnResult:
        """Run a whole turn and return what was spoken.

        Raises:
            SourceError: the chat stream failed.
            DecodeError: the chat stream carried invalid text.
            DispatchError: the sink failed; later sentences were not sent.
            TurnInProgressError: another turn is running for ``session``.
        """

        result = TurnResult()
        async for event in self._events(prompt, session, history, result, on_fragment):
            if on_sentence is not None:
                on_sentence(event)
        return result

    async def _events(
        self,
        prompt: str,
        session: SpeechSession,
        history: Optional[Sequence[ChatMessage]],
        result: TurnResult,
        on_fragment: Optional[Callable[[str], None]],
    ) -> AsyncGenerator[TurnEvent, None]:
        async with self._guard.hold(session.session_id):
            sentence_queue: asyncio.Queue[Optional[str]] = asyncio.Queue()
            outcome = _ProducerOutcome()
            producer = asyncio.create_task(
                self._produce(prompt, history, sentence_queue, outcome, result, on_fragment)
            )

            try:
                while True:
                    sentence = await sentence_queue.get()
                    if outcome.error is not None:
                        logger.warning(
                            "Aborting turn for %s after %d sentence(s): %s",
                            session.session_id,
                            len(result.sentences),
                            outcome.error,
                        )
                        raise outcome.error
                    if sentence is None:
                        break

                    ack = await self._dispatch(sentence, session)
                    event = TurnEvent(index=len(result.sentences), sentence=sentence, ack=ack)
                    result.sentences.append(sentence)
                    result.acks.append(ack)
                    yield event
            finally:
                if not producer.done():
                    producer.cancel()
                with suppress(asyncio.CancelledError):
                    await producer

            logger.info(
                "Turn complete for %s: %d sentence(s), %d char(s)",
                session.session_id,
                len(result.sentences),
                len(result.text),
            )

    async def _produce(
        self,
        prompt: str,
        history: Optional[Sequence[ChatMessage]],
        sentence_queue: asyncio.Queue[Optional[str]],
        outcome: _ProducerOutcome,
        result: TurnResult,
        on_fragment: Optional[Callable[[str], None]],
    ) -> None:
        segmenter = SentenceSegmenter(self._terminators)
        try:
            async for fragment in self._decoder.decode(self._source.open(prompt, history)):
                result.text += fragment
                if on_fragment is not None:
                    on_fragment(fragment)
                for sentence in segmenter.feed(fragment):
                    sentence_queue.put_nowait(sentence)

            final = segmenter.flush()
            if final:
                sentence_queue.put_nowait(final)
        except Exception as exc:
            segmenter.reset()
            outcome.error = exc
        finally:
            sentence_queue.put_nowait(None)

    async def _dispatch(self, sentence: str, session: SpeechSession) -> Any:
        logger.info("Speaking (%d chars): %s", len(sentence), sentence[:80])
        try:
            return await self._sink.dispatch(sentence, session)
        except TurnError as exc:
            if isinstance(exc, DispatchError):
                raise
            raise DispatchError(exc.detail, status_code=exc.status_code) from exc
        except Exception as exc:
            raise DispatchError(str(exc) or type(exc).__name__) from exc


__all__ = ["SpeechTurn", "TurnEvent", "TurnGuard", "TurnResult"]
