"""
Sentence Segmenter for the Avatar Speech Pipeline.

Splits streamed chat text into complete sentences so each one can be handed
to the avatar as soon as its closing punctuation arrives.

Architecture:
    decoded fragments → SentenceSegmenter.feed() → sentences → speech sink

A sentence ends at a run of one or more terminator characters (``.``, ``!``,
``?`` by default). Text after the last run stays buffered until more text
arrives or the stream ends.

Usage:
    segmenter = SentenceSegmenter()

    # While the chat stream is open:
    async for fragment in decoder.decode(chunks):
        for sentence in segmenter.feed(fragment):
            await sink.dispatch(sentence, session)

    # After the stream signals completion:
    final = segmenter.flush()
    if final:
        await sink.dispatch(final, session)
"""

from __future__ import annotations

import enum
import logging
import re
from typing import List, Optional

logger = logging.getLogger(__name__)


class SegmenterState(str, enum.Enum):
    """Lifecycle of a segmenter within one turn."""

    IDLE = "idle"
    ACCUMULATING = "accumulating"
    FLUSHING = "flushing"


class SentenceSegmenter:
    """
    Stateful segmenter that turns streamed text into ordered sentences.

    Attributes:
        terminators: Characters that close a sentence (default: ``.!?``)
    """

    DEFAULT_TERMINATORS = ".!?"

    def __init__(self, terminators: Optional[str] = None):
        """
        Initialize the segmenter.

        Args:
            terminators: Sentence-ending characters. Consecutive terminators
                         are treated as one boundary, so ``"Really?!"`` stays
                         a single sentence.
        """
        self.terminators = terminators or self.DEFAULT_TERMINATORS
        self._sentence_pattern = self._compile_pattern(self.terminators)
        self._buffer = ""
        self._total_emitted = 0
        self._state = SegmenterState.IDLE

    @staticmethod
    def _compile_pattern(terminators: str) -> re.Pattern:
        """Match any text followed by a maximal run of terminators."""
        charset = re.escape(terminators)
        return re.compile(f"(?P<body>[^{charset}]*)(?P<end>[{charset}]+)")

    def feed(self, fragment: str) -> List[str]:
        """
        Append a fragment and return every sentence it completes.

        Sentences are returned left to right and trimmed. A terminator run
        with nothing but whitespace before it is dropped. The buffer keeps
        only the text following the last terminator run.

        Args:
            fragment: Decoded text from the chat stream

        Returns:
            Complete sentences, possibly empty
        """
        self._state = SegmenterState.ACCUMULATING
        if not fragment:
            return []

        self._buffer += fragment

        sentences: List[str] = []
        consumed = 0
        for match in self._sentence_pattern.finditer(self._buffer):
            consumed = match.end()
            if not match.group("body").strip():
                continue
            sentence = match.group(0).strip()
            sentences.append(sentence)
            self._total_emitted += len(sentence)

        if consumed:
            self._buffer = self._buffer[consumed:]
        if sentences:
            logger.debug(
                "Segmented %d sentence(s), %d char(s) pending",
                len(sentences),
                len(self._buffer),
            )
        return sentences

    def flush(self) -> Optional[str]:
        """
        Return the trailing text once the stream has ended.

        Call this exactly once per turn, after the source is exhausted. The
        remainder is returned even without closing punctuation.

        Returns:
            Remaining trimmed text if any, None otherwise
        """
        self._state = SegmenterState.FLUSHING
        remainder = self._buffer.strip()
        self._buffer = ""
        self._state = SegmenterState.IDLE
        if not remainder:
            return None
        self._total_emitted += len(remainder)
        return remainder

    def reset(self) -> None:
        """Discard pending text, e.g. when a turn is aborted."""
        self._buffer = ""
        self._total_emitted = 0
        self._state = SegmenterState.IDLE

    @property
    def state(self) -> SegmenterState:
        return self._state

    @property
    def pending(self) -> str:
        """Text received but not yet emitted."""
        return self._buffer

    @property
    def total_emitted_chars(self) -> int:
        """Total characters emitted across all sentences."""
        return self._total_emitted

    @property
    def buffer_size(self) -> int:
        """Current buffer size in characters."""
        return len(self._buffer)


__all__ = ["SegmenterState", "SentenceSegmenter"]
