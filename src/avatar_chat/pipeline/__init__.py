"""
Speech pipeline for the streaming avatar.

This package turns a streamed chat reply into avatar speech:

- decoder: Reassembles text from raw byte chunks (multi-byte safe)
- segmenter: Splits streamed text into complete sentences
- turn: Dispatches sentences to the speech sink in order, one at a time
- sources / sinks: Chat stream and avatar speech collaborators
- history: Caller-owned conversation log with a truncation policy

Architecture Overview:

    ┌─────────────┐     ┌───────────────┐     ┌───────────────────┐     ┌────────────┐
    │ Chat stream │────▶│ StreamDecoder │────▶│ SentenceSegmenter │────▶│ SpeechSink │
    └─────────────┘     └───────────────┘     └───────────────────┘     └────────────┘
"""

from .decoder import StreamDecoder
from .errors import (
    DecodeError,
    DispatchError,
    SourceError,
    TurnError,
    TurnInProgressError,
)
from .history import ConversationLog, truncate_history
from .segmenter import SegmenterState, SentenceSegmenter
from .sinks import HeyGenSpeechSink, SpeechSession, SpeechSink
from .sources import ChatStreamSource, HttpChatSource
from .turn import SpeechTurn, TurnEvent, TurnGuard, TurnResult

__all__ = [
    "ChatStreamSource",
    "ConversationLog",
    "DecodeError",
    "DispatchError",
    "HeyGenSpeechSink",
    "HttpChatSource",
    "SegmenterState",
    "SentenceSegmenter",
    "SourceError",
    "SpeechSession",
    "SpeechSink",
    "SpeechTurn",
    "StreamDecoder",
    "TurnError",
    "TurnEvent",
    "TurnGuard",
    "TurnInProgressError",
    "TurnResult",
    "truncate_history",
]
