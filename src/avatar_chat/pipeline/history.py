"""Caller-owned conversation history for multi-turn chats."""

from __future__ import annotations

from typing import Iterable, Iterator, Sequence

from ..schemas.chat import ChatMessage


def truncate_history(
    entries: Sequence[ChatMessage], max_entries: int
) -> list[ChatMessage]:
    """Keep a leading system entry plus the newest ``max_entries`` others."""

    if not entries:
        return []

    head: list[ChatMessage] = []
    rest = list(entries)
    if rest[0].role == "system":
        head = [rest.pop(0)]

    if max_entries <= 0:
        return head
    return head + rest[-max_entries:]


class ConversationLog:
    """Ordered chat history passed explicitly into each turn.

    The log is trimmed after every change so it never holds more than the
    leading system entry plus ``max_entries`` recent entries.
    """

    def __init__(self, max_entries: int, entries: Iterable[ChatMessage] = ()):
        self.max_entries = max_entries
        self._entries: list[ChatMessage] = truncate_history(list(entries), max_entries)

    def append(self, role: str, content: str) -> None:
        self._entries.append(ChatMessage(role=role, content=content))
        self._entries = truncate_history(self._entries, self.max_entries)

    def extend(self, entries: Iterable[ChatMessage]) -> None:
        self._entries.extend(entries)
        self._entries = truncate_history(self._entries, self.max_entries)

    def clear(self) -> None:
        """Drop everything except a leading system entry."""
        self._entries = truncate_history(self._entries, 0)

    def messages(self) -> list[ChatMessage]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ChatMessage]:
        return iter(list(self._entries))


__all__ = ["ConversationLog", "truncate_history"]
