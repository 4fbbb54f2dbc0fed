"""Exceptions raised while running a speech turn."""

from __future__ import annotations

from typing import Any, Optional


class TurnError(Exception):
    """Base class for failures that abort a speech turn."""

    def __init__(self, detail: Any, *, status_code: Optional[int] = None):
        super().__init__(str(detail))
        self.detail = detail
        self.status_code = status_code


class SourceError(TurnError):
    """The chat stream failed or returned a non-success status."""


class DecodeError(TurnError):
    """The chat stream carried bytes that are not valid text."""


class DispatchError(TurnError):
    """The speech sink rejected or failed to acknowledge a sentence."""


class TurnInProgressError(TurnError):
    """A turn is already running for the speech session."""


__all__ = [
    "DecodeError",
    "DispatchError",
    "SourceError",
    "TurnError",
    "TurnInProgressError",
]
