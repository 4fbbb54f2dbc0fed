"""Incremental decoding of a streamed chat response body."""

from __future__ import annotations

import codecs
import logging
from typing import AsyncGenerator, AsyncIterable

from .errors import DecodeError, SourceError, TurnError

logger = logging.getLogger(__name__)


class StreamDecoder:
    """Turn raw byte chunks into text fragments.

    Multi-byte characters split across two chunks are held back until the
    rest of the sequence arrives, so concatenating every fragment yields the
    same text as decoding the whole body at once.
    """

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    async def decode(
        self, chunks: AsyncIterable[bytes]
    ) -> AsyncGenerator[str, None]:
        """Yield decoded fragments for each chunk of ``chunks``.

        Raises:
            SourceError: fetching the next chunk failed.
            DecodeError: the bytes are not valid for the encoding, including
                an incomplete sequence left over when the source ends.
        """

        decoder = codecs.getincrementaldecoder(self.encoding)(errors="strict")
        iterator = chunks.__aiter__()
        received = 0

        while True:
            try:
                chunk = await iterator.__anext__()
            except StopAsyncIteration:
                break
            except TurnError:
                raise
            except Exception as exc:
                logger.warning("Chat stream failed after %d bytes: %s", received, exc)
                raise SourceError(str(exc) or type(exc).__name__) from exc

            if not chunk:
                continue
            received += len(chunk)
            text = self._decode(decoder, chunk, final=False, offset=received)
            if text:
                yield text

        remainder = self._decode(decoder, b"", final=True, offset=received)
        if remainder:
            yield remainder

    @staticmethod
    def _decode(
        decoder: codecs.IncrementalDecoder, chunk: bytes, *, final: bool, offset: int
    ) -> str:
        try:
            return decoder.decode(chunk, final=final)
        except UnicodeDecodeError as exc:
            raise DecodeError(
                f"Invalid {exc.encoding} data near byte {offset}: {exc.reason}"
            ) from exc


__all__ = ["StreamDecoder"]
