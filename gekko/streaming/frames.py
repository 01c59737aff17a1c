"""Incremental decoder for text-framed (server-sent-event style) streams.

Turns raw response chunks into complete ``data:`` frames. Chunk boundaries
are arbitrary: they may split a line, or a single multi-byte character.
Both the byte-to-text decoding and the line framing therefore carry state
from one ``feed()`` call to the next.
"""

from __future__ import annotations

import codecs
import logging
from dataclasses import dataclass

from gekko.exceptions import DecodeError

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
SENTINEL = "[DONE]"
LINE_BOUNDARY = "\n"


@dataclass(frozen=True)
class Frame:
    """One complete data line of the stream.

    Attributes:
        payload: The line with its ``data:`` prefix removed.
        is_sentinel: Whether the payload is the end-of-stream marker.
    """

    payload: str
    is_sentinel: bool = False


def parse_line(line: str) -> Frame | None:
    """Parse one complete line into a Frame.

    Returns None for lines that are not data lines (blank keep-alives,
    ``:`` comments, ``event:``/``id:``/``retry:`` fields).
    """
    if line.endswith("\r"):
        line = line[:-1]
    if not line.startswith(DATA_PREFIX):
        return None
    payload = line[len(DATA_PREFIX) :]
    if payload.startswith(" "):
        payload = payload[1:]
    return Frame(payload=payload, is_sentinel=payload == SENTINEL)


class FrameDecoder:
    """Stateful line framer for one stream.

    Usage::

        decoder = FrameDecoder()
        async for chunk in response.aiter_raw():
            for frame in decoder.feed(chunk):
                ...
        decoder.flush()

    A decoder must not be shared between streams.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._encoding = encoding
        self._text_decoder = codecs.getincrementaldecoder(encoding)(errors="strict")
        self._residual = ""

    @property
    def residual(self) -> str:
        """Text buffered after the last line boundary."""
        return self._residual

    def feed(self, chunk: bytes | str) -> list[Frame]:
        """Consume a chunk and return the frames it completed.

        Args:
            chunk: Raw bytes from the transport, or already-decoded text.

        Returns:
            Frames for every line terminated within this chunk, in order.

        Raises:
            DecodeError: If the bytes are not valid in the stream encoding.
        """
        if isinstance(chunk, bytes):
            try:
                text = self._text_decoder.decode(chunk)
            except UnicodeDecodeError as e:
                raise DecodeError(
                    f"Stream is not valid {self._encoding}: {e.reason}",
                    detail=str(e),
                ) from e
        else:
            text = chunk

        if not text:
            return []

        segments = (self._residual + text).split(LINE_BOUNDARY)
        # The last segment is unterminated; a later chunk may complete it
        self._residual = segments.pop()

        frames: list[Frame] = []
        for line in segments:
            frame = parse_line(line)
            if frame is not None:
                frames.append(frame)
        return frames

    def flush(self) -> list[Frame]:
        """Finish the stream.

        An unterminated remainder is never surfaced as a frame, so this
        always returns an empty list. Buffered state is discarded.
        """
        try:
            tail = self._text_decoder.decode(b"", final=True)
        except UnicodeDecodeError:
            tail = ""
            logger.debug("Discarding incomplete multi-byte sequence at end of stream")
        remainder = self._residual + tail
        if remainder:
            logger.debug("Discarding %d unterminated character(s) at end of stream", len(remainder))
        self._residual = ""
        self._text_decoder.reset()
        return []


__all__ = ["DATA_PREFIX", "SENTINEL", "Frame", "FrameDecoder", "parse_line"]
