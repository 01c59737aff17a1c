"""Chat completion streams, decoded frame by frame.

Provides the incremental frame decoder, delta extraction, stream outcomes
and the chat stream client built on them.
"""

from gekko.streaming.client import ChatStream, ChatStreamClient, ChatStreamConfig
from gekko.streaming.deltas import extract_delta
from gekko.streaming.frames import SENTINEL, Frame, FrameDecoder
from gekko.streaming.outcome import OutcomeKind, StreamOutcome

__all__ = [
    "SENTINEL",
    "ChatStream",
    "ChatStreamClient",
    "ChatStreamConfig",
    "Frame",
    "FrameDecoder",
    "OutcomeKind",
    "StreamOutcome",
    "extract_delta",
]
