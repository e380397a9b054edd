"""
Protocol bridge between upstream chat streams and speech synthesis.

- normalizer: turns either upstream wire format into canonical TextDeltas
- chunker: decides when buffered text is ready to be synthesized
- events: the normalized event alphabet emitted downstream

    upstream bytes ──▶ FrameNormalizer ──▶ TextDelta ──┬──▶ TextEvent (UI)
                                                       └──▶ TextChunker ──▶ Segment ──▶ synthesizer
"""

from .chunker import Segment, TextChunker
from .events import (
    AudioEvent,
    CompleteAudioEvent,
    EndEvent,
    ErrorEvent,
    SynthesisEvent,
    TextDelta,
    TextEvent,
)
from .normalizer import (
    FrameNormalizer,
    StreamError,
    UpstreamFrame,
    UpstreamProtocol,
    iter_openai_deltas,
    normalize_stream,
)

__all__ = [
    "AudioEvent",
    "CompleteAudioEvent",
    "EndEvent",
    "ErrorEvent",
    "FrameNormalizer",
    "Segment",
    "StreamError",
    "SynthesisEvent",
    "TextChunker",
    "TextDelta",
    "TextEvent",
    "UpstreamFrame",
    "UpstreamProtocol",
    "iter_openai_deltas",
    "normalize_stream",
]
