"""
Chunk-and-flush heuristic for paced speech synthesis.

Text deltas from a chat stream are buffered until the buffer holds enough
material to synthesize a natural-sounding segment:

    delta → TextChunker.on_delta() → Segment | None
    end   → TextChunker.on_end()   → Segment (remainder or sentinel)

A flush fires when the buffer contains sentence-ending punctuation, a
newline, or grows past ``threshold`` characters. Deltas are never split: a
long delta lands whole in the segment it triggers.

Two pipelines use this with different thresholds (20 characters for the
server-side audio pipeline, 50 for the client-held synthesis socket).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

FLUSH_MARKERS = (".", "!", "?", "\n")


@dataclass(frozen=True)
class Segment:
    """A piece of text ready to hand to a synthesizer."""

    text: str
    is_final: bool = False

    @property
    def is_sentinel(self) -> bool:
        """Empty final segment marking the end of a stream with nothing left."""
        return self.is_final and not self.text


def should_flush(buffer: str, threshold: int) -> bool:
    if len(buffer) > threshold:
        return True
    return any(marker in buffer for marker in FLUSH_MARKERS)


class TextChunker:
    """
    Stateful buffer deciding when accumulated text becomes a segment.

    One instance belongs to exactly one request or voice session.
    """

    def __init__(self, threshold: int):
        if threshold < 1:
            raise ValueError("threshold must be a positive number of characters")
        self.threshold = threshold
        self._pending = ""
        self._segments_emitted = 0

    @property
    def pending(self) -> str:
        return self._pending

    @property
    def segments_emitted(self) -> int:
        return self._segments_emitted

    def on_delta(self, text: str) -> Optional[Segment]:
        """Append a delta; return a segment when the flush decision fires."""
        if not text:
            return None

        self._pending += text
        if not should_flush(self._pending, self.threshold):
            return None

        segment = Segment(self._pending)
        self._pending = ""
        self._segments_emitted += 1
        return segment

    def on_end(self) -> Segment:
        """Return the remaining text as a final segment, or the sentinel."""
        segment = Segment(self._pending, is_final=True)
        self._pending = ""
        if segment.text:
            self._segments_emitted += 1
        return segment

    def reset(self) -> None:
        self._pending = ""
        self._segments_emitted = 0


__all__ = ["FLUSH_MARKERS", "Segment", "TextChunker", "should_flush"]
