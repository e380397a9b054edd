"""Normalize upstream chat streams into one canonical text-delta sequence."""

from __future__ import annotations

import codecs
import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterable, AsyncIterator, Optional

from .events import TextDelta

logger = logging.getLogger(__name__)

INVERSO_CHUNK_EVENT = "ai_message_chunk"

_FRAME_SEPARATOR = "\n\n"
_EVENT_LINE = re.compile(r"^event:[ \t]?(.*)$", re.MULTILINE)
_DATA_LINE = re.compile(r"^data:[ \t]?(.*)$", re.MULTILINE)
_INVALID = object()


class UpstreamProtocol(str, Enum):
    """Wire shape of an upstream chat stream."""

    CANONICAL = "canonical"  # data: {"text": "..."}
    INVERSO = "inverso"  # event: ai_message_chunk / data: {"content": "..."}


class StreamError(Exception):
    """Raised when a canonical stream carries a terminal error frame."""


@dataclass(frozen=True)
class UpstreamFrame:
    """One raw `event:`/`data:` record; either field may be missing."""

    event: Optional[str] = None
    data: Optional[str] = None

    @classmethod
    def parse(cls, raw: str) -> "UpstreamFrame":
        event_match = _EVENT_LINE.search(raw)
        data_match = _DATA_LINE.search(raw)
        return cls(
            event=event_match.group(1).strip() if event_match else None,
            data=data_match.group(1) if data_match else None,
        )


class FrameNormalizer:
    """
    Incremental frame splitter for one upstream response.

    Call :meth:`feed` with every chunk read from the upstream and
    :meth:`finish` exactly once when the upstream ends. Incomplete trailing
    frames are held back between reads.
    """

    def __init__(self, protocol: UpstreamProtocol):
        self.protocol = UpstreamProtocol(protocol)
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._finished = False
        self.frames_seen = 0
        self.frames_discarded = 0

    def feed(self, chunk: bytes | str) -> list[TextDelta]:
        if self._finished:
            raise RuntimeError("normalizer already finished")
        text = self._decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        if not text:
            return []

        self._buffer = (self._buffer + text).replace("\r\n", "\n")
        *complete, self._buffer = self._buffer.split(_FRAME_SEPARATOR)

        deltas: list[TextDelta] = []
        for raw in complete:
            delta = self._process(raw)
            if delta is not None:
                deltas.append(delta)
        return deltas

    def finish(self) -> list[TextDelta]:
        """Flush the decoder and process any trailing partial frame once."""
        if self._finished:
            return []
        self._finished = True

        tail = self._decoder.decode(b"", final=True)
        remainder = (self._buffer + tail).replace("\r\n", "\n")
        self._buffer = ""

        deltas: list[TextDelta] = []
        for raw in remainder.split(_FRAME_SEPARATOR):
            delta = self._process(raw)
            if delta is not None:
                deltas.append(delta)
        return deltas

    def _process(self, raw: str) -> Optional[TextDelta]:
        if not raw.strip():
            return None
        self.frames_seen += 1
        frame = UpstreamFrame.parse(raw)
        if self.protocol is UpstreamProtocol.INVERSO:
            return self._from_inverso(frame)
        return self._from_canonical(frame)

    def _from_inverso(self, frame: UpstreamFrame) -> Optional[TextDelta]:
        if frame.event != INVERSO_CHUNK_EVENT:
            return None
        if frame.data is None:
            self._discard(frame, "missing data line")
            return None
        payload = self._load(frame)
        if payload is _INVALID:
            return None
        if not isinstance(payload, dict) or "content" not in payload:
            self._discard(frame, "missing content field")
            return None
        content = payload["content"]
        if not isinstance(content, str):
            self._discard(frame, "non-string content")
            return None
        return TextDelta(content) if content else None

    def _from_canonical(self, frame: UpstreamFrame) -> Optional[TextDelta]:
        if frame.event == "error":
            payload = self._load(frame)
            message = (
                payload.get("error")
                if isinstance(payload, dict)
                else frame.data
            )
            raise StreamError(str(message or "upstream stream failed"))
        if frame.event not in (None, "message"):
            return None
        payload = self._load(frame)
        if not isinstance(payload, dict):
            return None
        text = payload.get("text")
        if not isinstance(text, str) or not text:
            return None
        return TextDelta(text)

    def _load(self, frame: UpstreamFrame) -> Any:
        if frame.data is None:
            return None
        try:
            return json.loads(frame.data)
        except json.JSONDecodeError as exc:
            self._discard(frame, f"invalid JSON ({exc.msg})")
            return _INVALID

    def _discard(self, frame: UpstreamFrame, reason: str) -> None:
        self.frames_discarded += 1
        logger.warning(
            "Discarding %s frame (event=%s): %s",
            self.protocol.value,
            frame.event,
            reason,
        )


async def normalize_stream(
    chunks: AsyncIterable[bytes | str],
    protocol: UpstreamProtocol,
) -> AsyncIterator[TextDelta]:
    """Yield canonical text deltas, in arrival order, from a raw byte stream."""

    normalizer = FrameNormalizer(protocol)
    async for chunk in chunks:
        for delta in normalizer.feed(chunk):
            yield delta
    for delta in normalizer.finish():
        yield delta
    logger.debug(
        "Normalized %s stream: %d frames, %d discarded",
        normalizer.protocol.value,
        normalizer.frames_seen,
        normalizer.frames_discarded,
    )


async def iter_openai_deltas(stream: AsyncIterable[Any]) -> AsyncIterator[TextDelta]:
    """Adapt OpenAI chat completion chunks into text deltas."""

    async for chunk in stream:
        choices = getattr(chunk, "choices", None)
        if not choices:
            continue
        delta = getattr(choices[0], "delta", None)
        content = getattr(delta, "content", None) if delta is not None else None
        if content:
            yield TextDelta(content)


__all__ = [
    "INVERSO_CHUNK_EVENT",
    "FrameNormalizer",
    "StreamError",
    "UpstreamFrame",
    "UpstreamProtocol",
    "iter_openai_deltas",
    "normalize_stream",
]
