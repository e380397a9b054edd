"""
TTS Processor for the real-time speech pipeline.

This module turns a stream of text deltas into the ``text`` / ``audio`` /
``complete_audio`` / ``end`` / ``error`` event sequence served by the
real-time TTS route.

Architecture:
    TextDelta stream ─┬─▶ TextEvent ────────────────────────────────▶ events
                      └─▶ TextChunker ─▶ phrase_queue ─▶ TTSProcessor ─▶ events

Text events are forwarded as soon as each delta arrives while a single
processor task synthesizes segments one at a time, so audio events always
follow segment order.

Usage:
    pipeline = RealtimeSpeechPipeline(tts_service, threshold=20)
    async for event in pipeline.run(deltas):
        yield event.to_sse()
"""

import asyncio
import logging
import time
from contextlib import suppress
from typing import AsyncIterator, Awaitable, Callable, Optional, TYPE_CHECKING

from voicechat.bridge import (
    AudioEvent,
    CompleteAudioEvent,
    EndEvent,
    ErrorEvent,
    SynthesisEvent,
    TextChunker,
    TextDelta,
    TextEvent,
)
from voicechat.services.tts_service import STREAMING_FORMAT

if TYPE_CHECKING:
    from voicechat.services.tts_service import TTSService

logger = logging.getLogger(__name__)

STREAM_ERROR_MESSAGE = "An error occurred"


class TTSProcessor:
    """
    Queue-based TTS processor for segment-by-segment synthesis.

    Reads phrases from an input queue, synthesizes each one with the TTS
    service and hands the resulting audio to ``emit``. A failed phrase is
    logged and skipped; the remaining phrases are still processed.
    """

    def __init__(
        self,
        tts_service: "TTSService",
        emit: Callable[[SynthesisEvent], Awaitable[None]],
        output_format: str = STREAMING_FORMAT,
    ):
        self.tts_service = tts_service
        self.emit = emit
        self.output_format = output_format
        self.synthesized = 0
        self.failed = 0

    async def process(self, phrase_queue: "asyncio.Queue[Optional[str]]") -> None:
        """Run until ``None`` is read from ``phrase_queue``."""
        start_time = time.monotonic()
        first_audio = True

        while True:
            phrase = await phrase_queue.get()

            # None signals end of stream
            if phrase is None:
                break

            # Only process if the phrase has meaningful content
            if not phrase.strip():
                continue

            logger.info(f"Processing phrase ({len(phrase)} chars): {phrase[:50]}...")
            try:
                audio = await self.tts_service.synthesize(phrase, self.output_format)
            except Exception as e:
                self.failed += 1
                logger.error(f"TTS synthesis error for phrase: {e}")
                continue

            if first_audio:
                elapsed = (time.monotonic() - start_time) * 1000
                logger.info(f"First audio segment in {elapsed:.0f}ms")
                first_audio = False

            self.synthesized += 1
            await self.emit(AudioEvent(audio))

        elapsed = (time.monotonic() - start_time) * 1000
        logger.info(
            f"TTS processing complete: {self.synthesized} segments "
            f"({self.failed} failed) in {elapsed:.0f}ms"
        )


class RealtimeSpeechPipeline:
    """Per-request pipeline owning one chunk buffer and one processor task."""

    def __init__(
        self,
        tts_service: "TTSService",
        threshold: int,
        output_format: str = STREAMING_FORMAT,
    ):
        self.tts_service = tts_service
        self.threshold = threshold
        self.output_format = output_format

    async def run(self, deltas: AsyncIterator[TextDelta]) -> AsyncIterator[SynthesisEvent]:
        """
        Yield synthesis events for ``deltas``.

        Closing this generator early (client disconnect) cancels synthesis
        and closes the upstream delta stream.
        """
        events: asyncio.Queue[Optional[SynthesisEvent]] = asyncio.Queue()
        driver = asyncio.create_task(self._drive(deltas, events))
        try:
            while True:
                event = await events.get()
                if event is None:
                    break
                yield event
        finally:
            if not driver.done():
                driver.cancel()
            with suppress(asyncio.CancelledError):
                await driver

    async def _drive(
        self,
        deltas: AsyncIterator[TextDelta],
        events: "asyncio.Queue[Optional[SynthesisEvent]]",
    ) -> None:
        phrase_queue: asyncio.Queue[Optional[str]] = asyncio.Queue()
        processor = TTSProcessor(self.tts_service, events.put, self.output_format)
        tts_task = asyncio.create_task(processor.process(phrase_queue))
        chunker = TextChunker(self.threshold)
        complete_response: list[str] = []

        try:
            try:
                async for delta in deltas:
                    complete_response.append(delta.text)
                    await events.put(TextEvent(delta.text))
                    segment = chunker.on_delta(delta.text)
                    if segment is not None:
                        await phrase_queue.put(segment.text)
            except Exception as e:
                logger.error(f"Error in stream processing: {e}")
                await events.put(ErrorEvent(STREAM_ERROR_MESSAGE))
                return

            final = chunker.on_end()
            if not final.is_sentinel:
                await phrase_queue.put(final.text)
            await phrase_queue.put(None)
            await tts_task

            text = "".join(complete_response)
            if text.strip():
                try:
                    audio = await self.tts_service.synthesize(text, self.output_format)
                    await events.put(CompleteAudioEvent(audio))
                except Exception as e:
                    logger.error(f"Error generating complete audio: {e}")

            await events.put(EndEvent())
        finally:
            if not tts_task.done():
                tts_task.cancel()
                with suppress(asyncio.CancelledError):
                    await tts_task
            aclose = getattr(deltas, "aclose", None)
            if aclose is not None:
                with suppress(Exception):
                    await aclose()
            events.put_nowait(None)


__all__ = ["RealtimeSpeechPipeline", "STREAM_ERROR_MESSAGE", "TTSProcessor"]
