"""One spoken answer: chat deltas in, sequential audio out."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ..bridge import TextChunker
from .duplex import DuplexSynthesisChannel
from .playback import PlaybackQueue

logger = logging.getLogger(__name__)

DEFAULT_FINAL_TIMEOUT = 15.0


class VoiceSession:
    """
    Owns everything one spoken answer needs: the chunk buffer, the duplex
    synthesis channel, the playback queue, the receive task and the text
    accumulated so far.

    Usage:
        session = VoiceSession(channel, playback, threshold=50)
        await session.start()
        try:
            async for delta in deltas:
                await session.on_delta(delta.text)
            await session.finish()
        finally:
            await session.close()
    """

    def __init__(
        self,
        channel: DuplexSynthesisChannel,
        playback: PlaybackQueue,
        threshold: int = 50,
        final_timeout: float = DEFAULT_FINAL_TIMEOUT,
    ):
        self.channel = channel
        self.playback = playback
        self.chunker = TextChunker(threshold)
        self.final_timeout = final_timeout
        self._parts: list[str] = []
        self._receiver: Optional[asyncio.Task] = None
        self.segments_sent = 0
        self.audio_received = 0

    @property
    def response_text(self) -> str:
        return "".join(self._parts)

    async def start(self) -> None:
        await self.channel.connect()
        self._receiver = asyncio.create_task(self._receive())

    async def _receive(self) -> None:
        async for message in self.channel.audio_messages():
            if message.audio:
                self.audio_received += 1
                self.playback.put(message.audio)
            if message.is_final:
                logger.debug("Synthesis finished after %d segments", self.audio_received)

    async def on_delta(self, text: str) -> None:
        """Record a chat delta and forward a segment when the buffer flushes."""
        if not text:
            return
        self._parts.append(text)
        segment = self.chunker.on_delta(text)
        if segment is not None:
            logger.debug("Sending segment: %r", segment.text)
            await self.channel.send_text(segment.text, flush=False)
            self.segments_sent += 1

    async def finish(self) -> None:
        """
        Flush what is left, then wait for the service's ``isFinal`` (bounded
        by ``final_timeout``) and for queued audio to finish playing.
        """
        segment = self.chunker.on_end()
        if segment.is_sentinel or not segment.text.strip():
            await self.channel.send_text(" ", flush=True)
        else:
            await self.channel.send_text(segment.text, flush=True)
            self.segments_sent += 1
        await self.channel.end_input()

        if self._receiver is not None:
            try:
                await asyncio.wait_for(asyncio.shield(self._receiver), self.final_timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "No final audio message within %.1fs; continuing", self.final_timeout
                )

        await self.playback.wait_idle()

    async def close(self) -> None:
        """Stop receiving and close the channel. Safe to call more than once."""
        receiver, self._receiver = self._receiver, None
        if receiver is not None and not receiver.done():
            receiver.cancel()
        if receiver is not None:
            try:
                await receiver
            except asyncio.CancelledError:
                pass
            except Exception as exc:
                logger.warning("Synthesis receive task failed: %s", exc)
        await self.channel.close()
        self.chunker.reset()


__all__ = ["DEFAULT_FINAL_TIMEOUT", "VoiceSession"]
