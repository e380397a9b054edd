"""Sequential audio playback for synthesized segments."""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import shlex
from contextlib import suppress
from pathlib import Path
from typing import Optional, Protocol, Sequence, Union

logger = logging.getLogger(__name__)


class PlaybackError(RuntimeError):
    """Raised by a player when a segment could not be played."""


class AudioPlayer(Protocol):
    async def play(self, audio: bytes) -> None: ...


class FilePlayer:
    """Write each segment to ``<directory>/<prefix>-NNNN.mp3``."""

    def __init__(self, directory: Union[str, Path], prefix: str = "segment"):
        self.directory = Path(directory)
        self.prefix = prefix
        self.count = 0

    async def play(self, audio: bytes) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self.count += 1
        path = self.directory / f"{self.prefix}-{self.count:04d}.mp3"
        await asyncio.to_thread(path.write_bytes, audio)
        logger.debug("Wrote %d bytes to %s", len(audio), path)


class CommandPlayer:
    """
    Pipe each segment into an external player and wait for it to exit,
    e.g. ``ffplay -autoexit -nodisp -loglevel quiet -`` or ``mpg123 -q -``.
    """

    def __init__(self, command: Union[str, Sequence[str]]):
        args = shlex.split(command) if isinstance(command, str) else list(command)
        if not args:
            raise ValueError("Player command must not be empty")
        self.args = args

    async def play(self, audio: bytes) -> None:
        try:
            process = await asyncio.create_subprocess_exec(
                *self.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            raise PlaybackError(f"Could not start {self.args[0]}: {exc}") from exc

        try:
            await process.communicate(audio)
        except asyncio.CancelledError:
            with suppress(ProcessLookupError):
                process.kill()
            raise
        if process.returncode:
            raise PlaybackError(f"{self.args[0]} exited with code {process.returncode}")


class PlaybackQueue:
    """
    FIFO of base64 audio segments played strictly one at a time.

    A single drain task plays the head of the queue and only moves on once
    the player's ``play`` coroutine has returned. Segments that fail to decode
    or play are logged and skipped.
    """

    def __init__(self, player: AudioPlayer):
        self.player = player
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._drain_task: Optional[asyncio.Task] = None
        self._idle = asyncio.Event()
        self._idle.set()
        self.playing = False
        self.played = 0
        self.failed = 0

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def put(self, audio_base64: str) -> None:
        """Queue one segment; starts the drain task if it is not running."""
        if not audio_base64:
            return
        self._idle.clear()
        self._queue.put_nowait(audio_base64)
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = asyncio.create_task(self._drain())

    async def _drain(self) -> None:
        while not self._queue.empty():
            item = self._queue.get_nowait()
            try:
                audio = base64.b64decode(item, validate=True)
            except (binascii.Error, ValueError) as exc:
                self.failed += 1
                logger.error("Discarding undecodable audio segment: %s", exc)
                continue

            self.playing = True
            try:
                await self.player.play(audio)
                self.played += 1
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self.failed += 1
                logger.error("Audio playback failed: %s", exc)
            finally:
                self.playing = False
        self._idle.set()

    async def wait_idle(self, timeout: Optional[float] = None) -> None:
        """Wait until every queued segment has been played (or skipped)."""
        if timeout is None:
            await self._idle.wait()
        else:
            await asyncio.wait_for(self._idle.wait(), timeout)

    def clear(self) -> None:
        """Drop segments that have not started playing yet."""
        dropped = 0
        while not self._queue.empty():
            self._queue.get_nowait()
            dropped += 1
        if dropped:
            logger.info("Dropped %d queued audio segments", dropped)
        if not self.playing:
            self._idle.set()

    async def close(self) -> None:
        """Stop playback immediately, including the segment in progress."""
        self.clear()
        task, self._drain_task = self._drain_task, None
        if task is not None and not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        self.playing = False
        self._idle.set()


__all__ = [
    "AudioPlayer",
    "CommandPlayer",
    "FilePlayer",
    "PlaybackError",
    "PlaybackQueue",
]
