"""
Client-held duplex synthesis channel to the ElevenLabs ``stream-input`` socket.

Lifecycle:

    CLOSED ─▶ CONNECTING ─▶ OPEN ◀─▶ STREAMING ─▶ CLOSING ─▶ CLOSED
                  │            │          │
                  └────────────┴──────────┴──▶ CLOSED  (connection error)

The channel never reconnects on its own; after a failure the caller builds
a new one.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from contextlib import suppress
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..config import DEFAULT_VOICE_ID

logger = logging.getLogger(__name__)

DEFAULT_SOCKET_BASE_URL = "wss://api.elevenlabs.io/v1"
DEFAULT_MODEL_ID = "eleven_multilingual_v2"

VOICE_SETTINGS = {"stability": 0.5, "similarity_boost": 0.75}
CHUNK_LENGTH_SCHEDULE = [50, 100, 150, 200]

Connector = Callable[[str], Awaitable[Any]]


class ChannelState(str, Enum):
    CLOSED = "closed"
    CONNECTING = "connecting"
    OPEN = "open"
    STREAMING = "streaming"
    CLOSING = "closing"


_TRANSITIONS: dict[ChannelState, frozenset[ChannelState]] = {
    ChannelState.CLOSED: frozenset({ChannelState.CONNECTING}),
    ChannelState.CONNECTING: frozenset({ChannelState.OPEN, ChannelState.CLOSED}),
    ChannelState.OPEN: frozenset(
        {ChannelState.STREAMING, ChannelState.CLOSING, ChannelState.CLOSED}
    ),
    ChannelState.STREAMING: frozenset(
        {ChannelState.OPEN, ChannelState.CLOSING, ChannelState.CLOSED}
    ),
    ChannelState.CLOSING: frozenset({ChannelState.CLOSED}),
}


class ChannelError(RuntimeError):
    """Base class for duplex channel failures."""


class ChannelStateError(ChannelError):
    """Raised when an operation is not allowed in the channel's current state."""

    def __init__(self, current: ChannelState, target: str):
        super().__init__(f"Cannot {target} while channel is {current.value}")
        self.current = current
        self.target = target


class ChannelConnectionError(ChannelError):
    """Raised when the socket cannot be opened or drops mid-conversation."""


@dataclass(frozen=True)
class AudioMessage:
    """One ``{audio, isFinal}`` message received from the synthesis socket."""

    audio: str
    is_final: bool = False

    def decode(self) -> bytes:
        return base64.b64decode(self.audio) if self.audio else b""


class DuplexSynthesisChannel:
    """Send text in and read base64 MP3 segments out over one socket."""

    def __init__(
        self,
        api_key: str,
        voice_id: str = DEFAULT_VOICE_ID,
        *,
        model_id: str = DEFAULT_MODEL_ID,
        base_url: str = DEFAULT_SOCKET_BASE_URL,
        connector: Optional[Connector] = None,
        open_timeout: float = 10.0,
    ):
        if not api_key:
            raise ValueError("api_key is required")
        self.api_key = api_key
        self.voice_id = voice_id
        self.model_id = model_id
        self.base_url = base_url.rstrip("/")
        self.open_timeout = open_timeout
        self._connector: Connector = connector or websockets.connect
        self._socket: Any = None
        self._state = ChannelState.CLOSED

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def url(self) -> str:
        return (
            f"{self.base_url}/text-to-speech/{self.voice_id}/stream-input"
            f"?model_id={self.model_id}"
        )

    def _transition(self, target: ChannelState) -> None:
        if target not in _TRANSITIONS[self._state]:
            raise ChannelStateError(self._state, f"move to {target.value}")
        logger.debug("Channel %s -> %s", self._state.value, target.value)
        self._state = target

    def _drop(self) -> None:
        """Connection-level failure: go straight to CLOSED."""
        self._state = ChannelState.CLOSED
        self._socket = None

    def _init_message(self) -> dict[str, Any]:
        return {
            "text": " ",
            "voice_settings": dict(VOICE_SETTINGS),
            "xi_api_key": self.api_key,
            "generation_config": {"chunk_length_schedule": list(CHUNK_LENGTH_SCHEDULE)},
        }

    async def connect(self) -> None:
        """Open the socket and send the one-time initialization message."""
        self._transition(ChannelState.CONNECTING)
        try:
            socket = await asyncio.wait_for(self._connector(self.url), self.open_timeout)
            await socket.send(json.dumps(self._init_message()))
        except (OSError, WebSocketException, asyncio.TimeoutError) as exc:
            self._drop()
            logger.error("Synthesis socket connection failed: %s", exc)
            raise ChannelConnectionError(f"Could not open synthesis socket: {exc}") from exc

        if self._state is not ChannelState.CONNECTING:
            # close() was called while the handshake was in flight
            with suppress(WebSocketException, OSError):
                await socket.close()
            raise ChannelStateError(self._state, "finish connecting")

        self._socket = socket
        self._transition(ChannelState.OPEN)
        logger.info("Synthesis socket open for voice %s", self.voice_id)

    async def send_text(self, text: str, flush: bool = False) -> None:
        """Send one ``{text, flush}`` control message."""
        if self._state not in (ChannelState.OPEN, ChannelState.STREAMING):
            raise ChannelStateError(self._state, "send text")

        try:
            await self._socket.send(json.dumps({"text": text, "flush": flush}))
        except (ConnectionClosed, OSError) as exc:
            self._drop()
            raise ChannelConnectionError(f"Synthesis socket closed: {exc}") from exc

        if self._state is ChannelState.OPEN:
            self._transition(ChannelState.STREAMING)

    async def end_input(self) -> None:
        """Tell the service no more text follows; it answers with ``isFinal``."""
        if self._state not in (ChannelState.OPEN, ChannelState.STREAMING):
            raise ChannelStateError(self._state, "end input")

        try:
            await self._socket.send(json.dumps({"text": ""}))
        except (ConnectionClosed, OSError) as exc:
            self._drop()
            raise ChannelConnectionError(f"Synthesis socket closed: {exc}") from exc

    async def audio_messages(self) -> AsyncIterator[AudioMessage]:
        """
        Yield audio messages in receipt order until ``isFinal`` arrives or the
        socket closes. Messages that are not valid JSON are logged and skipped.
        """
        if self._state not in (ChannelState.OPEN, ChannelState.STREAMING):
            raise ChannelStateError(self._state, "receive audio")

        socket = self._socket
        while True:
            try:
                raw = await socket.recv()
            except ConnectionClosed as exc:
                if self._state is not ChannelState.CLOSING:
                    logger.info("Synthesis socket closed by peer: %s", exc)
                    self._drop()
                return

            try:
                data = json.loads(raw)
            except (TypeError, ValueError):
                logger.warning("Discarding non-JSON synthesis message: %r", raw[:100])
                continue
            if not isinstance(data, dict):
                continue

            audio = data.get("audio") or ""
            is_final = bool(data.get("isFinal"))
            if audio or is_final:
                yield AudioMessage(audio=audio, is_final=is_final)

            if is_final:
                if self._state is ChannelState.STREAMING:
                    self._transition(ChannelState.OPEN)
                return

    async def close(self) -> None:
        """Close the socket. Safe to call in any state, any number of times."""
        if self._state in (ChannelState.CLOSED, ChannelState.CLOSING):
            return
        if self._state is ChannelState.CONNECTING:
            self._drop()
            return

        self._transition(ChannelState.CLOSING)
        socket, self._socket = self._socket, None
        try:
            if socket is not None:
                await socket.close()
        except (WebSocketException, OSError) as exc:
            logger.debug("Error closing synthesis socket: %s", exc)
        finally:
            self._state = ChannelState.CLOSED
        logger.info("Synthesis socket closed")


__all__ = [
    "AudioMessage",
    "ChannelConnectionError",
    "ChannelError",
    "ChannelState",
    "ChannelStateError",
    "DuplexSynthesisChannel",
]
