"""Tests for the per-answer voice session."""

from __future__ import annotations

import asyncio
import base64
import json
from typing import Any, Optional

import pytest
from websockets.exceptions import ConnectionClosedOK

from voicechat.voice_client.duplex import ChannelState, DuplexSynthesisChannel
from voicechat.voice_client.playback import PlaybackQueue
from voicechat.voice_client.session import VoiceSession

pytestmark = pytest.mark.anyio


class EchoSocket:
    """Answers every flushed text with one audio message; ``{"text": ""}`` ends it."""

    def __init__(self, send_final: bool = True) -> None:
        self.sent: list[dict[str, Any]] = []
        self.incoming: asyncio.Queue[Optional[str]] = asyncio.Queue()
        self.send_final = send_final
        self.closed = False
        self._pending = ""

    async def send(self, message: str) -> None:
        payload = json.loads(message)
        self.sent.append(payload)
        if "xi_api_key" in payload:
            return
        if payload["text"] == "":
            if self.send_final:
                self.incoming.put_nowait(json.dumps({"audio": None, "isFinal": True}))
            return
        self._pending += payload["text"]
        if self._pending.strip() and (payload.get("flush") or len(self._pending) > 10):
            audio = base64.b64encode(self._pending.encode()).decode()
            self.incoming.put_nowait(json.dumps({"audio": audio}))
            self._pending = ""

    async def recv(self) -> str:
        message = await self.incoming.get()
        if message is None:
            raise ConnectionClosedOK(None, None)
        return message

    async def close(self) -> None:
        self.closed = True
        self.incoming.put_nowait(None)


class RecordingPlayer:
    def __init__(self) -> None:
        self.played: list[bytes] = []

    async def play(self, audio: bytes) -> None:
        await asyncio.sleep(0)
        self.played.append(audio)


def make_session(socket: EchoSocket, player: RecordingPlayer, **kwargs: Any) -> VoiceSession:
    async def connector(url: str) -> EchoSocket:
        return socket

    channel = DuplexSynthesisChannel("el-key", "voice-1", connector=connector)
    return VoiceSession(channel, PlaybackQueue(player), **kwargs)


async def test_session_speaks_whole_answer_in_order() -> None:
    socket = EchoSocket()
    player = RecordingPlayer()
    session = make_session(socket, player, threshold=50)

    await session.start()
    try:
        for text in ["Hello there. ", "How are", " you", " today?"]:
            await session.on_delta(text)
        await session.finish()
    finally:
        await session.close()

    text_messages = [message for message in socket.sent[1:] if message.get("text")]
    assert text_messages == [
        {"text": "Hello there. ", "flush": False},
        {"text": "How are you today?", "flush": False},
        {"text": " ", "flush": True},
    ]
    assert socket.sent[-1] == {"text": ""}
    assert b"".join(player.played) == b"Hello there. How are you today?"
    assert session.response_text == "Hello there. How are you today?"
    assert session.channel.state is ChannelState.CLOSED


async def test_finish_flushes_remainder() -> None:
    socket = EchoSocket()
    player = RecordingPlayer()
    session = make_session(socket, player, threshold=50)

    await session.start()
    try:
        await session.on_delta("no punctuation yet")
        await session.finish()
    finally:
        await session.close()

    assert {"text": "no punctuation yet", "flush": True} in socket.sent
    assert {"text": " ", "flush": True} not in socket.sent
    assert player.played == [b"no punctuation yet"]
    assert session.segments_sent == 1


async def test_finish_times_out_without_final_message() -> None:
    socket = EchoSocket(send_final=False)
    player = RecordingPlayer()
    session = make_session(socket, player, final_timeout=0.05)

    await session.start()
    try:
        await session.on_delta("Short.")
        await asyncio.wait_for(session.finish(), 1.0)
    finally:
        await session.close()

    assert player.played == [b"Short. "]
    assert socket.closed


async def test_close_always_closes_channel() -> None:
    socket = EchoSocket()
    session = make_session(socket, RecordingPlayer())

    await session.start()
    await session.on_delta("abandoned")
    await session.close()
    await session.close()

    assert socket.closed
    assert session.channel.state is ChannelState.CLOSED
