"""
Terminal voice client.

- duplex: state-machine wrapper around the ElevenLabs ``stream-input`` socket
- playback: strictly sequential playback of received audio segments
- session: one spoken answer, tying chunker, channel and playback together
- cli: the ``voice-chat`` console script

Architecture Overview:

    ┌──────────────────┐     ┌─────────────┐     ┌────────────────────────┐
    │ /api/chat/stream │────▶│ TextChunker │────▶│ DuplexSynthesisChannel │
    └──────────────────┘     └─────────────┘     └────────────────────────┘
                                                             │ {audio, isFinal}
                                                             ▼
                                                    ┌───────────────┐
                                                    │ PlaybackQueue │──▶ player
                                                    └───────────────┘
"""

from .duplex import (
    AudioMessage,
    ChannelConnectionError,
    ChannelError,
    ChannelState,
    ChannelStateError,
    DuplexSynthesisChannel,
)
from .playback import CommandPlayer, FilePlayer, PlaybackError, PlaybackQueue
from .session import VoiceSession

__all__ = [
    "AudioMessage",
    "ChannelConnectionError",
    "ChannelError",
    "ChannelState",
    "ChannelStateError",
    "CommandPlayer",
    "DuplexSynthesisChannel",
    "FilePlayer",
    "PlaybackError",
    "PlaybackQueue",
    "VoiceSession",
]
