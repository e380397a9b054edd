"""Event types flowing out of the protocol bridge."""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from typing import ClassVar, Union


@dataclass(frozen=True)
class TextDelta:
    """One incremental unit of generated text."""

    text: str

    def to_sse(self) -> dict[str, str]:
        """Canonical `data: {"text": ...}` frame."""

        return {"data": json.dumps({"text": self.text})}


@dataclass(frozen=True)
class TextEvent:
    text: str

    name: ClassVar[str] = "text"

    def payload(self) -> dict[str, str]:
        return {"text": self.text}

    def to_sse(self) -> dict[str, str]:
        return {"event": self.name, "data": json.dumps(self.payload())}


@dataclass(frozen=True)
class AudioEvent:
    """Audio for one synthesized segment, base64 encoded on the wire."""

    audio: bytes

    name: ClassVar[str] = "audio"

    @property
    def audio_base64(self) -> str:
        return base64.b64encode(self.audio).decode("ascii")

    def payload(self) -> dict[str, str]:
        return {"audio": self.audio_base64}

    def to_sse(self) -> dict[str, str]:
        return {"event": self.name, "data": json.dumps(self.payload())}


@dataclass(frozen=True)
class CompleteAudioEvent(AudioEvent):
    """Audio for the whole response, sent once after the last segment."""

    name: ClassVar[str] = "complete_audio"


@dataclass(frozen=True)
class EndEvent:
    name: ClassVar[str] = "end"

    def payload(self) -> dict[str, str]:
        return {}

    def to_sse(self) -> dict[str, str]:
        return {"event": self.name, "data": "{}"}


@dataclass(frozen=True)
class ErrorEvent:
    message: str

    name: ClassVar[str] = "error"

    def payload(self) -> dict[str, str]:
        return {"error": self.message}

    def to_sse(self) -> dict[str, str]:
        return {"event": self.name, "data": json.dumps(self.payload())}


SynthesisEvent = Union[TextEvent, AudioEvent, CompleteAudioEvent, EndEvent, ErrorEvent]


__all__ = [
    "AudioEvent",
    "CompleteAudioEvent",
    "EndEvent",
    "ErrorEvent",
    "SynthesisEvent",
    "TextDelta",
    "TextEvent",
]
