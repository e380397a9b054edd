"""Pydantic models for the chat and speech routes."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    """Body of ``POST /api/chat``."""

    message: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class ChatResponse(BaseModel):
    text: str


class SpeechRequest(BaseModel):
    """Body of the ``/api/speech`` routes."""

    text: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class TranscriptionResponse(BaseModel):
    text: str


class ErrorResponse(BaseModel):
    error: str


class SynthesisConfig(BaseModel):
    """Credentials a client needs to open its own synthesis socket."""

    api_key: str = Field(serialization_alias="apiKey")
    voice_id: str = Field(serialization_alias="voiceId")
    inverso_api_key: str = Field(default="", serialization_alias="inversoApiKey")
    chunk_threshold: int = Field(serialization_alias="chunkThreshold")


class WebSocketTTSResponse(BaseModel):
    """Complete chat answer plus what the client needs to voice it itself."""

    text: str
    api_key: str = Field(serialization_alias="apiKey")
    voice_id: str = Field(serialization_alias="voiceId")


__all__ = [
    "ChatRequest",
    "ChatResponse",
    "ErrorResponse",
    "SpeechRequest",
    "SynthesisConfig",
    "TranscriptionResponse",
    "WebSocketTTSResponse",
]
