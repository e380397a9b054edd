"""Whisper transcription through the OpenAI API."""

from __future__ import annotations

import logging
from typing import Optional

import openai

from ..config import Settings
from .chat_service import build_openai_client, wrap_openai_error

logger = logging.getLogger(__name__)


class STTService:
    """Transcribe a recorded audio file into text."""

    def __init__(
        self,
        settings: Settings,
        client: Optional[openai.AsyncOpenAI] = None,
    ):
        self._model = settings.transcription_model
        self._language = settings.transcription_language or None
        self._client = client or build_openai_client(settings)

    async def transcribe(
        self,
        audio: bytes,
        filename: str = "recording.webm",
        content_type: Optional[str] = None,
    ) -> str:
        if content_type:
            upload = (filename, audio, content_type)
        else:
            upload = (filename, audio)

        kwargs = {"file": upload, "model": self._model}
        if self._language:
            kwargs["language"] = self._language

        try:
            transcription = await self._client.audio.transcriptions.create(**kwargs)
        except openai.OpenAIError as exc:
            logger.error(f"Transcription failed for {filename}: {exc}")
            raise wrap_openai_error(exc) from exc

        text = getattr(transcription, "text", "") or ""
        logger.info(f"Transcribed {len(audio)} bytes into {len(text)} chars")
        return text


__all__ = ["STTService"]
