"""Speech synthesis routes: whole, streamed, and chained behind chat."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response, StreamingResponse
from sse_starlette.sse import EventSourceResponse

from ..bridge import ErrorEvent
from ..config import Settings, get_settings
from ..dependencies import get_chat_service, get_tts_service
from ..schemas.chat import (
    ErrorResponse,
    SpeechRequest,
    SynthesisConfig,
    WebSocketTTSResponse,
)
from ..services.chat_service import ChatService
from ..services.errors import UpstreamError
from ..services.tts import RealtimeSpeechPipeline
from ..services.tts.tts_processor import STREAM_ERROR_MESSAGE
from ..services.tts_service import HIGH_QUALITY_FORMAT, STREAMING_FORMAT, TTSService
from .common import error_response, upstream_error_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["speech"])

_AUDIO_RESPONSE: dict[int | str, dict[str, Any]] = {
    200: {"content": {"audio/mpeg": {}}},
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}

_MISSING_KEY = "ELEVENLABS_API_KEY is not defined in environment variables"


@router.post("/speech", response_class=Response, responses=_AUDIO_RESPONSE)
async def synthesize_speech(
    payload: SpeechRequest,
    tts_service: TTSService = Depends(get_tts_service),
) -> Any:
    """Return the full MP3 rendering of ``text``."""

    if not payload.text:
        return error_response("Text is required", 400)

    try:
        audio = await tts_service.synthesize(payload.text, HIGH_QUALITY_FORMAT)
    except UpstreamError as exc:
        logger.error("Error generating speech: %s", exc)
        return upstream_error_response(exc, "Failed to generate speech")

    return Response(content=audio, media_type="audio/mpeg")


@router.post("/speech/stream", response_class=StreamingResponse, responses=_AUDIO_RESPONSE)
async def stream_speech(
    payload: SpeechRequest,
    tts_service: TTSService = Depends(get_tts_service),
) -> Any:
    """Stream MP3 audio for ``text`` as ElevenLabs produces it."""

    if not payload.text:
        return error_response("Text is required", 400)

    try:
        audio_stream = await tts_service.stream_synthesize(payload.text, STREAMING_FORMAT)
    except UpstreamError as exc:
        logger.error("Error streaming speech: %s", exc)
        return upstream_error_response(exc, "Failed to generate speech stream")

    return StreamingResponse(audio_stream, media_type="audio/mpeg")


@router.get("/tts-stream", response_class=StreamingResponse, responses=_AUDIO_RESPONSE)
async def chat_then_stream_speech(
    message: str | None = Query(None),
    settings: Settings = Depends(get_settings),
    chat_service: ChatService = Depends(get_chat_service),
    tts_service: TTSService = Depends(get_tts_service),
) -> Any:
    """Answer ``message`` in full, then stream the spoken answer."""

    if not message:
        return error_response("Message is required", 400)

    try:
        text = await chat_service.complete(
            message, system_prompt=settings.speech_system_prompt
        )
        audio_stream = await tts_service.stream_synthesize(text, STREAMING_FORMAT)
    except UpstreamError as exc:
        logger.error("Error processing tts-stream request: %s", exc)
        return upstream_error_response(exc, "Failed to process request")

    return StreamingResponse(audio_stream, media_type="audio/mpeg")


@router.get(
    "/websocket-tts",
    response_model=WebSocketTTSResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def chat_for_client_synthesis(
    message: str | None = Query(None),
    settings: Settings = Depends(get_settings),
    chat_service: ChatService = Depends(get_chat_service),
) -> Any:
    """
    Answer ``message`` and hand back synthesis credentials so the client can
    voice the answer over its own socket to ElevenLabs.
    """

    if not message:
        return error_response("Message is required", 400)
    if not settings.elevenlabs_api_key:
        return error_response(_MISSING_KEY, 500)

    try:
        text = await chat_service.complete(
            message, system_prompt=settings.speech_system_prompt
        )
    except UpstreamError as exc:
        logger.error("Error processing websocket-tts request: %s", exc)
        return upstream_error_response(exc, "Failed to process request")

    return WebSocketTTSResponse(
        text=text,
        api_key=settings.elevenlabs_api_key.get_secret_value(),
        voice_id=settings.elevenlabs_voice_id,
    )


@router.get(
    "/realtime-tts",
    response_model=None,
    responses={400: {"model": ErrorResponse}},
)
@router.get("/real-time-tts", response_model=None, include_in_schema=False)
async def realtime_tts(
    message: str | None = Query(None),
    settings: Settings = Depends(get_settings),
    chat_service: ChatService = Depends(get_chat_service),
    tts_service: TTSService = Depends(get_tts_service),
) -> Any:
    """
    Stream the answer to ``message`` as named SSE events: ``text`` per delta,
    ``audio`` per synthesized segment, ``complete_audio`` for the whole
    answer, then ``end`` (or a single ``error``).
    """

    if not message:
        return error_response("Message is required", 400)

    pipeline = RealtimeSpeechPipeline(
        tts_service, threshold=settings.realtime_chunk_threshold
    )

    async def event_publisher():
        try:
            deltas = await chat_service.open_stream(
                message, system_prompt=settings.speech_system_prompt
            )
        except UpstreamError as exc:
            logger.error("Error opening realtime chat stream: %s", exc)
            yield ErrorEvent(STREAM_ERROR_MESSAGE).to_sse()
            return

        async for event in pipeline.run(deltas):
            yield event.to_sse()

    return EventSourceResponse(event_publisher(), sep="\n")


@router.get(
    "/elevenlabs-config",
    response_model=SynthesisConfig,
    responses={500: {"model": ErrorResponse}},
)
async def synthesis_config(settings: Settings = Depends(get_settings)) -> Any:
    """Expose synthesis credentials and voice to clients holding their own socket."""

    if not settings.elevenlabs_api_key or not settings.elevenlabs_api_key.get_secret_value():
        return error_response(_MISSING_KEY, 500)

    inverso_key = (
        settings.inverso_api_key.get_secret_value() if settings.inverso_api_key else ""
    )
    return SynthesisConfig(
        api_key=settings.elevenlabs_api_key.get_secret_value(),
        voice_id=settings.elevenlabs_voice_id,
        inverso_api_key=inverso_key,
        chunk_threshold=settings.websocket_chunk_threshold,
    )


__all__ = ["router"]
