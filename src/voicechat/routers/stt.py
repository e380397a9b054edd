from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, UploadFile

from ..dependencies import get_stt_service
from ..schemas.chat import ErrorResponse, TranscriptionResponse
from ..services.errors import UpstreamError
from ..services.stt_service import STTService
from .common import error_response, upstream_error_response

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["stt"])


@router.api_route(
    "/speech-to-text",
    methods=["POST", "GET"],
    response_model=TranscriptionResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def speech_to_text(
    file: Optional[UploadFile] = File(None),
    stt_service: STTService = Depends(get_stt_service),
) -> Any:
    if file is None:
        return error_response("No audio file provided", 400)

    audio = await file.read()
    if not audio:
        return error_response("No audio file provided", 400)

    logger.info(f"Transcription request: {file.filename} ({len(audio)} bytes)")
    try:
        text = await stt_service.transcribe(
            audio,
            filename=file.filename or "recording.webm",
            content_type=file.content_type,
        )
    except UpstreamError as exc:
        logger.error(f"Error transcribing audio: {exc}")
        return upstream_error_response(exc, "Failed to transcribe audio")

    return TranscriptionResponse(text=text)
