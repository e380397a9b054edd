"""Chat API routes."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query
from sse_starlette.sse import EventSourceResponse

from ..bridge import ErrorEvent
from ..dependencies import get_chat_service, get_inverso_client
from ..schemas.chat import ChatRequest, ChatResponse, ErrorResponse
from ..services.chat_service import ChatService
from ..services.errors import UpstreamError
from ..services.inverso_client import InversoClient
from .common import error_response, upstream_error_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


@router.post("/chat", response_model=ChatResponse, responses=_ERROR_RESPONSES)
async def chat(
    payload: ChatRequest,
    chat_service: ChatService = Depends(get_chat_service),
) -> Any:
    """Return a complete answer for one message."""

    if not payload.message:
        return error_response("Message is required", 400)

    try:
        text = await chat_service.complete(payload.message)
    except UpstreamError as exc:
        logger.error("Error calling chat service: %s", exc)
        return upstream_error_response(exc, "Failed to get response")

    return ChatResponse(text=text)


@router.get("/chat/stream", response_model=None, responses=_ERROR_RESPONSES)
async def stream_chat(
    message: str | None = Query(None),
    use_inverso: bool = Query(False, alias="useInverso"),
    chat_service: ChatService = Depends(get_chat_service),
    inverso_client: InversoClient = Depends(get_inverso_client),
) -> Any:
    """Stream ``data: {"text": ...}`` frames from the selected chat backend."""

    if not message:
        return error_response("Message is required", 400)

    try:
        if use_inverso:
            deltas = await inverso_client.open_stream(message)
        else:
            deltas = await chat_service.open_stream(message)
    except UpstreamError as exc:
        backend = "Inverso" if use_inverso else "chat service"
        logger.error("Error opening %s stream: %s", backend, exc)
        if use_inverso:
            return upstream_error_response(exc)
        return upstream_error_response(exc, "Failed to get response")

    async def event_publisher():
        try:
            async for delta in deltas:
                yield delta.to_sse()
        except UpstreamError as exc:
            detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
            yield ErrorEvent(detail).to_sse()
        finally:
            await deltas.aclose()

    return EventSourceResponse(event_publisher(), sep="\n")


__all__ = ["router"]
