"""FastAPI dependencies resolving the services stored on ``app.state``."""

from __future__ import annotations

from fastapi import Request

from .services.chat_service import ChatService
from .services.inverso_client import InversoClient
from .services.stt_service import STTService
from .services.tts_service import TTSService


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def get_inverso_client(request: Request) -> InversoClient:
    return request.app.state.inverso_client


def get_tts_service(request: Request) -> TTSService:
    return request.app.state.tts_service


def get_stt_service(request: Request) -> STTService:
    return request.app.state.stt_service


__all__ = [
    "get_chat_service",
    "get_inverso_client",
    "get_stt_service",
    "get_tts_service",
]
