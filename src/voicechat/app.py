"""Application factory for the FastAPI service."""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .routers.chat import router as chat_router
from .routers.speech import router as speech_router
from .routers.stt import router as stt_router
from .services.chat_service import ChatService, build_openai_client
from .services.inverso_client import InversoClient
from .services.stt_service import STTService
from .services.tts_service import TTSService


def _configure_logging() -> None:
    """Configure logging based on LOG_LEVEL environment variable."""
    # Load .env file first to ensure LOG_FILE is available
    load_dotenv()

    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handlers: list[logging.Handler] = []

    log_file = os.getenv("LOG_FILE")
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    logging.getLogger("voicechat").setLevel(log_level)
    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        logging.getLogger(name).setLevel(log_level)

    # httpx logs every request line at INFO
    if log_level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
    else:
        logging.getLogger("httpx").setLevel(log_level)
        logging.getLogger("httpcore").setLevel(log_level)


def create_app() -> FastAPI:
    # Configure logging first thing
    _configure_logging()

    settings = get_settings()

    openai_client = build_openai_client(settings)
    chat_service = ChatService(settings, client=openai_client)
    inverso_client = InversoClient(settings)
    tts_service = TTSService(settings)
    stt_service = STTService(settings, client=openai_client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            yield
        finally:
            # Add timeout to prevent hanging during shutdown (especially in tests)
            try:
                await asyncio.wait_for(
                    asyncio.gather(
                        TTSService.close_http_client(),
                        InversoClient.aclose_shared(),
                        openai_client.close(),
                    ),
                    timeout=10.0,
                )
            except asyncio.TimeoutError:
                logging.warning("Client shutdown timed out after 10s")
            except Exception as exc:
                logging.warning("Error during client shutdown: %s", exc)

    app = FastAPI(
        title="Voice Chat Gateway",
        version="0.1.0",
        description="Chat, speech synthesis and transcription behind one API.",
        lifespan=lifespan,
    )

    app.state.chat_service = chat_service
    app.state.inverso_client = inverso_client
    app.state.tts_service = tts_service
    app.state.stt_service = stt_service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return JSONResponse({"error": message}, status_code=400)

    app.include_router(chat_router)
    app.include_router(speech_router)
    app.include_router(stt_router)

    @app.get("/health", tags=["health"])
    async def healthcheck() -> dict[str, str | bool]:
        return {
            "status": "ok",
            "chat_model": settings.chat_model,
            "inverso_configured": settings.inverso_configured,
        }

    return app


__all__ = ["create_app"]
