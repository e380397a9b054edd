"""Chat completions against the primary (OpenAI) backend."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Optional

import openai
from fastapi import status

from ..bridge import TextDelta, iter_openai_deltas
from ..config import Settings
from .errors import UpstreamError

logger = logging.getLogger(__name__)


def wrap_openai_error(exc: openai.OpenAIError) -> UpstreamError:
    if isinstance(exc, openai.APIStatusError):
        return UpstreamError(exc.status_code, exc.message)
    if isinstance(exc, openai.APITimeoutError):
        return UpstreamError(status.HTTP_504_GATEWAY_TIMEOUT, str(exc))
    return UpstreamError(status.HTTP_502_BAD_GATEWAY, str(exc))


def build_openai_client(settings: Settings) -> openai.AsyncOpenAI:
    """Create an OpenAI client; the app factory hands one to both chat and transcription."""

    kwargs: dict[str, Any] = {
        "api_key": settings.openai_api_key.get_secret_value(),
        "timeout": settings.request_timeout,
        "max_retries": 0,
    }
    if settings.openai_base_url:
        kwargs["base_url"] = str(settings.openai_base_url)
    return openai.AsyncOpenAI(**kwargs)


class ChatService:
    """Send one user message to the chat model, whole or streamed."""

    def __init__(
        self,
        settings: Settings,
        client: Optional[openai.AsyncOpenAI] = None,
    ):
        self._settings = settings
        self._client = client or build_openai_client(settings)

    def _messages(self, message: str, system_prompt: Optional[str]) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": system_prompt or self._settings.system_prompt},
            {"role": "user", "content": message},
        ]

    async def complete(self, message: str, *, system_prompt: Optional[str] = None) -> str:
        """Return the full assistant reply for ``message``."""

        try:
            response = await self._client.chat.completions.create(
                model=self._settings.chat_model,
                messages=self._messages(message, system_prompt),
                stream=False,
            )
        except openai.OpenAIError as exc:
            logger.error("Chat completion failed: %s", exc)
            raise wrap_openai_error(exc) from exc

        if not response.choices:
            raise UpstreamError(
                status.HTTP_502_BAD_GATEWAY, "Chat response missing choices"
            )
        text = response.choices[0].message.content or ""
        logger.info("Chat completion returned %d chars", len(text))
        return text

    async def open_stream(
        self, message: str, *, system_prompt: Optional[str] = None
    ) -> AsyncIterator[TextDelta]:
        """
        Start a streamed completion and return its text deltas.

        The request is issued before this coroutine returns, so an upstream
        rejection surfaces as :class:`UpstreamError` before any event is sent.
        """

        try:
            stream = await self._client.chat.completions.create(
                model=self._settings.chat_model,
                messages=self._messages(message, system_prompt),
                stream=True,
            )
        except openai.OpenAIError as exc:
            logger.error("Chat stream request failed: %s", exc)
            raise wrap_openai_error(exc) from exc

        return self._deltas(stream)

    async def _deltas(self, stream: Any) -> AsyncIterator[TextDelta]:
        try:
            async for delta in iter_openai_deltas(stream):
                yield delta
        except openai.OpenAIError as exc:
            logger.error("Chat stream interrupted: %s", exc)
            raise wrap_openai_error(exc) from exc
        finally:
            await stream.close()


__all__ = ["ChatService", "build_openai_client", "wrap_openai_error"]
