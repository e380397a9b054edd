import logging
from typing import AsyncIterator, Optional

import httpx
from fastapi import status

from voicechat.config import Settings
from voicechat.services.errors import UpstreamError, extract_error_detail

logger = logging.getLogger(__name__)

# Output formats used by the different synthesis paths
HIGH_QUALITY_FORMAT = "mp3_44100_192"
STREAMING_FORMAT = "mp3_22050_32"


class TTSService:
    """
    Service for ElevenLabs Text-to-Speech generation.

    Uses a singleton httpx.AsyncClient for connection pooling across requests.

    - synthesize() returns the complete MP3 for a piece of text
    - stream_synthesize() returns an async iterator of MP3 chunks as they
      arrive from ElevenLabs
    """

    # Singleton HTTP client for connection pooling
    _http_client: Optional[httpx.AsyncClient] = None

    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = (
            settings.elevenlabs_api_key.get_secret_value()
            if settings.elevenlabs_api_key else None
        )
        self.voice_id = settings.elevenlabs_voice_id
        self.model_id = settings.elevenlabs_model_id
        self.base_url = f"{str(settings.elevenlabs_base_url).rstrip('/')}/text-to-speech"
        self.timeout = settings.request_timeout
        self._override_client = http_client

        if not self.api_key:
            logger.warning("No ElevenLabs API key configured. TTS will not be available.")

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def get_http_client(cls, timeout: float = 30.0) -> httpx.AsyncClient:
        """Get singleton HTTP client for connection pooling."""
        if cls._http_client is None:
            cls._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(timeout, connect=10.0)
            )
            logger.info("Created singleton httpx.AsyncClient for TTS")
        return cls._http_client

    @classmethod
    async def close_http_client(cls) -> None:
        """Close the singleton HTTP client. Call on app shutdown."""
        if cls._http_client is not None:
            await cls._http_client.aclose()
            cls._http_client = None
            logger.info("Closed TTS HTTP client")

    def _client(self) -> httpx.AsyncClient:
        return self._override_client or self.get_http_client(self.timeout)

    def _request_parts(self, text: str) -> tuple[dict[str, str], dict[str, str]]:
        if not self.api_key:
            raise UpstreamError(
                status.HTTP_503_SERVICE_UNAVAILABLE,
                "ELEVENLABS_API_KEY is not defined in environment variables",
            )
        headers = {
            "xi-api-key": self.api_key,
            "Content-Type": "application/json",
            "Accept": "audio/mpeg",
        }
        payload = {"text": text, "model_id": self.model_id}
        return headers, payload

    async def synthesize(self, text: str, output_format: str = STREAMING_FORMAT) -> bytes:
        """Synthesize ``text`` and return the complete MP3 bytes."""
        headers, payload = self._request_parts(text)
        url = f"{self.base_url}/{self.voice_id}"

        try:
            response = await self._client().post(
                url,
                params={"output_format": output_format},
                headers=headers,
                json=payload,
            )
        except httpx.HTTPError as exc:
            logger.error(f"ElevenLabs TTS request failed: {exc}")
            raise UpstreamError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

        if response.status_code >= 400:
            detail = extract_error_detail(
                response.content, response.reason_phrase or "ElevenLabs error"
            )
            logger.error(f"ElevenLabs TTS error {response.status_code}: {detail}")
            raise UpstreamError(response.status_code, detail)

        audio_data = response.content
        logger.info(f"ElevenLabs TTS synthesized {len(audio_data)} bytes for text: {text[:50]}...")
        return audio_data

    async def stream_synthesize(
        self, text: str, output_format: str = STREAMING_FORMAT
    ) -> AsyncIterator[bytes]:
        """
        Streaming TTS. Opens the ElevenLabs stream before returning so that
        a rejected request raises here, then yields MP3 chunks as they arrive.
        """
        headers, payload = self._request_parts(text)
        url = f"{self.base_url}/{self.voice_id}/stream"

        client = self._client()
        request = client.build_request(
            "POST",
            url,
            params={"output_format": output_format},
            headers=headers,
            json=payload,
        )
        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as exc:
            logger.error(f"ElevenLabs streaming request failed: {exc}")
            raise UpstreamError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

        if response.status_code >= 400:
            body = await response.aread()
            await response.aclose()
            detail = extract_error_detail(body, response.reason_phrase or "ElevenLabs error")
            logger.error(f"ElevenLabs streaming TTS error {response.status_code}: {detail}")
            raise UpstreamError(response.status_code, detail)

        async def _stream():
            total = 0
            try:
                async for chunk in response.aiter_bytes():
                    if chunk:
                        total += len(chunk)
                        yield chunk
            except httpx.HTTPError as exc:
                logger.error(f"ElevenLabs streaming TTS interrupted: {exc}")
                raise UpstreamError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc
            finally:
                await response.aclose()
                logger.debug(f"ElevenLabs stream finished after {total} bytes")

        return _stream()


__all__ = ["HIGH_QUALITY_FORMAT", "STREAMING_FORMAT", "TTSService"]
