from __future__ import annotations

import json

import httpx
import pytest
from pydantic import SecretStr

from voicechat.config import Settings
from voicechat.services.errors import UpstreamError
from voicechat.services.tts_service import HIGH_QUALITY_FORMAT, STREAMING_FORMAT, TTSService

pytestmark = pytest.mark.anyio


def make_settings(**overrides) -> Settings:
    values = {
        "openai_api_key": SecretStr("sk-test"),
        "elevenlabs_api_key": SecretStr("el-key"),
        "elevenlabs_voice_id": "voice-1",
    }
    values.update(overrides)
    return Settings(**values)


async def test_synthesize_posts_text_and_returns_audio() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=b"mp3-bytes")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        service = TTSService(make_settings(), http_client=http_client)
        audio = await service.synthesize("Hola", HIGH_QUALITY_FORMAT)

    assert audio == b"mp3-bytes"
    request = seen[0]
    assert request.url.path == "/v1/text-to-speech/voice-1"
    assert request.url.params["output_format"] == "mp3_44100_192"
    assert request.headers["xi-api-key"] == "el-key"
    assert json.loads(request.content) == {"text": "Hola", "model_id": "eleven_multilingual_v2"}


async def test_synthesize_error_carries_upstream_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="invalid_api_key")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        service = TTSService(make_settings(), http_client=http_client)
        with pytest.raises(UpstreamError) as excinfo:
            await service.synthesize("Hola")

    assert excinfo.value.status_code == 401
    assert excinfo.value.detail == "invalid_api_key"


async def test_stream_synthesize_yields_chunks() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=b"chunk-one chunk-two")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        service = TTSService(make_settings(), http_client=http_client)
        stream = await service.stream_synthesize("Hola")
        audio = b"".join([chunk async for chunk in stream])

    assert audio == b"chunk-one chunk-two"
    assert seen[0].url.path == "/v1/text-to-speech/voice-1/stream"
    assert seen[0].url.params["output_format"] == STREAMING_FORMAT


async def test_stream_synthesize_rejects_before_streaming() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="server exploded")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        service = TTSService(make_settings(), http_client=http_client)
        with pytest.raises(UpstreamError) as excinfo:
            await service.stream_synthesize("Hola")

    assert excinfo.value.status_code == 500


async def test_stream_synthesize_interrupted_mid_stream_raises() -> None:
    async def body():
        yield b"first-half"
        raise httpx.ReadError("connection reset")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=body())

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        service = TTSService(make_settings(), http_client=http_client)
        stream = await service.stream_synthesize("Hola")
        received: list[bytes] = []
        with pytest.raises(UpstreamError) as excinfo:
            async for chunk in stream:
                received.append(chunk)

    assert received == [b"first-half"]
    assert excinfo.value.status_code == 502
    assert "connection reset" in excinfo.value.detail


async def test_missing_key_raises_without_request() -> None:
    service = TTSService(make_settings(elevenlabs_api_key=None))

    assert not service.available
    with pytest.raises(UpstreamError) as excinfo:
        await service.synthesize("Hola")

    assert excinfo.value.status_code == 503
