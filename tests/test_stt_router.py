from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.testclient import TestClient

from voicechat.dependencies import get_stt_service
from voicechat.routers.stt import router
from voicechat.services.errors import UpstreamError


class DummySTTService:
    def __init__(self, text: str = "hola mundo", error: Optional[UpstreamError] = None):
        self.text = text
        self.error = error
        self.uploads: list[tuple[bytes, str, Optional[str]]] = []

    async def transcribe(
        self,
        audio: bytes,
        filename: str = "recording.webm",
        content_type: Optional[str] = None,
    ) -> str:
        self.uploads.append((audio, filename, content_type))
        if self.error:
            raise self.error
        return self.text


def make_client(service: DummySTTService) -> TestClient:
    app = FastAPI()
    app.dependency_overrides[get_stt_service] = lambda: service
    app.include_router(router)
    return TestClient(app)


def test_transcribes_uploaded_file() -> None:
    service = DummySTTService()
    client = make_client(service)

    response = client.post(
        "/api/speech-to-text",
        files={"file": ("recording.webm", b"webm-bytes", "audio/webm")},
    )

    assert response.status_code == 200
    assert response.json() == {"text": "hola mundo"}
    assert service.uploads == [(b"webm-bytes", "recording.webm", "audio/webm")]


def test_missing_file_is_400() -> None:
    client = make_client(DummySTTService())

    response = client.post("/api/speech-to-text")

    assert response.status_code == 400
    assert response.json() == {"error": "No audio file provided"}


def test_get_without_file_is_400() -> None:
    client = make_client(DummySTTService())

    response = client.get("/api/speech-to-text")

    assert response.status_code == 400


def test_transcription_failure_is_500() -> None:
    client = make_client(DummySTTService(error=UpstreamError(400, "Invalid file format")))

    response = client.post(
        "/api/speech-to-text",
        files={"file": ("clip.txt", b"not audio", "text/plain")},
    )

    assert response.status_code == 500
    error = response.json()["error"]
    assert error.startswith("Failed to transcribe audio")
    assert "Invalid file format" in error
