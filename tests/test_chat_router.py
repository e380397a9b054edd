from __future__ import annotations

import json
from typing import Any, Optional

from fastapi import FastAPI
from fastapi.testclient import TestClient

from voicechat.bridge import TextDelta
from voicechat.dependencies import get_chat_service, get_inverso_client
from voicechat.routers.chat import router
from voicechat.services.errors import UpstreamError


def parse_sse(body: str) -> list[dict[str, Any]]:
    events = []
    for block in body.replace("\r\n", "\n").split("\n\n"):
        event: dict[str, Any] = {}
        for line in block.splitlines():
            if line.startswith("event:"):
                event["event"] = line[6:].strip()
            elif line.startswith("data:"):
                event["data"] = json.loads(line[5:].strip())
        if event:
            events.append(event)
    return events


class DummyChatService:
    def __init__(
        self,
        reply: str = "Hello!",
        deltas: Optional[list[str]] = None,
        error: Optional[UpstreamError] = None,
        stream_error: Optional[UpstreamError] = None,
    ) -> None:
        self.reply = reply
        self.deltas = deltas or []
        self.error = error
        self.stream_error = stream_error
        self.messages: list[str] = []
        self.stream_closed = False

    async def complete(self, message: str, *, system_prompt: Optional[str] = None) -> str:
        self.messages.append(message)
        if self.error:
            raise self.error
        return self.reply

    async def open_stream(self, message: str, *, system_prompt: Optional[str] = None):
        self.messages.append(message)
        if self.error:
            raise self.error
        return self._stream()

    async def _stream(self):
        try:
            for text in self.deltas:
                yield TextDelta(text)
            if self.stream_error:
                raise self.stream_error
        finally:
            self.stream_closed = True


class DummyInversoClient:
    def __init__(self, deltas: Optional[list[str]] = None, error: Optional[UpstreamError] = None):
        self.deltas = deltas or []
        self.error = error
        self.messages: list[str] = []

    async def open_stream(self, message: str):
        self.messages.append(message)
        if self.error:
            raise self.error
        return self._stream()

    async def _stream(self):
        for text in self.deltas:
            yield TextDelta(text)


def make_client(
    chat_service: DummyChatService,
    inverso_client: Optional[DummyInversoClient] = None,
) -> TestClient:
    app = FastAPI()
    app.dependency_overrides[get_chat_service] = lambda: chat_service
    app.dependency_overrides[get_inverso_client] = lambda: inverso_client or DummyInversoClient()
    app.include_router(router)
    return TestClient(app)


def test_chat_returns_text() -> None:
    service = DummyChatService(reply="Hi there")
    client = make_client(service)

    response = client.post("/api/chat", json={"message": "Hello"})

    assert response.status_code == 200
    assert response.json() == {"text": "Hi there"}
    assert service.messages == ["Hello"]


def test_chat_requires_message() -> None:
    client = make_client(DummyChatService())

    response = client.post("/api/chat", json={})

    assert response.status_code == 400
    assert response.json() == {"error": "Message is required"}


def test_chat_upstream_failure_is_500() -> None:
    client = make_client(DummyChatService(error=UpstreamError(429, "Rate limit exceeded")))

    response = client.post("/api/chat", json={"message": "Hello"})

    assert response.status_code == 500
    error = response.json()["error"]
    assert error.startswith("Failed to get response")
    assert "429" in error
    assert "Rate limit exceeded" in error


def test_stream_emits_canonical_frames() -> None:
    service = DummyChatService(deltas=["Hel", "lo"])
    client = make_client(service)

    response = client.get("/api/chat/stream", params={"message": "Hi"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    events = parse_sse(response.text)
    assert events == [{"data": {"text": "Hel"}}, {"data": {"text": "lo"}}]
    assert service.stream_closed


def test_stream_requires_message() -> None:
    client = make_client(DummyChatService())

    response = client.get("/api/chat/stream")

    assert response.status_code == 400
    assert response.json() == {"error": "Message is required"}


def test_stream_uses_inverso_when_requested() -> None:
    chat = DummyChatService(deltas=["wrong"])
    inverso = DummyInversoClient(deltas=["hi", " there"])
    client = make_client(chat, inverso)

    response = client.get("/api/chat/stream", params={"message": "Hi", "useInverso": "true"})

    assert response.status_code == 200
    assert [event["data"]["text"] for event in parse_sse(response.text)] == ["hi", " there"]
    assert inverso.messages == ["Hi"]
    assert chat.messages == []


def test_inverso_error_status_surfaces_as_500() -> None:
    inverso = DummyInversoClient(error=UpstreamError(401, "Inverso API error: Unauthorized"))
    client = make_client(DummyChatService(), inverso)

    response = client.get("/api/chat/stream", params={"message": "Hi", "useInverso": "true"})

    assert response.status_code == 500
    assert response.json() == {"error": "Inverso API error: Unauthorized"}


def test_unconfigured_inverso_is_500() -> None:
    inverso = DummyInversoClient(
        error=UpstreamError(503, "INVERSO_API_KEY is not defined in environment variables")
    )
    client = make_client(DummyChatService(), inverso)

    response = client.get("/api/chat/stream", params={"message": "Hi", "useInverso": "true"})

    assert response.status_code == 500
    assert "INVERSO_API_KEY" in response.json()["error"]


def test_mid_stream_failure_ends_with_error_event() -> None:
    service = DummyChatService(deltas=["partial"], stream_error=UpstreamError(502, "reset"))
    client = make_client(service)

    response = client.get("/api/chat/stream", params={"message": "Hi"})

    events = parse_sse(response.text)
    assert events[0] == {"data": {"text": "partial"}}
    assert events[-1] == {"event": "error", "data": {"error": "reset"}}
    assert service.stream_closed
