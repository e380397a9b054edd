from __future__ import annotations

import pytest
from pydantic import SecretStr, ValidationError

from voicechat.config import DEFAULT_VOICE_ID, Settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "OPENAI_API_KEY",
        "ELEVENLABS_VOICE_ID",
        "INVERSO_API_KEY",
        "INVERSO_BASE_URL",
        "REALTIME_CHUNK_THRESHOLD",
        "WEBSOCKET_CHUNK_THRESHOLD",
        "REQUEST_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    settings = Settings(openai_api_key=SecretStr("sk-test"))

    assert settings.chat_model == "gpt-3.5-turbo"
    assert settings.transcription_model == "whisper-1"
    assert settings.elevenlabs_voice_id == DEFAULT_VOICE_ID
    assert settings.elevenlabs_model_id == "eleven_multilingual_v2"
    assert settings.realtime_chunk_threshold == 20
    assert settings.websocket_chunk_threshold == 50
    assert settings.request_timeout == 60.0
    assert not settings.inverso_configured


def test_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    monkeypatch.setenv("ELEVENLABS_VOICE_ID", "voice-env")
    monkeypatch.setenv("REALTIME_CHUNK_THRESHOLD", "30")
    monkeypatch.setenv("INVERSO_API_KEY", "inv")
    monkeypatch.setenv("INVERSO_BASE_URL", "https://inverso.example.com")

    settings = Settings()

    assert settings.openai_api_key.get_secret_value() == "sk-env"
    assert settings.elevenlabs_voice_id == "voice-env"
    assert settings.realtime_chunk_threshold == 30
    assert settings.inverso_configured


def test_rejects_non_positive_threshold() -> None:
    with pytest.raises(ValidationError):
        Settings(openai_api_key=SecretStr("sk-test"), websocket_chunk_threshold=0)


def test_settings_are_immutable() -> None:
    settings = Settings(openai_api_key=SecretStr("sk-test"))

    with pytest.raises(ValidationError):
        settings.chat_model = "other"  # type: ignore[misc]
