"""Application configuration using environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

DEFAULT_VOICE_ID = "EXAVITQu4vr4xnSDxMaL"


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # OpenAI (chat completions and Whisper transcription share one key)
    openai_api_key: SecretStr = Field(
        ...,
        validation_alias=AliasChoices("OPENAI_API_KEY", "openai_api_key"),
    )
    openai_base_url: Optional[AnyHttpUrl] = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_BASE_URL", "openai_base_url"),
    )
    chat_model: str = Field(
        default="gpt-3.5-turbo",
        validation_alias=AliasChoices("OPENAI_CHAT_MODEL", "chat_model"),
    )
    transcription_model: str = Field(
        default="whisper-1",
        validation_alias=AliasChoices(
            "OPENAI_TRANSCRIPTION_MODEL", "transcription_model"
        ),
    )
    transcription_language: Optional[str] = Field(
        default="es",
        validation_alias=AliasChoices(
            "TRANSCRIPTION_LANGUAGE", "transcription_language"
        ),
    )
    system_prompt: str = Field(
        default="You are a helpful assistant.",
        validation_alias=AliasChoices("SYSTEM_PROMPT", "system_prompt"),
    )
    speech_system_prompt: str = Field(
        default="You are a helpful assistant. Keep responses concise.",
        validation_alias=AliasChoices(
            "SPEECH_SYSTEM_PROMPT", "speech_system_prompt"
        ),
    )

    # ElevenLabs speech synthesis
    elevenlabs_api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("ELEVENLABS_API_KEY", "elevenlabs_api_key"),
    )
    elevenlabs_voice_id: str = Field(
        default=DEFAULT_VOICE_ID,
        validation_alias=AliasChoices("ELEVENLABS_VOICE_ID", "elevenlabs_voice_id"),
    )
    elevenlabs_model_id: str = Field(
        default="eleven_multilingual_v2",
        validation_alias=AliasChoices("ELEVENLABS_MODEL_ID", "elevenlabs_model_id"),
    )
    elevenlabs_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://api.elevenlabs.io/v1"),
        validation_alias=AliasChoices("ELEVENLABS_BASE_URL", "elevenlabs_base_url"),
    )

    # Secondary chat backend (optional)
    inverso_api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("INVERSO_API_KEY", "inverso_api_key"),
    )
    inverso_base_url: Optional[AnyHttpUrl] = Field(
        default=None,
        validation_alias=AliasChoices("INVERSO_BASE_URL", "inverso_base_url"),
    )

    request_timeout: float = Field(
        default=60.0,
        validation_alias=AliasChoices("REQUEST_TIMEOUT", "request_timeout"),
        ge=1,
    )

    # The two chunking call sites tune different synthesis latencies and are
    # configured independently.
    realtime_chunk_threshold: int = Field(
        default=20,
        ge=1,
        validation_alias=AliasChoices(
            "REALTIME_CHUNK_THRESHOLD", "realtime_chunk_threshold"
        ),
    )
    websocket_chunk_threshold: int = Field(
        default=50,
        ge=1,
        validation_alias=AliasChoices(
            "WEBSOCKET_CHUNK_THRESHOLD", "websocket_chunk_threshold"
        ),
    )

    @property
    def inverso_configured(self) -> bool:
        return bool(
            self.inverso_base_url
            and self.inverso_api_key
            and self.inverso_api_key.get_secret_value()
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["DEFAULT_VOICE_ID", "Settings", "get_settings"]
