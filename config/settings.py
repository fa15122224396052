"""Application settings and configuration management."""
from __future__ import annotations

from typing import Dict

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or defaults."""

    DB_PATH: str = Field(default="data/live_agent.db")
    API_BASE_URL: str = "http://localhost:8000"
    HTTP_TIMEOUT_S: float = 30.0

    # Bearer token -> user id. Tokens are issued by the external auth provider.
    ACCESS_TOKENS: Dict[str, str] = Field(default_factory=dict)

    DEFAULT_ROLE: str = "Salesforce Developer"
    DEFAULT_LEVEL: str = "Mid-level"
    DEFAULT_INTERVIEW_TYPE: str = "mixed"
    DEFAULT_QUESTION_COUNT: int = 5
    MAX_INSPIRATION_QUESTIONS: int = 10

    LLM_CONFIG_PATH: str = "app_config.json"
    CHAT_ROUTE: str = "chat"
    CHAT_MODEL: str = "flash"

    OPENAI_API_KEY: str | None = None
    REALTIME_BASE_URL: str = "https://api.openai.com/v1/realtime"
    REALTIME_MODEL: str = "gpt-realtime"
    REALTIME_TOKEN_TTL_SECONDS: int = 600
    REALTIME_TRANSCRIPTION_MODEL: str = "gpt-4o-transcribe"
    # Capture device for the realtime channel, e.g. "default" with format "pulse".
    MIC_DEVICE: str | None = None
    MIC_FORMAT: str | None = None
    # Output device for assistant audio, e.g. "default" with format "pulse" or "alsa".
    SPEAKER_DEVICE: str | None = None
    SPEAKER_FORMAT: str | None = None

    DEEPGRAM_API_KEY: str | None = None
    DEEPGRAM_URL: str = "https://api.deepgram.com/v1/listen"
    STT_MAX_BYTES: int = 10 * 1024 * 1024

    model_config = SettingsConfigDict(env_file=".env", validate_assignment=True, extra="ignore")


settings = Settings()
