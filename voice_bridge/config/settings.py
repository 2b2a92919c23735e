"""
Process-wide settings for the voice bridge.

Settings are read once at startup (after loading an optional ``.env`` file) and
injected into every session. A missing OpenAI API key is a startup failure; it is
never discovered per session.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

import dotenv
from pydantic import BaseModel, Field

from voice_bridge.config.constants import (
    AUDIO_FORMAT_PCM16,
    DEFAULT_FINALIZE_QUIET_PERIOD_MS,
    DEFAULT_INSTRUCTIONS,
    DEFAULT_REALTIME_MODEL,
    DEFAULT_REALTIME_URL,
    DEFAULT_TRANSCRIPTION_MODEL,
    DEFAULT_VAD_SILENCE_MS,
    DEFAULT_VOICE,
)
from voice_bridge.exceptions import ConfigurationError

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _split_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip().lower() for item in value.split(",") if item.strip()]


class Settings(BaseModel):
    """Centralized environment-driven configuration."""

    openai_api_key: str
    realtime_model: str = DEFAULT_REALTIME_MODEL
    realtime_url: str = DEFAULT_REALTIME_URL
    voice: str = DEFAULT_VOICE
    instructions: str = DEFAULT_INSTRUCTIONS
    input_audio_format: str = AUDIO_FORMAT_PCM16
    output_audio_format: str = AUDIO_FORMAT_PCM16
    transcription_model: str = DEFAULT_TRANSCRIPTION_MODEL
    vad_silence_ms: int = Field(DEFAULT_VAD_SILENCE_MS, ge=0)
    finalize_quiet_period_ms: int = Field(DEFAULT_FINALIZE_QUIET_PERIOD_MS, gt=0)
    single_flight_generation: bool = True

    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    google_refresh_token: Optional[str] = None
    gmail_user: Optional[str] = None
    webhook_allowlist: List[str] = Field(default_factory=list)
    tool_http_timeout: float = Field(15.0, gt=0)

    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    @property
    def finalize_quiet_period(self) -> float:
        """Quiet period before a buffered transcript is finalized, in seconds."""
        return self.finalize_quiet_period_ms / 1000.0

    @property
    def gmail_configured(self) -> bool:
        return bool(
            self.google_client_id and self.google_client_secret and self.google_refresh_token
        )

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            env_file: Optional dotenv file loaded before reading the environment

        Raises:
            ConfigurationError: If OPENAI_API_KEY is not set
        """
        env_path = env_file or Path(".") / ".env"
        if env_path.exists():
            dotenv.load_dotenv(env_path)

        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY environment variable not set")

        values = {
            "openai_api_key": api_key,
            "realtime_model": os.getenv("OPENAI_REALTIME_MODEL"),
            "realtime_url": os.getenv("OPENAI_REALTIME_URL"),
            "voice": os.getenv("REALTIME_VOICE"),
            "instructions": os.getenv("AGENT_SYSTEM_PROMPT"),
            "input_audio_format": os.getenv("INPUT_AUDIO_FORMAT"),
            "output_audio_format": os.getenv("OUTPUT_AUDIO_FORMAT"),
            "transcription_model": os.getenv("TRANSCRIPTION_MODEL"),
            "vad_silence_ms": os.getenv("VAD_SILENCE_MS"),
            "finalize_quiet_period_ms": os.getenv("FINALIZE_QUIET_PERIOD_MS"),
            "google_client_id": os.getenv("GOOGLE_CLIENT_ID"),
            "google_client_secret": os.getenv("GOOGLE_CLIENT_SECRET"),
            "google_refresh_token": os.getenv("GMAIL_REFRESH_TOKEN")
            or os.getenv("GOOGLE_REFRESH_TOKEN"),
            "gmail_user": os.getenv("GMAIL_USER") or os.getenv("GMAIL_SENDER"),
            "tool_http_timeout": os.getenv("TOOL_HTTP_TIMEOUT"),
            "host": os.getenv("HOST"),
            "port": os.getenv("PORT"),
            "log_level": os.getenv("LOG_LEVEL"),
        }
        single_flight = os.getenv("SINGLE_FLIGHT_GENERATION")
        if single_flight is not None:
            values["single_flight_generation"] = single_flight.strip().lower() in _TRUE_VALUES
        values["webhook_allowlist"] = _split_list(os.getenv("TOOL_WEBHOOK_ALLOWLIST"))

        # Unset variables fall back to the model defaults
        return cls(**{key: value for key, value in values.items() if value is not None})


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance to avoid repeated environment reads."""
    return Settings.from_env()
