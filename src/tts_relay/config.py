"""Application configuration using environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server
    host: str = Field(
        default="0.0.0.0",
        validation_alias=AliasChoices("HOST", "host"),
    )
    port: int = Field(
        default=3000,
        ge=1,
        le=65535,
        validation_alias=AliasChoices("PORT", "port"),
    )
    port_retry_limit: int = Field(
        default=10,
        ge=1,
        validation_alias=AliasChoices("PORT_RETRY_LIMIT", "port_retry_limit"),
    )

    # Provider credentials. The key may also arrive in the request body.
    openai_api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_API_KEY", "openai_api_key"),
    )
    openai_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://api.openai.com/v1"),
        validation_alias=AliasChoices("OPENAI_BASE_URL", "openai_base_url"),
    )
    request_timeout: float = Field(
        default=120.0,
        ge=1,
        validation_alias=AliasChoices("OPENAI_TIMEOUT", "request_timeout"),
    )

    # Speech synthesis
    tts_model: str = Field(
        default="tts-1",
        validation_alias=AliasChoices("TTS_MODEL", "tts_model"),
    )
    tts_voice: str = Field(
        default="alloy",
        validation_alias=AliasChoices("TTS_VOICE", "tts_voice"),
    )
    tts_response_format: str = Field(
        default="mp3",
        validation_alias=AliasChoices("TTS_RESPONSE_FORMAT", "tts_response_format"),
    )
    max_segment_chars: int = Field(
        default=4096,
        ge=1,
        validation_alias=AliasChoices("MAX_SEGMENT_CHARS", "max_segment_chars"),
    )

    # Summarization
    summary_model: str = Field(
        default="gpt-4o-mini",
        validation_alias=AliasChoices("SUMMARY_MODEL", "summary_model"),
    )
    max_summary_input_chars: int = Field(
        default=100_000,
        ge=1,
        validation_alias=AliasChoices(
            "MAX_SUMMARY_INPUT_CHARS", "max_summary_input_chars"
        ),
    )
    max_summary_output_tokens: int = Field(
        default=4096,
        ge=1,
        validation_alias=AliasChoices(
            "MAX_SUMMARY_OUTPUT_TOKENS", "max_summary_output_tokens"
        ),
    )

    # Display-only pricing shown by the client page
    summary_input_cost_per_million: float = Field(
        default=0.15,
        ge=0,
        validation_alias=AliasChoices(
            "SUMMARY_INPUT_COST_PER_MILLION", "summary_input_cost_per_million"
        ),
    )
    summary_output_cost_per_million: float = Field(
        default=0.60,
        ge=0,
        validation_alias=AliasChoices(
            "SUMMARY_OUTPUT_COST_PER_MILLION", "summary_output_cost_per_million"
        ),
    )

    # Provider rate limit (requests per refill window)
    rate_limit_capacity: int = Field(
        default=2,
        ge=1,
        validation_alias=AliasChoices("RATE_LIMIT_CAPACITY", "rate_limit_capacity"),
    )
    rate_limit_refill_seconds: float = Field(
        default=30.0,
        gt=0,
        validation_alias=AliasChoices(
            "RATE_LIMIT_REFILL_SECONDS", "rate_limit_refill_seconds"
        ),
    )
    rate_limit_retry_delay_seconds: float = Field(
        default=30.0,
        ge=0,
        validation_alias=AliasChoices(
            "RATE_LIMIT_RETRY_DELAY_SECONDS", "rate_limit_retry_delay_seconds"
        ),
    )
    rate_limit_max_attempts: int = Field(
        default=2,
        ge=1,
        validation_alias=AliasChoices(
            "RATE_LIMIT_MAX_ATTEMPTS", "rate_limit_max_attempts"
        ),
    )

    def resolve_api_key(self, override: Optional[str] = None) -> Optional[str]:
        """Prefer a per-request key, falling back to the configured one."""
        if override and override.strip():
            return override.strip()
        if self.openai_api_key is not None:
            value = self.openai_api_key.get_secret_value().strip()
            return value or None
        return None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["PROJECT_ROOT", "Settings", "get_settings"]
