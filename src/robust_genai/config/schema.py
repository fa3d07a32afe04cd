"""Configuration schema and validation using Pydantic.

This module defines the settings schema that validates and coerces configuration
values from the environment, the project file and programmatic overrides into
the correct types with proper defaults.
"""

from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from robust_genai.constants import (
    DEFAULT_COOLDOWN_SECONDS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_TEMPERATURE,
    RATE_LIMIT_BACKOFF_BASE,
    RATE_LIMIT_BACKOFF_CEILING,
    RATE_LIMIT_HINT_BUFFER,
    TRANSIENT_RETRY_DELAY,
)

ProviderName = Literal["google", "groq", "openai"]

ENV_PREFIX = "ROBUST_GENAI_"


class RobustSettings(BaseSettings):
    """Pydantic settings schema for the robust call layer.

    Handles validation, type coercion and default values for every
    configuration field. Environment variables use the ``ROBUST_GENAI_``
    prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=None,  # Only used when explicitly requested
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Provider ---

    provider: ProviderName = Field(
        default="google",
        description="Text-generation provider backing the adapter",
    )

    api_key: str | None = Field(
        default=None,
        description="Provider API key",
    )

    base_url: str | None = Field(
        default=None,
        description="Override for the provider REST endpoint",
    )

    model: str = Field(
        default="",
        description="Model identifier; empty selects the provider default",
    )

    # --- Retry / throttling ---

    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, ge=0)
    cooldown_seconds: float = Field(default=DEFAULT_COOLDOWN_SECONDS, ge=0)
    backoff_base_seconds: float = Field(default=RATE_LIMIT_BACKOFF_BASE, ge=0)
    backoff_ceiling_seconds: float = Field(default=RATE_LIMIT_BACKOFF_CEILING, ge=0)
    rate_limit_buffer_seconds: float = Field(default=RATE_LIMIT_HINT_BUFFER, ge=0)
    transient_delay_seconds: float = Field(default=TRANSIENT_RETRY_DELAY, ge=0)

    # --- Request ---

    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0, le=2)
    request_timeout_seconds: float = Field(default=DEFAULT_REQUEST_TIMEOUT, gt=0)

    @field_validator("provider", mode="before")
    @classmethod
    def parse_provider(cls, v: Any) -> Any:
        """Accept provider names case-insensitively, plus ``gemini`` for google."""
        if isinstance(v, str):
            normalized = v.strip().lower()
            return "google" if normalized == "gemini" else normalized
        return v

    @field_validator("model", mode="before")
    @classmethod
    def strip_model(cls, v: Any) -> Any:
        """Treat a missing model as the empty string."""
        if v is None:
            return ""
        return v.strip() if isinstance(v, str) else v

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary keyed by field name."""
        return {name: getattr(self, name) for name in type(self).model_fields}


FIELD_NAMES: tuple[str, ...] = tuple(RobustSettings.model_fields)
