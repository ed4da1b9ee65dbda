# ABOUTME: Runtime configuration for Shelfscan, loaded from environment variables and .env.
# ABOUTME: Provider credentials, model names, retry policy, batch size, and deadlines.

from typing import Annotated, Any

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from shelfscan.recognition.gemini import DEFAULT_GEMINI_MODELS, DEFAULT_GEMINI_TIMEOUT
from shelfscan.recognition.openai import DEFAULT_OPENAI_MODEL, DEFAULT_OPENAI_TIMEOUT
from shelfscan.recognition.orchestrator import DEFAULT_BACKOFF_BASE, DEFAULT_MAX_ATTEMPTS
from shelfscan.recognition.validator import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_VALIDATION_MODEL,
    DEFAULT_VALIDATION_TIMEOUT,
)


class ScanSettings(BaseSettings):
    """Everything the scan pipeline needs to know about its environment.

    Tuning values are read from SHELFSCAN_* variables; the API keys use the
    providers' conventional names. A provider whose API key is None is still
    listed in diagnostics but contributes nothing.
    """

    model_config = SettingsConfigDict(
        env_prefix="SHELFSCAN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
        frozen=True,
    )

    openai_api_key: str | None = Field(
        default=None, validation_alias=AliasChoices("openai_api_key", "OPENAI_API_KEY")
    )
    gemini_api_key: str | None = Field(
        default=None, validation_alias=AliasChoices("gemini_api_key", "GEMINI_API_KEY")
    )
    openai_model: str = DEFAULT_OPENAI_MODEL
    validation_model: str = DEFAULT_VALIDATION_MODEL
    # Comma-separated in the environment, primary model first.
    gemini_models: Annotated[tuple[str, ...], NoDecode] = DEFAULT_GEMINI_MODELS
    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1)
    backoff_base: float = Field(default=DEFAULT_BACKOFF_BASE, ge=0.0)
    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, ge=1)
    openai_timeout: float = Field(default=DEFAULT_OPENAI_TIMEOUT, gt=0.0)
    gemini_timeout: float = Field(default=DEFAULT_GEMINI_TIMEOUT, gt=0.0)
    validation_timeout: float = Field(default=DEFAULT_VALIDATION_TIMEOUT, gt=0.0)

    @field_validator("openai_api_key", "gemini_api_key", mode="before")
    @classmethod
    def _blank_key_is_missing(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("gemini_models", mode="before")
    @classmethod
    def _split_model_list(cls, value: Any) -> Any:
        if isinstance(value, str):
            models = tuple(m.strip() for m in value.split(",") if m.strip())
            return models or DEFAULT_GEMINI_MODELS
        return value

    @property
    def has_any_provider(self) -> bool:
        return bool(self.openai_api_key or self.gemini_api_key)
