"""Application settings using pydantic-settings.

Loads configuration from environment variables with .env file support.
"""

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,  # Allow both field name and alias
    )

    # Environment
    environment: Literal["development", "staging", "production", "testing"] = "development"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Orchestrator REST API
    orchestrator_url: str = Field(
        default="http://localhost:8080",
        description="Base URL of the trading API serving /api/orchestrator/*",
        validation_alias=AliasChoices("orchestrator_url", "gekko_api_url"),
    )
    orchestrator_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Timeout applied to every orchestrator command and state read",
    )
    orchestrator_serialize_commands: bool = Field(
        default=False,
        description="Run orchestrator commands one at a time instead of concurrently",
    )

    # Streaming chat completions (OpenAI-compatible, e.g. OpenRouter)
    llm_base_url: str = Field(
        default="https://openrouter.ai/api/v1",
        description="Base URL of the OpenAI-compatible completion API",
    )
    llm_api_key: SecretStr = Field(
        default=SecretStr(""),
        description="API key for the completion provider (empty = no auth header)",
        validation_alias=AliasChoices("llm_api_key", "openrouter_api_key", "openai_api_key"),
    )
    llm_model: str = Field(
        default="nvidia/nemotron-nano-12b-v2-vl:free",
        description="Model selected when a session starts",
    )
    stream_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Read timeout between chunks of a streamed completion",
    )
    stream_connect_timeout_seconds: float = Field(default=10.0, gt=0)
    stream_concurrency: Literal["reject", "queue"] = Field(
        default="reject",
        description="What opening a second stream on a busy client does",
    )

    # Session
    chat_context_window: int = Field(
        default=10,
        ge=1,
        le=200,
        description="Number of most recent messages sent as context",
    )
    max_diagnostics: int = Field(default=200, ge=1, le=10_000)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are loaded once and reused.
    """
    return Settings()
