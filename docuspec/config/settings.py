"""
Settings - Application configuration using Pydantic Settings.

Loads from environment variables and .env files.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Paths
    data_dir: Path = Path("data")
    db_path: Path = Path("data/docuspec.db")

    # OpenRouter (OpenAI-compatible chat completions)
    openrouter_api_key: str | None = None
    openrouter_url: str = "https://openrouter.ai/api/v1/chat/completions"
    openrouter_model: str = "anthropic/claude-sonnet-4"
    openrouter_app_title: str = "DocuSpec"
    openrouter_referer: str = "http://localhost"

    # LLM extraction
    llm_temperature: float = 0.1
    llm_timeout_seconds: float = 60.0
    llm_max_attempts: int = 2  # first call + one retry
    llm_retry_backoff_seconds: float = 1.0
    llm_max_concurrent: int = 1

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
