"""
OpenRouter Models - Request/Response types for the OpenRouter API.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from docuspec.config.settings import Settings


class MessageRole(str, Enum):
    """Chat message roles."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """Single chat-completions message."""

    role: MessageRole
    content: str

    model_config = {"frozen": True}


class OpenRouterConfig(BaseModel):
    """Configuration for OpenRouter client."""

    api_key: str | None = None
    url: str = Field(default="https://openrouter.ai/api/v1/chat/completions")
    model: str = Field(default="anthropic/claude-sonnet-4")
    app_title: str = Field(default="DocuSpec")
    referer: str = Field(default="http://localhost")
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    timeout_seconds: float = Field(default=60.0, gt=0)
    max_attempts: int = Field(default=2, ge=1)
    retry_backoff_seconds: float = Field(default=1.0, ge=0)

    model_config = {"frozen": True}

    @classmethod
    def from_settings(cls, settings: Settings) -> OpenRouterConfig:
        """Build a client config from application settings."""
        return cls(
            api_key=settings.openrouter_api_key,
            url=settings.openrouter_url,
            model=settings.openrouter_model,
            app_title=settings.openrouter_app_title,
            referer=settings.openrouter_referer,
            temperature=settings.llm_temperature,
            timeout_seconds=settings.llm_timeout_seconds,
            max_attempts=settings.llm_max_attempts,
            retry_backoff_seconds=settings.llm_retry_backoff_seconds,
        )


class CompletionResponse(BaseModel):
    """Chat completion result."""

    content: str
    model: str
    usage: dict[str, Any] = Field(default_factory=dict)

    @property
    def total_tokens(self) -> int:
        """Total tokens reported by the provider (0 if not reported)."""
        return int(self.usage.get("total_tokens", 0) or 0)
