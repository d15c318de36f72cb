"""
OpenRouter Adapter - OpenAI-compatible chat completions over HTTP.

This is the ONLY place that calls the LLM API.
"""

from .client import OpenRouterClient
from .models import ChatMessage, CompletionResponse, MessageRole, OpenRouterConfig

__all__ = [
    "OpenRouterClient",
    "OpenRouterConfig",
    "ChatMessage",
    "CompletionResponse",
    "MessageRole",
]
