"""
Adapters - External service integrations.

All external API calls are wrapped here to isolate domains from third-party changes.
"""

from .openrouter import OpenRouterClient, OpenRouterConfig
from .sqlite import BomLine, SQLiteRepository

__all__ = [
    "OpenRouterClient",
    "OpenRouterConfig",
    "SQLiteRepository",
    "BomLine",
]
