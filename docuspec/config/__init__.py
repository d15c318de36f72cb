"""
Configuration - Application settings and error taxonomy.
"""

from .errors import (
    DocuSpecError,
    ErrorCode,
    ExtractionError,
    LLMError,
    StorageError,
)
from .settings import Settings, get_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    # Errors
    "ErrorCode",
    "DocuSpecError",
    "ExtractionError",
    "LLMError",
    "StorageError",
]
