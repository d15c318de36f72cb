"""
CLI Interface - Command-line tools for DocuSpec.

Provides commands for:
- Document structure inspection
- Material fact extraction
- Bill of materials reports
"""

from .main import app, main

__all__ = ["app", "main"]
