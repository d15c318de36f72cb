"""
SQLite Adapter - Persistent store for documents, facts and the BOM rollup.
"""

from .models import BomLine
from .repository import SQLiteRepository

__all__ = ["BomLine", "SQLiteRepository"]
