"""
SQLite Models - Read models returned by the repository.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class BomLine(BaseModel):
    """One row of the bill of materials: facts summed by canonical key and unit."""

    canonical_key: str
    canonical_name: str | None = None
    unit: str | None = None
    total_qty: float | None = None  # None when no fact carried a quantity
    fact_count: int = 0
    source_block_ids: list[str] = Field(default_factory=list)
    all_verified: bool = False
