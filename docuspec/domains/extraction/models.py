"""
Extraction Models - Data types for extraction domain.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from docuspec.domains.parsing.models import ParsedBlock

from .normalize import parse_russian_number


class TableCategory(str, Enum):
    """Engineering schedule type derived from table headers."""

    MATERIAL_QTY = "material_qty"
    SPEC_ELEMENTS = "spec_elements"
    ELEMENT_SPEC = "element_spec"
    FLOOR_SPEC = "floor_spec"
    ROOF_SPEC = "roof_spec"
    ROOM_SCHEDULE = "room_schedule"
    CHANGE_LOG = "change_log"
    UNKNOWN = "unknown"


class FactSource(str, Enum):
    """Origin of a persisted material fact."""

    RULE_BASED = "rule_based"
    LLM = "llm"


class MaterialFactItem(BaseModel):
    """One extracted line item before aggregation."""

    raw_name: str = Field(min_length=1)
    canonical_name: str | None = None
    canonical_key: str | None = None
    quantity: float | None = None
    unit: str | None = None
    mark: str | None = None  # position / tag
    gost: str | None = None
    description: str | None = None
    note: str | None = None
    source_snippet: str | None = None
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)

    @field_validator("raw_name", mode="before")
    @classmethod
    def strip_raw_name(cls, value: Any) -> Any:
        """Whitespace-only names count as empty."""
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("quantity", mode="before")
    @classmethod
    def parse_quantity(cls, value: Any) -> Any:
        """Accept Russian-formatted numbers such as "1 692,9"."""
        if isinstance(value, str):
            return parse_russian_number(value)
        return value


class ExtractionResponse(BaseModel):
    """Schema the LLM output must validate against."""

    items: list[MaterialFactItem] = Field(default_factory=list)


class BlockForExtraction(BaseModel):
    """A block queued for LLM extraction."""

    block: ParsedBlock
    page_no: int
    block_id: str  # storage id, or the block uid when nothing is persisted
    section_context: str | None = None
