"""
Parsing Models - Typed structure of a parsed Markdown document.
"""

from __future__ import annotations

from collections.abc import Iterator
from enum import Enum

from pydantic import BaseModel, Field


class BlockType(str, Enum):
    """Block variants declared by `### BLOCK [...]` markers."""

    TEXT = "TEXT"
    IMAGE = "IMAGE"


class ParsedTable(BaseModel):
    """Pipe table found inside a block."""

    headers: list[str] = Field(default_factory=list)
    rows: list[list[str]] = Field(default_factory=list)
    section_context: str | None = None


class ParsedBlock(BaseModel):
    """Uniquely identified unit of content between structural markers."""

    uid: str
    type: BlockType = BlockType.TEXT
    content: str = ""
    has_table: bool = False
    has_error: bool = False
    error_text: str | None = None
    section_title: str | None = None
    tables: list[ParsedTable] = Field(default_factory=list)

    @property
    def is_text(self) -> bool:
        """Check if this is a TEXT block."""
        return self.type == BlockType.TEXT


class ParsedPage(BaseModel):
    """Document page (sheet) with its blocks."""

    page_no: int
    sheet_label: str | None = None
    sheet_name: str | None = None
    blocks: list[ParsedBlock] = Field(default_factory=list)


class ParsedDocument(BaseModel):
    """Result of a single parse call."""

    title: str = ""
    generated: str | None = None
    stamp_text: str | None = None
    doc_code: str | None = None
    pages: list[ParsedPage] = Field(default_factory=list)
    total_blocks: int = 0
    error_blocks: int = 0

    model_config = {"frozen": True}

    @property
    def page_count(self) -> int:
        """Total number of pages."""
        return len(self.pages)

    def iter_blocks(self) -> Iterator[tuple[ParsedPage, ParsedBlock]]:
        """Yield (page, block) pairs in document order."""
        for page in self.pages:
            for block in page.blocks:
                yield page, block
