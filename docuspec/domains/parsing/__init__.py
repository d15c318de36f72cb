"""
Parsing Domain - Markdown document to pages, blocks and tables.

This domain handles:
- Header metadata (title, stamp, document code)
- Page and sheet metadata
- TEXT/IMAGE block segmentation with error detection
- Pipe table extraction with section context
"""

from .models import BlockType, ParsedBlock, ParsedDocument, ParsedPage, ParsedTable
from .parser import (
    FALLBACK_BLOCK_UID,
    MarkdownDocumentParser,
    parse_document,
    split_table_row,
)

__all__ = [
    # Models
    "BlockType",
    "ParsedBlock",
    "ParsedDocument",
    "ParsedPage",
    "ParsedTable",
    # Implementations
    "FALLBACK_BLOCK_UID",
    "MarkdownDocumentParser",
    "parse_document",
    "split_table_row",
]
