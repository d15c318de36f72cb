"""
Extraction Router - Decides which blocks need the LLM.

The rules handle well-structured schedules cheaply and deterministically.
A block is only sent to the LLM when the rules cannot account for it.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from docuspec.domains.extraction.classifier import (
    RULE_EXTRACTED_CATEGORIES,
    classify_table,
    is_extractable_category,
)
from docuspec.domains.extraction.models import MaterialFactItem, TableCategory
from docuspec.domains.parsing.models import ParsedBlock

__all__ = ["QUANTITY_UNIT_RE", "is_skipped", "needs_llm"]

# A number followed by a construction unit: "12 шт", "202,6 м2", "5 компл"
QUANTITY_UNIT_RE = re.compile(r"\d+[,.]?\d*\s*(шт|м2|м3|м\.п\.|кг|т|л|компл)", re.IGNORECASE)


def is_skipped(block: ParsedBlock) -> bool:
    """IMAGE blocks and blocks with recognition errors are never extracted."""
    return block.has_error or not block.is_text


def needs_llm(block: ParsedBlock, rule_items: Sequence[MaterialFactItem]) -> bool:
    """
    Route a block to the LLM.

    Args:
        block: Parsed block
        rule_items: What the rule-based extractor produced for it

    Returns:
        True if the block has content the rules did not cover
    """
    if is_skipped(block):
        return False

    if not block.has_table:
        return QUANTITY_UNIT_RE.search(block.content) is not None

    if not rule_items:
        return True

    for table in block.tables:
        category = classify_table(table)
        if category == TableCategory.UNKNOWN:
            return True
        if is_extractable_category(category) and category not in RULE_EXTRACTED_CATEGORIES:
            return True

    return False
