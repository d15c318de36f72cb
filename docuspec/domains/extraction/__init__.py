"""
Extraction Domain - Parsed blocks to material facts.

This domain handles:
- Table classification by header keywords
- Rule-based extraction from structured schedules
- Canonical key generation
- Per-block LLM extraction
- Merging and deduplication of both result sets
"""

from .canonical import generate_canonical_key, slugify, transliterate
from .classifier import classify_headers, classify_table, is_extractable_category
from .contracts import BlockExtractor, ExtractionTransport, ProgressCallback
from .llm_extractor import LLMBlockExtractor, build_user_prompt, parse_extraction_response
from .merge import dedup_key, llm_unique_items, merge_results
from .models import (
    BlockForExtraction,
    ExtractionResponse,
    FactSource,
    MaterialFactItem,
    TableCategory,
)
from .normalize import extract_gost, format_quantity, parse_russian_number
from .rules import find_column_index, rule_based_extract

__all__ = [
    # Contracts
    "BlockExtractor",
    "ExtractionTransport",
    "ProgressCallback",
    # Models
    "BlockForExtraction",
    "ExtractionResponse",
    "FactSource",
    "MaterialFactItem",
    "TableCategory",
    # Classification
    "classify_headers",
    "classify_table",
    "is_extractable_category",
    # Rules
    "find_column_index",
    "rule_based_extract",
    # Normalization
    "extract_gost",
    "format_quantity",
    "generate_canonical_key",
    "parse_russian_number",
    "slugify",
    "transliterate",
    # LLM
    "LLMBlockExtractor",
    "build_user_prompt",
    "parse_extraction_response",
    # Merge
    "dedup_key",
    "llm_unique_items",
    "merge_results",
]
