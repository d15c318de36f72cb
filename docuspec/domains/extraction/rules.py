"""
Rule-Based Extractor - Column mapping for well-structured schedules.

Only material_qty, element_spec and spec_elements tables are mapped here.
Floor and roof schedules need contextual judgement and go to the LLM.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence

from docuspec.domains.parsing.models import ParsedBlock, ParsedTable

from .canonical import generate_canonical_key
from .classifier import classify_table, is_extractable_category
from .models import MaterialFactItem, TableCategory
from .normalize import build_snippet, extract_gost, parse_russian_number

logger = logging.getLogger(__name__)

__all__ = [
    "COLUMN_KEYWORDS",
    "find_column_index",
    "rule_based_extract",
    "extract_material_qty",
    "extract_element_spec",
    "extract_spec_elements",
]

# Keyword variants per field, searched in order
COLUMN_KEYWORDS: dict[TableCategory, dict[str, tuple[str, ...]]] = {
    TableCategory.MATERIAL_QTY: {
        "name": ("наименование",),
        "quantity": ("количество", "кол-во", "кол"),
        "unit": ("ед.изм", "ед.", "ед"),
    },
    TableCategory.ELEMENT_SPEC: {
        "mark": ("марка",),
        "description": ("описание", "наименование"),
        "quantity": ("кол-во", "кол", "шт"),
        "note": ("примечание",),
    },
    TableCategory.SPEC_ELEMENTS: {
        "position": ("поз",),
        "designation": ("обозначение",),
        "name": ("наименование", "назначение"),
        "quantity": ("кол-во", "кол", "количество"),
        "note": ("примечание",),
    },
}

MATERIAL_QTY_CONFIDENCE = 0.95
PIECE_COUNT_CONFIDENCE = 0.9
PIECE_UNIT = "шт"
MIN_NAME_LENGTH = 3

# Bare section labels such as "K6" or "K6.1"
SECTION_LABEL_RE = re.compile(r"[A-Za-zА-Яа-я0-9.]+")
SECTION_LABEL_MAX_LENGTH = 10


def find_column_index(headers: Sequence[str], *keywords: str) -> int | None:
    """Index of the first header containing a keyword, trying keywords in order."""
    normalized = [header.lower().strip() for header in headers]
    for keyword in keywords:
        for index, header in enumerate(normalized):
            if keyword in header:
                return index
    return None


def _columns(table: ParsedTable, category: TableCategory) -> dict[str, int | None]:
    return {
        field: find_column_index(table.headers, *keywords)
        for field, keywords in COLUMN_KEYWORDS[category].items()
    }


def _cell(row: Sequence[str], index: int | None) -> str | None:
    if index is None or index >= len(row):
        return None
    return row[index].strip()


def _fact(
    raw_name: str,
    quantity: float | None,
    unit: str | None,
    confidence: float,
    gost_source: str,
    mark: str | None = None,
    description: str | None = None,
    note: str | None = None,
) -> MaterialFactItem:
    return MaterialFactItem(
        raw_name=raw_name,
        canonical_name=raw_name,
        canonical_key=generate_canonical_key(raw_name),
        quantity=quantity,
        unit=unit,
        mark=mark,
        gost=extract_gost(gost_source),
        description=description,
        note=note,
        source_snippet=build_snippet(raw_name, quantity, unit),
        confidence=confidence,
    )


def _is_section_label(raw_name: str, quantity: float | None, unit: str | None) -> bool:
    return (
        quantity is None
        and not unit
        and len(raw_name) < SECTION_LABEL_MAX_LENGTH
        and SECTION_LABEL_RE.fullmatch(raw_name) is not None
    )


def extract_material_qty(table: ParsedTable) -> list[MaterialFactItem]:
    """Наименование | Количество | Ед.изм. tables."""
    cols = _columns(table, TableCategory.MATERIAL_QTY)
    if cols["name"] is None:
        return []

    results: list[MaterialFactItem] = []
    for row in table.rows:
        raw_name = _cell(row, cols["name"])
        if not raw_name:
            continue

        quantity = parse_russian_number(_cell(row, cols["quantity"]))
        unit = _cell(row, cols["unit"]) or None

        if _is_section_label(raw_name, quantity, unit):
            continue
        if len(raw_name) < MIN_NAME_LENGTH:
            continue

        results.append(
            _fact(raw_name, quantity, unit, MATERIAL_QTY_CONFIDENCE, gost_source=raw_name)
        )

    return results


def extract_element_spec(table: ParsedTable) -> list[MaterialFactItem]:
    """Марка | Описание | Кол-во tables. Always piece-counted."""
    cols = _columns(table, TableCategory.ELEMENT_SPEC)
    if cols["description"] is None and cols["mark"] is None:
        return []

    results: list[MaterialFactItem] = []
    for row in table.rows:
        mark = _cell(row, cols["mark"]) or None
        raw_name = _cell(row, cols["description"]) or mark or ""
        if len(raw_name) < MIN_NAME_LENGTH:
            continue

        quantity = parse_russian_number(_cell(row, cols["quantity"]))
        note = _cell(row, cols["note"]) or None

        results.append(
            _fact(
                raw_name,
                quantity,
                PIECE_UNIT,
                PIECE_COUNT_CONFIDENCE,
                gost_source=f"{raw_name} {note or ''}",
                mark=mark,
                description=note if note != raw_name else None,
            )
        )

    return results


def extract_spec_elements(table: ParsedTable) -> list[MaterialFactItem]:
    """Поз. | Обозначение | Наименование | Кол-во tables. Always piece-counted."""
    cols = _columns(table, TableCategory.SPEC_ELEMENTS)
    name_idx = cols["name"] if cols["name"] is not None else cols["designation"]
    if name_idx is None:
        return []

    results: list[MaterialFactItem] = []
    for row in table.rows:
        raw_name = _cell(row, name_idx)
        if not raw_name or len(raw_name) < MIN_NAME_LENGTH:
            continue

        mark = _cell(row, cols["position"]) or None
        quantity = parse_russian_number(_cell(row, cols["quantity"]))
        note = _cell(row, cols["note"]) or None
        designation = None
        if cols["designation"] is not None and cols["designation"] != name_idx:
            designation = _cell(row, cols["designation"]) or None

        results.append(
            _fact(
                raw_name,
                quantity,
                PIECE_UNIT,
                PIECE_COUNT_CONFIDENCE,
                gost_source=f"{raw_name} {designation or ''} {note or ''}",
                mark=mark,
                description=designation,
                note=note,
            )
        )

    return results


TABLE_EXTRACTORS: dict[TableCategory, Callable[[ParsedTable], list[MaterialFactItem]]] = {
    TableCategory.MATERIAL_QTY: extract_material_qty,
    TableCategory.ELEMENT_SPEC: extract_element_spec,
    TableCategory.SPEC_ELEMENTS: extract_spec_elements,
}


def rule_based_extract(block: ParsedBlock) -> list[MaterialFactItem]:
    """
    Extract material facts from the structured tables of a block.

    Args:
        block: Parsed block (tables are only present on TEXT blocks)

    Returns:
        Facts from every table whose category has a column mapping
    """
    results: list[MaterialFactItem] = []

    for table in block.tables:
        category = classify_table(table)
        if not is_extractable_category(category):
            continue

        extractor = TABLE_EXTRACTORS.get(category)
        if extractor is None:
            continue

        items = extractor(table)
        logger.debug(
            "Block %s: %s table -> %d facts", block.uid, category.value, len(items)
        )
        results.extend(items)

    return results
