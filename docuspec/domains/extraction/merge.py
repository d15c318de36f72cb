"""
Merge - Reconcile rule-based and LLM facts for one block.
"""

from __future__ import annotations

from collections.abc import Iterable

from .models import MaterialFactItem
from .normalize import format_quantity

__all__ = ["dedup_key", "merge_results", "llm_unique_items"]


def dedup_key(item: MaterialFactItem) -> str:
    """`name|qty|unit` equality key (case- and edge-whitespace-insensitive)."""
    name = item.raw_name.lower().strip()
    unit = (item.unit or "").lower().strip()
    return f"{name}|{format_quantity(item.quantity)}|{unit}"


def merge_results(
    rule_items: Iterable[MaterialFactItem],
    llm_items: Iterable[MaterialFactItem],
) -> list[MaterialFactItem]:
    """
    Ordered, deduplicated union of both result sets.

    Rule-based facts come first and win over an LLM fact with the same key.
    """
    seen: set[str] = set()
    merged: list[MaterialFactItem] = []

    for source in (rule_items, llm_items):
        for item in source:
            key = dedup_key(item)
            if key not in seen:
                seen.add(key)
                merged.append(item)

    return merged


def llm_unique_items(
    rule_items: Iterable[MaterialFactItem],
    merged: Iterable[MaterialFactItem],
) -> list[MaterialFactItem]:
    """Merged facts not already covered by the saved rule-based facts."""
    rule_keys = {dedup_key(item) for item in rule_items}
    return [item for item in merged if dedup_key(item) not in rule_keys]
