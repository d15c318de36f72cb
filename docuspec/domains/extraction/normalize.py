"""
Value normalization for Russian schedules: numbers, GOST references, snippets.
"""

from __future__ import annotations

import re

__all__ = ["parse_russian_number", "format_quantity", "extract_gost", "build_snippet"]

WHITESPACE_RE = re.compile(r"\s")
# Leading float prefix, same acceptance as JavaScript parseFloat
FLOAT_PREFIX_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
GOST_RE = re.compile(
    r"(?:ГОСТ|GOST)\s*(?:Р\s*)?[\d.\-]+(?:\s*[\-–]\s*\d+)?",
    re.IGNORECASE,
)


def parse_russian_number(text: str | None) -> float | None:
    """
    Parse a number written in Russian convention.

    Spaces are thousands separators and the comma is the decimal mark:
    "1 692,9" -> 1692.9, "202,6" -> 202.6. Empty, "-" and non-numeric
    cells give None.
    """
    if text is None:
        return None
    stripped = text.strip()
    if not stripped or stripped == "-":
        return None

    cleaned = WHITESPACE_RE.sub("", stripped).replace(",", ".", 1)
    match = FLOAT_PREFIX_RE.match(cleaned)
    if not match:
        return None
    return float(match.group(0))


def format_quantity(quantity: float | None) -> str:
    """Render a quantity as its shortest numeric string (100.0 -> "100")."""
    if quantity is None:
        return ""
    value = float(quantity)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def extract_gost(text: str) -> str | None:
    """Return the first GOST reference in text."""
    match = GOST_RE.search(text)
    return match.group(0) if match else None


def build_snippet(name: str, quantity: float | None, unit: str | None) -> str:
    """Audit string "<name> | <qty> <unit>" for rule-based facts."""
    snippet = name
    if quantity is not None:
        snippet += f" | {format_quantity(quantity)}"
    if unit:
        snippet += f" {unit}"
    return snippet
