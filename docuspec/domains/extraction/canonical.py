"""
Canonical Keys - Transliterated slug identifiers for material names.

Facts that refer to the same real-world material share a canonical key,
which is what the BOM rollup groups by.

Example:
    >>> generate_canonical_key('Кирпич керамический "М150" (или аналог)')
    'kirpich_keramicheskiy_m150'
"""

from __future__ import annotations

import re

__all__ = ["RU_TO_LAT", "transliterate", "slugify", "generate_canonical_key"]

RU_TO_LAT: dict[str, str] = {
    "а": "a", "б": "b", "в": "v", "г": "g", "д": "d", "е": "e", "ё": "yo",
    "ж": "zh", "з": "z", "и": "i", "й": "y", "к": "k", "л": "l", "м": "m",
    "н": "n", "о": "o", "п": "p", "р": "r", "с": "s", "т": "t", "у": "u",
    "ф": "f", "х": "kh", "ц": "ts", "ч": "ch", "ш": "sh", "щ": "shch",
    "ъ": "", "ы": "y", "ь": "", "э": "e", "ю": "yu", "я": "ya",
}

# Applied in order; the longer phrases must go first
NOISE_PATTERNS = [
    re.compile(r"\s*\(или аналог\)", re.IGNORECASE),
    re.compile(r"\s*или аналог", re.IGNORECASE),
    re.compile(r"\s*аналог", re.IGNORECASE),
    re.compile(r"[\"«»]"),
]

NON_SLUG_RE = re.compile(r"[^a-z0-9]+")


def transliterate(text: str) -> str:
    """Lower-case and map Cyrillic letters to Latin."""
    return "".join(RU_TO_LAT.get(char, char) for char in text.lower())


def slugify(text: str) -> str:
    """Transliterate and collapse everything outside [a-z0-9] into single underscores."""
    return NON_SLUG_RE.sub("_", transliterate(text)).strip("_")


def generate_canonical_key(name: str) -> str:
    """Generate a canonical key from a canonical name (or raw name as fallback)."""
    cleaned = name
    for pattern in NOISE_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    return slugify(cleaned.strip())
