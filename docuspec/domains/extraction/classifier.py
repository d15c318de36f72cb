"""
Table Classifier - Header keywords to schedule category.

Rules are evaluated top to bottom and the first match wins. Several table
shapes satisfy more than one rule (a `Поз | Наименование | Кол-во` table
matches both spec_elements rules), so the order of CLASSIFICATION_RULES
is part of the behavior.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from docuspec.domains.parsing.models import ParsedTable

from .models import TableCategory

__all__ = [
    "CLASSIFICATION_RULES",
    "NON_EXTRACTABLE_CATEGORIES",
    "RULE_EXTRACTED_CATEGORIES",
    "classify_headers",
    "classify_table",
    "is_extractable_category",
]


class Scope(str, Enum):
    """Where a keyword is searched."""

    HEADER = "header"  # some single header contains the keyword
    JOINED = "joined"  # the space-joined header text contains the keyword


@dataclass(frozen=True)
class Term:
    """Matches when any keyword is found within the scope."""

    keywords: tuple[str, ...]
    scope: Scope = Scope.HEADER

    def matches(self, headers: Sequence[str], joined: str) -> bool:
        if self.scope == Scope.JOINED:
            return any(kw in joined for kw in self.keywords)
        return any(kw in header for header in headers for kw in self.keywords)


@dataclass(frozen=True)
class ClassificationRule:
    """Category assigned when any alternative has all of its terms matching."""

    category: TableCategory
    alternatives: tuple[tuple[Term, ...], ...]

    def matches(self, headers: Sequence[str], joined: str) -> bool:
        return any(
            all(term.matches(headers, joined) for term in terms)
            for terms in self.alternatives
        )


def _h(*keywords: str) -> Term:
    return Term(keywords, Scope.HEADER)


def _j(*keywords: str) -> Term:
    return Term(keywords, Scope.JOINED)


CLASSIFICATION_RULES: tuple[ClassificationRule, ...] = (
    # Change log (Изм. / Подп. / Дата)
    ClassificationRule(TableCategory.CHANGE_LOG, ((_h("изм"), _h("подп", "дата")),)),
    # Room schedule (экспликация помещений)
    ClassificationRule(
        TableCategory.ROOM_SCHEDULE,
        ((_h("№ пом", "номер пом"), _h("площадь")),),
    ),
    # Наименование + Количество + Ед.изм.
    ClassificationRule(
        TableCategory.MATERIAL_QTY,
        ((_h("наименование"), _h("количество", "кол-во", "кол"), _h("ед", "изм")),),
    ),
    # Наименование + Количество without a unit column
    ClassificationRule(
        TableCategory.MATERIAL_QTY,
        ((_h("наименование"), _h("количество")),),
    ),
    # Поз. + Обозначение + Наименование + Кол-во (doors, hatches, railings)
    ClassificationRule(
        TableCategory.SPEC_ELEMENTS,
        ((_h("поз"), _h("обозначение", "наименование"), _h("кол")),),
    ),
    # Марка + Кол-во (drainage, ventilation grilles)
    ClassificationRule(TableCategory.ELEMENT_SPEC, ((_h("марка"), _h("кол", "шт")),)),
    # Тип пола + Данные элементов
    ClassificationRule(
        TableCategory.FLOOR_SPEC,
        ((_j("тип пола"),), (_h("пол"), _h("данные элементов"))),
    ),
    # Тип покрытия + Данные элементов
    ClassificationRule(
        TableCategory.ROOF_SPEC,
        ((_j("тип покрытия"),), (_j("покрыт"), _h("данные элементов"))),
    ),
    # Broader spec elements: Поз + Наименование/Назначение
    ClassificationRule(
        TableCategory.SPEC_ELEMENTS,
        ((_h("поз"), _h("наименование", "назначение")),),
    ),
)

NON_EXTRACTABLE_CATEGORIES = frozenset(
    {TableCategory.CHANGE_LOG, TableCategory.ROOM_SCHEDULE}
)

# Categories whose columns map directly onto fact fields
RULE_EXTRACTED_CATEGORIES = frozenset(
    {TableCategory.MATERIAL_QTY, TableCategory.ELEMENT_SPEC, TableCategory.SPEC_ELEMENTS}
)


def classify_headers(headers: Sequence[str]) -> TableCategory:
    """Classify a table by its header cells."""
    normalized = [header.lower().strip() for header in headers]
    joined = " ".join(normalized)

    for rule in CLASSIFICATION_RULES:
        if rule.matches(normalized, joined):
            return rule.category
    return TableCategory.UNKNOWN


def classify_table(table: ParsedTable) -> TableCategory:
    """Classify a parsed table. Recomputed on every call."""
    return classify_headers(table.headers)


def is_extractable_category(category: TableCategory) -> bool:
    """Check if a table category may contain materials."""
    return category not in NON_EXTRACTABLE_CATEGORIES
