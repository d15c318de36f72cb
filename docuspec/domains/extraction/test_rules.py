"""
Tests for rule-based extraction from structured schedules.
"""

from __future__ import annotations

from docuspec.domains.parsing.models import BlockType, ParsedBlock, ParsedTable

from .rules import (
    extract_element_spec,
    extract_material_qty,
    extract_spec_elements,
    find_column_index,
    rule_based_extract,
)


def make_block(*tables: ParsedTable, block_type: BlockType = BlockType.TEXT) -> ParsedBlock:
    """Build a TEXT block holding the given tables."""
    return ParsedBlock(
        uid="AB12-CD34-EF56",
        type=block_type,
        has_table=bool(tables),
        tables=list(tables),
    )


MATERIAL_TABLE = ParsedTable(
    headers=["Наименование", "Количество", "Ед.изм."],
    rows=[
        ["Кирпич керамический", "1 692,9", "шт"],
        ["К6", "", ""],
        ["К6.1", "-", ""],
        ["Ab", "5", "шт"],
        ["Бетон B25 ГОСТ 26633-2015", "202,6", "м3"],
        ["Раствор", "-", "м3"],
        ["", "10", "кг"],
    ],
)


# --- Column Lookup Tests ---


def test_find_column_index() -> None:
    """Test substring lookup on normalized headers."""
    headers = [" Поз. ", "НАИМЕНОВАНИЕ", "Кол-во"]
    assert find_column_index(headers, "наименование") == 1
    assert find_column_index(headers, "количество", "кол") == 2
    assert find_column_index(headers, "масса") is None


def test_find_column_index_keyword_priority() -> None:
    """Test keywords are tried in order before header position."""
    headers = ["Кол.уч", "Количество"]
    assert find_column_index(headers, "количество", "кол") == 1


# --- Material Quantity Tests ---


def test_material_qty_extraction() -> None:
    """Test names, Russian numbers and units become facts."""
    items = extract_material_qty(MATERIAL_TABLE)
    names = [item.raw_name for item in items]
    assert names == ["Кирпич керамический", "Бетон B25 ГОСТ 26633-2015", "Раствор"]

    brick = items[0]
    assert brick.quantity == 1692.9
    assert brick.unit == "шт"
    assert brick.confidence == 0.95
    assert brick.canonical_name == "Кирпич керамический"
    assert brick.canonical_key == "kirpich_keramicheskiy"
    assert brick.source_snippet == "Кирпич керамический | 1692.9 шт"
    assert brick.gost is None


def test_material_qty_gost_and_decimal() -> None:
    """Test GOST detection from the name cell."""
    concrete = extract_material_qty(MATERIAL_TABLE)[1]
    assert concrete.quantity == 202.6
    assert concrete.unit == "м3"
    assert concrete.gost == "ГОСТ 26633-2015"


def test_material_qty_dash_quantity() -> None:
    """Test a dash quantity is kept as absent."""
    mortar = extract_material_qty(MATERIAL_TABLE)[2]
    assert mortar.quantity is None
    assert mortar.source_snippet == "Раствор м3"


def test_material_qty_without_name_column() -> None:
    """Test tables without a name column produce nothing."""
    table = ParsedTable(headers=["Марка", "Количество"], rows=[["ДР-1", "4"]])
    assert extract_material_qty(table) == []


def test_material_qty_short_row() -> None:
    """Test rows shorter than the header are tolerated."""
    table = ParsedTable(
        headers=["Наименование", "Количество", "Ед.изм."],
        rows=[["Песок строительный"]],
    )
    items = extract_material_qty(table)
    assert len(items) == 1
    assert items[0].quantity is None
    assert items[0].unit is None


# --- Element Spec Tests ---


def test_element_spec_extraction() -> None:
    """Test mark-based schedules are piece-counted."""
    table = ParsedTable(
        headers=["Марка", "Описание", "Кол-во", "Примечание"],
        rows=[
            ["ДР-1", "Трап водосточный", "4", "ГОСТ 1234-80"],
            ["ВР-2", "", "2", ""],
            ["X", "", "1", ""],
        ],
    )
    items = extract_element_spec(table)
    assert [item.raw_name for item in items] == ["Трап водосточный", "ВР-2"]

    drain = items[0]
    assert drain.mark == "ДР-1"
    assert drain.quantity == 4.0
    assert drain.unit == "шт"
    assert drain.confidence == 0.9
    assert drain.gost == "ГОСТ 1234-80"

    assert items[1].mark == "ВР-2"


# --- Spec Elements Tests ---


def test_spec_elements_extraction() -> None:
    """Test positional specifications keep designation and position."""
    table = ParsedTable(
        headers=["Поз.", "Обозначение", "Наименование", "Кол-во", "Примечание"],
        rows=[
            ["1", "ГОСТ 31173-2016", "Дверь стальная ДС-1", "2", ""],
            ["2", "", "Лк", "1", ""],
        ],
    )
    items = extract_spec_elements(table)
    assert len(items) == 1

    door = items[0]
    assert door.raw_name == "Дверь стальная ДС-1"
    assert door.mark == "1"
    assert door.description == "ГОСТ 31173-2016"
    assert door.gost == "ГОСТ 31173-2016"
    assert door.quantity == 2.0
    assert door.unit == "шт"
    assert door.note is None


def test_spec_elements_designation_as_name() -> None:
    """Test the designation column stands in when there is no name column."""
    table = ParsedTable(
        headers=["Поз.", "Обозначение", "Кол-во"],
        rows=[["1", "Люк ЛП-1", "3"]],
    )
    items = extract_spec_elements(table)
    assert items[0].raw_name == "Люк ЛП-1"
    assert items[0].description is None


# --- Block Extraction Tests ---


def test_rule_based_extract_dispatches_by_category() -> None:
    """Test only mapped categories produce facts."""
    floor = ParsedTable(
        headers=["Тип пола", "Данные элементов пола", "Площадь"],
        rows=[["1", "Керамогранит 10 мм", "25,0"]],
    )
    changes = ParsedTable(
        headers=["Изм.", "Кол.уч", "Лист", "№ док.", "Подп.", "Дата"],
        rows=[["1", "-", "3", "12-23", "", "01.24"]],
    )
    items = rule_based_extract(make_block(floor, changes, MATERIAL_TABLE))
    assert len(items) == 3
    assert items[0].raw_name == "Кирпич керамический"


def test_rule_based_extract_unknown_table() -> None:
    """Test unknown tables are left for the LLM."""
    table = ParsedTable(headers=["Колонка", "Значение"], rows=[["Кирпич", "100"]])
    assert rule_based_extract(make_block(table)) == []


def test_rule_based_extract_no_tables() -> None:
    """Test a block without tables yields nothing."""
    assert rule_based_extract(make_block()) == []
