"""
Tests for the Markdown document parser.
"""

from __future__ import annotations

import pytest

from .models import BlockType
from .parser import FALLBACK_BLOCK_UID, parse_document, split_table_row

SAMPLE_DOCUMENT = """# 133/23-ГК-АР1 Архитектурные решения
Сгенерировано: 2024-05-01 12:00
**Штамп:** ООО Проект

## СТРАНИЦА 1
**Лист:** 3.1
**Наименование листа:** Ведомость отделки

### BLOCK [TEXT]: AB12-CD34-EF56
#### Ведомость материалов
| Наименование | Количество | Ед.изм. |
|---|---|---|
| Кирпич керамический | 1 692,9 | шт |

### BLOCK [IMAGE]: IMG1-0002-XYZ9
Схема расположения

## СТРАНИЦА 2

### BLOCK [TEXT]: ERR1-0003-AAAA
[Ошибка распознавания: timeout]
"""


# --- Header Tests ---


def test_header_metadata() -> None:
    """Test title, generated, stamp and document code."""
    doc = parse_document(SAMPLE_DOCUMENT)
    assert doc.title == "133/23-ГК-АР1 Архитектурные решения"
    assert doc.generated == "2024-05-01 12:00"
    assert doc.stamp_text == "ООО Проект"
    assert doc.doc_code == "133/23-ГК-АР1"


def test_header_first_match_wins() -> None:
    """Test repeated header labels keep the first value."""
    text = "# Title\nСгенерировано: first\nСгенерировано: second\n**Штамп:** A\n**Штамп:** B\n"
    doc = parse_document(text)
    assert doc.generated == "first"
    assert doc.stamp_text == "A"


def test_header_scan_limited_to_ten_lines() -> None:
    """Test labels beyond the first ten lines are ignored."""
    text = "# Title\n" + "\n" * 10 + "Сгенерировано: late\n"
    doc = parse_document(text)
    assert doc.generated is None


def test_doc_code_missing() -> None:
    """Test title without a code leaves doc_code empty."""
    doc = parse_document("# Просто заголовок\n### BLOCK [TEXT]: A-B-C\ntext")
    assert doc.title == "Просто заголовок"
    assert doc.doc_code is None


# --- Page and Block Tests ---


def test_pages_and_sheet_metadata() -> None:
    """Test page numbers and sheet labels."""
    doc = parse_document(SAMPLE_DOCUMENT)
    assert [p.page_no for p in doc.pages] == [1, 2]
    assert doc.pages[0].sheet_label == "3.1"
    assert doc.pages[0].sheet_name == "Ведомость отделки"
    assert doc.pages[1].sheet_label is None


def test_blocks_and_types() -> None:
    """Test block segmentation and variants."""
    doc = parse_document(SAMPLE_DOCUMENT)
    first_page = doc.pages[0]
    assert [b.uid for b in first_page.blocks] == ["AB12-CD34-EF56", "IMG1-0002-XYZ9"]
    assert first_page.blocks[0].type == BlockType.TEXT
    assert first_page.blocks[1].type == BlockType.IMAGE
    assert first_page.blocks[1].content == "Схема расположения"


def test_block_table_and_section() -> None:
    """Test table detection inside a TEXT block."""
    block = parse_document(SAMPLE_DOCUMENT).pages[0].blocks[0]
    assert block.has_table is True
    assert block.section_title == "Ведомость материалов"
    assert len(block.tables) == 1

    table = block.tables[0]
    assert table.headers == ["Наименование", "Количество", "Ед.изм."]
    assert table.rows == [["Кирпич керамический", "1 692,9", "шт"]]
    assert table.section_context == "Ведомость материалов"


def test_error_block() -> None:
    """Test error marker detection."""
    doc = parse_document(SAMPLE_DOCUMENT)
    block = doc.pages[1].blocks[0]
    assert block.has_error is True
    assert block.error_text == "[Ошибка распознавания: timeout]"
    assert doc.error_blocks == 1


def test_block_before_any_page_creates_page_one() -> None:
    """Test blocks declared before a page marker land on page 1."""
    doc = parse_document("### BLOCK [TEXT]: AAA-BBB-CCC\nhello\n## СТРАНИЦА 5\n")
    assert [p.page_no for p in doc.pages] == [1, 5]
    assert doc.pages[0].blocks[0].content == "hello"
    assert doc.pages[1].blocks == []


def test_duplicate_and_unordered_pages_accepted() -> None:
    """Test page numbers are taken as given."""
    text = "## СТРАНИЦА 3\n## СТРАНИЦА 1\n## СТРАНИЦА 3\n"
    doc = parse_document(text)
    assert [p.page_no for p in doc.pages] == [3, 1, 3]
    assert doc.total_blocks == 0


def test_metadata_lines_inside_block_are_content() -> None:
    """Test sheet labels after a block marker stay in the block."""
    text = "## СТРАНИЦА 1\n### BLOCK [TEXT]: A1-B2-C3\n**Лист:** 7\n"
    doc = parse_document(text)
    assert doc.pages[0].sheet_label is None
    assert doc.pages[0].blocks[0].content == "**Лист:** 7"


def test_invalid_block_uid_is_content() -> None:
    """Test a block marker with a lowercase uid is not a marker."""
    text = "### BLOCK [TEXT]: AAA-BBB-CCC\n### BLOCK [TEXT]: aaa-bbb-ccc\n"
    doc = parse_document(text)
    assert doc.total_blocks == 1
    assert doc.pages[0].blocks[0].content == "### BLOCK [TEXT]: aaa-bbb-ccc"


# --- Section Title Tests ---


def test_section_title_first_heading_wins() -> None:
    """Test only the first level 4-6 heading sets the block section."""
    text = (
        "### BLOCK [TEXT]: A-B-C\n"
        "# not a section\n"
        "##### Первый\n"
        "###### Второй\n"
    )
    block = parse_document(text).pages[0].blocks[0]
    assert block.section_title == "Первый"


def test_section_context_per_table() -> None:
    """Test each table snapshots the most recent heading."""
    text = (
        "### BLOCK [TEXT]: A-B-C\n"
        "| a | b |\n"
        "| 1 | 2 |\n"
        "#### Раздел 1\n"
        "| c | d |\n"
        "|---|---|\n"
        "| 3 | 4 |\n"
        "#### Раздел 2\n"
        "| e | f |\n"
        "| 5 | 6 |\n"
    )
    block = parse_document(text).pages[0].blocks[0]
    assert block.section_title == "Раздел 1"
    assert [t.section_context for t in block.tables] == [None, "Раздел 1", "Раздел 2"]
    assert block.tables[0].rows == [["1", "2"]]
    assert block.tables[1].rows == [["3", "4"]]


# --- Table Tests ---


def test_single_row_is_not_a_table() -> None:
    """Test a lone pipe row is discarded but still flags has_table."""
    text = "### BLOCK [TEXT]: A-B-C\n| only | one |\ntext after\n"
    block = parse_document(text).pages[0].blocks[0]
    assert block.has_table is True
    assert block.tables == []


def test_table_without_separator() -> None:
    """Test row 1 is data when it is not a separator."""
    text = "### BLOCK [TEXT]: A-B-C\n| h1 | h2 |\n| x | y |\n| z | w |\n"
    table = parse_document(text).pages[0].blocks[0].tables[0]
    assert table.headers == ["h1", "h2"]
    assert table.rows == [["x", "y"], ["z", "w"]]


def test_header_and_separator_only() -> None:
    """Test a table with no data rows."""
    text = "### BLOCK [TEXT]: A-B-C\n| h1 | h2 |\n|:--|--:|\n"
    table = parse_document(text).pages[0].blocks[0].tables[0]
    assert table.headers == ["h1", "h2"]
    assert table.rows == []


def test_split_table_row() -> None:
    """Test cell splitting strips one pipe on each side."""
    assert split_table_row("| a | b |") == ["a", "b"]
    assert split_table_row("|| a |") == ["", "a"]
    assert split_table_row("| a |  |") == ["a", ""]


# --- Fallback Tests ---


@pytest.mark.parametrize(
    "text",
    ["", "plain text without markers", "# Only a title\nline", "| a | b |"],
)
def test_parser_is_total(text: str) -> None:
    """Test any input yields one page with one block."""
    doc = parse_document(text)
    assert len(doc.pages) == 1
    assert doc.pages[0].page_no == 1
    assert len(doc.pages[0].blocks) == 1
    assert doc.pages[0].blocks[0].uid == FALLBACK_BLOCK_UID
    assert doc.total_blocks == 1


def test_fallback_block_detection() -> None:
    """Test fallback block applies table/error detection to the whole text."""
    text = "intro\n| a | b |\n[Ошибка OCR]"
    block = parse_document(text).pages[0].blocks[0]
    assert block.type == BlockType.TEXT
    assert block.content == text
    assert block.has_table is True
    assert block.has_error is True
    assert block.tables == []


# --- Accounting Tests ---


def test_block_accounting_invariant() -> None:
    """Test total and error block counts match the pages."""
    doc = parse_document(SAMPLE_DOCUMENT)
    blocks = [b for _, b in doc.iter_blocks()]
    assert doc.total_blocks == len(blocks) == 3
    assert doc.error_blocks == sum(1 for b in blocks if "[Ошибка" in b.content)


def test_document_is_immutable() -> None:
    """Test ParsedDocument is frozen."""
    doc = parse_document(SAMPLE_DOCUMENT)
    with pytest.raises(Exception):  # ValidationError for frozen model
        doc.title = "changed"  # type: ignore
