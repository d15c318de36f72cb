"""
Markdown Document Parser - Raw text to pages, blocks and tables.

The input is the Markdown rendering produced by the OCR stage:

    # 133/23-ГК-АР1 Архитектурные решения
    Сгенерировано: 2024-05-01 12:00
    **Штамп:** ...

    ## СТРАНИЦА 1
    **Лист:** 3.1
    **Наименование листа:** Спецификация

    ### BLOCK [TEXT]: 7F3A-K2L9-00QX
    #### Ведомость материалов
    | Наименование | Количество | Ед.изм. |
    |---|---|---|
    | Кирпич керамический | 1 692,9 | шт |

Parsing is total: malformed input degrades to fewer structures or to a
single fallback block, never to an exception.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from .models import BlockType, ParsedBlock, ParsedDocument, ParsedPage, ParsedTable

logger = logging.getLogger(__name__)

__all__ = ["MarkdownDocumentParser", "parse_document", "FALLBACK_BLOCK_UID"]

PAGE_RE = re.compile(r"^## СТРАНИЦА (\d+)$")
SHEET_LABEL_RE = re.compile(r"^\*\*Лист:\*\*\s*(.+)$")
SHEET_NAME_RE = re.compile(r"^\*\*Наименование листа:\*\*\s*(.+)$")
BLOCK_RE = re.compile(r"^### BLOCK \[(TEXT|IMAGE)\]:\s*([A-Z0-9]+-[A-Z0-9]+-[A-Z0-9]+)$")
TABLE_ROW_RE = re.compile(r"^\|.+\|$")
TABLE_SEPARATOR_RE = re.compile(r"^\|[\s\-:|]+\|$")
ERROR_RE = re.compile(r"\[Ошибка[^\]]*\]")
SECTION_RE = re.compile(r"^#{4,6}\s+(.+)$")
STAMP_RE = re.compile(r"^\*\*Штамп:\*\*\s*(.+)$")
GENERATED_RE = re.compile(r"^Сгенерировано:\s*(.+)$")
DOC_CODE_RE = re.compile(r"(\d+/\d+-[А-Яа-яA-Za-z]+-[А-Яа-яA-Za-z0-9]+)")

FALLBACK_BLOCK_UID = "FALLBACK-0000-000"
HEADER_SCAN_LINES = 10


class _Cursor(Enum):
    NO_PAGE = "no_page"
    PAGE_METADATA = "page_metadata"
    IN_BLOCK = "in_block"


@dataclass
class _OpenBlock:
    uid: str
    type: BlockType
    lines: list[str] = field(default_factory=list)


class MarkdownDocumentParser:
    """
    Single-pass line scanner over the document Markdown.

    Example:
        >>> parser = MarkdownDocumentParser()
        >>> document = parser.parse(text)
        >>> document.total_blocks
        12
    """

    def __init__(self) -> None:
        self._pages: list[ParsedPage] = []
        self._page: ParsedPage | None = None
        self._block: _OpenBlock | None = None
        self._cursor = _Cursor.NO_PAGE

    def parse(self, text: str) -> ParsedDocument:
        """
        Parse document text.

        Args:
            text: Raw Markdown document

        Returns:
            Parsed document (fallback single-block document if no markers)
        """
        self._pages = []
        self._page = None
        self._block = None
        self._cursor = _Cursor.NO_PAGE

        lines = text.replace("\r\n", "\n").split("\n")
        title, generated, stamp_text, doc_code = self._parse_header(lines)

        for line in lines:
            self._consume(line)
        self._finalize_page()

        if not self._pages:
            logger.debug("No page or block markers found, using fallback block")
            self._pages.append(self._fallback_page(text))

        total_blocks = 0
        error_blocks = 0
        for page in self._pages:
            for block in page.blocks:
                total_blocks += 1
                if block.has_error:
                    error_blocks += 1

        return ParsedDocument(
            title=title,
            generated=generated,
            stamp_text=stamp_text,
            doc_code=doc_code,
            pages=self._pages,
            total_blocks=total_blocks,
            error_blocks=error_blocks,
        )

    @staticmethod
    def _parse_header(
        lines: list[str],
    ) -> tuple[str, str | None, str | None, str | None]:
        """Title, generation time, stamp and document code."""
        title = ""
        doc_code: str | None = None
        if lines and lines[0].startswith("# "):
            title = lines[0][2:]
            code_match = DOC_CODE_RE.search(title)
            if code_match:
                doc_code = code_match.group(1)

        generated: str | None = None
        stamp_text: str | None = None
        for line in lines[1:HEADER_SCAN_LINES]:
            if generated is None:
                gen_match = GENERATED_RE.match(line)
                if gen_match:
                    generated = gen_match.group(1).strip()
            if stamp_text is None:
                stamp_match = STAMP_RE.match(line)
                if stamp_match:
                    stamp_text = stamp_match.group(1).strip()

        return title, generated, stamp_text, doc_code

    def _consume(self, line: str) -> None:
        page_match = PAGE_RE.match(line)
        if page_match:
            self._finalize_page()
            self._page = ParsedPage(page_no=int(page_match.group(1)))
            self._pages.append(self._page)
            self._cursor = _Cursor.PAGE_METADATA
            return

        if self._cursor == _Cursor.PAGE_METADATA and self._page is not None:
            label_match = SHEET_LABEL_RE.match(line)
            if label_match:
                self._page.sheet_label = label_match.group(1).strip()
                return
            name_match = SHEET_NAME_RE.match(line)
            if name_match:
                self._page.sheet_name = name_match.group(1).strip()
                return
            if not line.strip():
                return

        block_match = BLOCK_RE.match(line)
        if block_match:
            self._finalize_block()
            if self._page is None:
                # Blocks may precede the first declared page
                self._page = ParsedPage(page_no=1)
                self._pages.append(self._page)
            self._block = _OpenBlock(
                uid=block_match.group(2),
                type=BlockType(block_match.group(1)),
            )
            self._cursor = _Cursor.IN_BLOCK
            return

        if self._block is not None:
            self._block.lines.append(line)

    def _finalize_block(self) -> None:
        if self._block is None or self._page is None:
            return
        self._page.blocks.append(
            build_block(self._block.uid, self._block.type, self._block.lines)
        )
        self._block = None

    def _finalize_page(self) -> None:
        self._finalize_block()
        self._page = None
        self._cursor = _Cursor.NO_PAGE

    @staticmethod
    def _fallback_page(text: str) -> ParsedPage:
        lines = text.split("\n")
        error_match = ERROR_RE.search(text)
        block = ParsedBlock(
            uid=FALLBACK_BLOCK_UID,
            type=BlockType.TEXT,
            content=text,
            has_table=any(TABLE_ROW_RE.match(line) for line in lines),
            has_error=error_match is not None,
            error_text=error_match.group(0) if error_match else None,
        )
        return ParsedPage(page_no=1, blocks=[block])


def build_block(uid: str, block_type: BlockType, content_lines: list[str]) -> ParsedBlock:
    """Build a block from its accumulated raw lines."""
    content = "\n".join(content_lines).strip()

    error_match = ERROR_RE.search(content)

    section_title: str | None = None
    for line in content_lines:
        section_match = SECTION_RE.match(line)
        if section_match and section_match.group(1).strip():
            section_title = section_match.group(1).strip()
            break

    has_table = any(TABLE_ROW_RE.match(line) for line in content_lines)
    tables = parse_tables(content_lines) if has_table else []

    return ParsedBlock(
        uid=uid,
        type=block_type,
        content=content,
        has_table=has_table,
        has_error=error_match is not None,
        error_text=error_match.group(0) if error_match else None,
        section_title=section_title,
        tables=tables,
    )


def parse_tables(lines: list[str]) -> list[ParsedTable]:
    """
    Collect every pipe table in a block.

    Each table records the most recent heading seen before it. A single
    pipe-delimited line is not a table.
    """
    tables: list[ParsedTable] = []
    current_section: str | None = None
    i = 0

    while i < len(lines):
        section_match = SECTION_RE.match(lines[i])
        if section_match:
            heading = section_match.group(1).strip()
            if heading:
                current_section = heading
            i += 1
            continue

        if not TABLE_ROW_RE.match(lines[i]):
            i += 1
            continue

        run: list[str] = []
        while i < len(lines) and TABLE_ROW_RE.match(lines[i]):
            run.append(lines[i])
            i += 1

        if len(run) < 2:
            continue

        tables.append(_parse_markdown_table(run, current_section))

    return tables


def _parse_markdown_table(run: list[str], section_context: str | None) -> ParsedTable:
    headers = split_table_row(run[0])

    data_start = 2 if TABLE_SEPARATOR_RE.match(run[1]) else 1

    rows = [
        split_table_row(line)
        for line in run[data_start:]
        if not TABLE_SEPARATOR_RE.match(line)
    ]

    return ParsedTable(headers=headers, rows=rows, section_context=section_context)


def split_table_row(line: str) -> list[str]:
    """Split a `| a | b |` row into trimmed cells."""
    if line.startswith("|"):
        line = line[1:]
    if line.endswith("|"):
        line = line[:-1]
    return [cell.strip() for cell in line.split("|")]


def parse_document(text: str) -> ParsedDocument:
    """Parse raw document Markdown. Never raises on malformed input."""
    return MarkdownDocumentParser().parse(text)
