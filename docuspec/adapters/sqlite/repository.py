"""
SQLite Repository - Document, block and material fact storage.

Features:
- Async operations via aiosqlite
- Parsed document structure (pages, blocks)
- Material facts with source tags and user verification
- BOM rollup view (bom_summary)
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import aiosqlite

from docuspec.config.errors import ErrorCode, StorageError
from docuspec.domains.extraction.canonical import generate_canonical_key
from docuspec.domains.extraction.models import FactSource, MaterialFactItem
from docuspec.domains.orchestration.models import DocumentStatus
from docuspec.domains.parsing.models import ParsedDocument

from .models import BomLine

logger = logging.getLogger(__name__)

__all__ = ["SQLiteRepository"]

SCHEMA = """
    -- Documents table
    CREATE TABLE IF NOT EXISTS documents (
        id TEXT PRIMARY KEY,
        filename TEXT NOT NULL,
        title TEXT,
        doc_code TEXT,
        stamp_text TEXT,
        status TEXT NOT NULL DEFAULT 'uploaded'
            CHECK (status IN ('uploaded','parsing','extracting','done','error','has_errors')),
        error_blocks_count INTEGER NOT NULL DEFAULT 0,
        page_count INTEGER,
        block_count INTEGER,
        error_message TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );

    -- Pages (page numbers may repeat in malformed input)
    CREATE TABLE IF NOT EXISTS doc_pages (
        id TEXT PRIMARY KEY,
        doc_id TEXT NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
        page_no INTEGER NOT NULL,
        sheet_label TEXT,
        sheet_name TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );

    -- Blocks
    CREATE TABLE IF NOT EXISTS doc_blocks (
        id TEXT PRIMARY KEY,
        doc_id TEXT NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
        page_id TEXT NOT NULL REFERENCES doc_pages(id) ON DELETE CASCADE,
        block_uid TEXT NOT NULL,
        block_type TEXT NOT NULL CHECK (block_type IN ('TEXT','IMAGE')),
        content TEXT NOT NULL,
        has_table INTEGER NOT NULL DEFAULT 0,
        has_error INTEGER NOT NULL DEFAULT 0,
        error_text TEXT,
        section_title TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (doc_id, block_uid)
    );

    -- Material facts
    CREATE TABLE IF NOT EXISTS material_facts (
        id TEXT PRIMARY KEY,
        doc_id TEXT NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
        block_id TEXT NOT NULL REFERENCES doc_blocks(id) ON DELETE CASCADE,
        raw_name TEXT NOT NULL,
        canonical_name TEXT,
        canonical_key TEXT,
        quantity REAL,
        unit TEXT,
        mark TEXT,
        gost TEXT,
        description TEXT,
        note TEXT,
        source_snippet TEXT,
        source TEXT CHECK (source IN ('rule_based','llm')),
        confidence REAL NOT NULL DEFAULT 1.0,
        user_verified INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );

    -- Indexes
    CREATE INDEX IF NOT EXISTS idx_doc_pages_doc_id ON doc_pages(doc_id);
    CREATE INDEX IF NOT EXISTS idx_doc_blocks_doc_id ON doc_blocks(doc_id);
    CREATE INDEX IF NOT EXISTS idx_doc_blocks_page_id ON doc_blocks(page_id);
    CREATE INDEX IF NOT EXISTS idx_material_facts_doc_id ON material_facts(doc_id);
    CREATE INDEX IF NOT EXISTS idx_material_facts_block_id ON material_facts(block_id);
    CREATE INDEX IF NOT EXISTS idx_material_facts_canonical_key ON material_facts(canonical_key);

    -- Aggregated BOM
    CREATE VIEW IF NOT EXISTS bom_summary AS
    SELECT
        mf.doc_id,
        mf.canonical_key,
        MAX(mf.canonical_name) AS canonical_name,
        mf.unit,
        SUM(mf.quantity) AS total_qty,
        COUNT(*) AS fact_count,
        GROUP_CONCAT(DISTINCT mf.block_id) AS source_block_ids,
        MIN(mf.user_verified) AS all_verified
    FROM material_facts mf
    WHERE mf.canonical_key IS NOT NULL
    GROUP BY mf.doc_id, mf.canonical_key, mf.unit;
"""


def _new_id() -> str:
    return str(uuid.uuid4())


class SQLiteRepository:
    """
    SQLite repository for parsed documents and material facts.

    Implements the FactStore contract used by the extraction pipeline.

    Example:
        >>> repo = SQLiteRepository("data/docuspec.db")
        >>> await repo.initialize()
        >>> doc_id = await repo.save_parsed_document("ar1.md", parse_document(text))
        >>> bom = await repo.get_bom(doc_id)
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Initialize repository.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection: aiosqlite.Connection | None = None

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create database connection."""
        if self._connection is None:
            try:
                self._connection = await aiosqlite.connect(str(self.db_path))
            except aiosqlite.Error as e:
                raise StorageError(
                    f"Cannot open database {self.db_path}: {e}",
                    code=ErrorCode.STORAGE_CONNECTION_FAILED,
                ) from e
            self._connection.row_factory = aiosqlite.Row
            await self._connection.execute("PRAGMA foreign_keys = ON")
        return self._connection

    async def initialize(self) -> None:
        """Initialize database schema."""
        conn = await self._get_connection()
        try:
            await conn.executescript(SCHEMA)
            await conn.commit()
        except aiosqlite.Error as e:
            raise StorageError(
                f"Failed to initialize schema: {e}",
                code=ErrorCode.STORAGE_CONNECTION_FAILED,
            ) from e
        logger.info("Database initialized: %s", self.db_path)

    # --- Documents ---

    async def save_parsed_document(self, filename: str, parsed: ParsedDocument) -> str:
        """
        Store a parsed document with its pages and blocks.

        Status is `has_errors` when any block failed recognition, else `done`.

        Returns:
            Document ID
        """
        conn = await self._get_connection()
        doc_id = _new_id()
        status = DocumentStatus.HAS_ERRORS if parsed.error_blocks > 0 else DocumentStatus.DONE

        try:
            await conn.execute(
                """
                INSERT INTO documents
                (id, filename, title, doc_code, stamp_text, status,
                 error_blocks_count, page_count, block_count)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    doc_id,
                    filename,
                    parsed.title,
                    parsed.doc_code,
                    parsed.stamp_text,
                    status.value,
                    parsed.error_blocks,
                    parsed.page_count,
                    parsed.total_blocks,
                ),
            )

            seen_uids: set[str] = set()
            for page in parsed.pages:
                page_id = _new_id()
                await conn.execute(
                    """
                    INSERT INTO doc_pages (id, doc_id, page_no, sheet_label, sheet_name)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (page_id, doc_id, page.page_no, page.sheet_label, page.sheet_name),
                )

                for block in page.blocks:
                    if block.uid in seen_uids:
                        logger.warning(
                            "Duplicate block uid %s in %s, keeping first", block.uid, filename
                        )
                        continue
                    seen_uids.add(block.uid)
                    await conn.execute(
                        """
                        INSERT INTO doc_blocks
                        (id, doc_id, page_id, block_uid, block_type, content,
                         has_table, has_error, error_text, section_title)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            _new_id(),
                            doc_id,
                            page_id,
                            block.uid,
                            block.type.value,
                            block.content,
                            int(block.has_table),
                            int(block.has_error),
                            block.error_text,
                            block.section_title,
                        ),
                    )

            await conn.commit()
        except aiosqlite.Error as e:
            await conn.rollback()
            raise StorageError(f"Failed to save document {filename}: {e}") from e

        logger.info(
            "Saved document %s (%s): %d pages, %d blocks, %d with errors",
            doc_id,
            filename,
            parsed.page_count,
            parsed.total_blocks,
            parsed.error_blocks,
        )
        return doc_id

    async def get_document(self, doc_id: str) -> dict[str, Any] | None:
        """Get document by ID."""
        rows = await self._fetch("SELECT * FROM documents WHERE id = ?", (doc_id,))
        return rows[0] if rows else None

    async def list_documents(self) -> list[dict[str, Any]]:
        """List documents, newest first."""
        return await self._fetch("SELECT * FROM documents ORDER BY created_at DESC, rowid DESC")

    async def get_blocks(self, doc_id: str) -> list[dict[str, Any]]:
        """Get blocks of a document in page order, with their page number."""
        rows = await self._fetch(
            """
            SELECT b.*, p.page_no
            FROM doc_blocks b
            JOIN doc_pages p ON b.page_id = p.id
            WHERE b.doc_id = ?
            ORDER BY p.rowid, b.rowid
            """,
            (doc_id,),
        )
        for row in rows:
            row["has_table"] = bool(row["has_table"])
            row["has_error"] = bool(row["has_error"])
        return rows

    async def set_document_status(
        self,
        doc_id: str,
        status: DocumentStatus,
        error_message: str | None = None,
    ) -> None:
        """Update document status (clears the error message unless one is given)."""
        cursor = await self._write(
            """
            UPDATE documents
            SET status = ?, error_message = ?, updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
            """,
            (status.value, error_message, doc_id),
            f"Failed to update status of document {doc_id}",
        )
        if cursor.rowcount == 0:
            raise StorageError(
                f"Document not found: {doc_id}",
                code=ErrorCode.DOCUMENT_NOT_FOUND,
            )
        logger.debug("Document %s -> %s", doc_id, status.value)

    # --- Facts ---

    async def clear_facts(self, doc_id: str) -> None:
        """Delete every fact of a document."""
        cursor = await self._write(
            "DELETE FROM material_facts WHERE doc_id = ?",
            (doc_id,),
            f"Failed to clear facts of document {doc_id}",
        )
        logger.debug("Cleared %d facts of document %s", cursor.rowcount, doc_id)

    async def get_block_ids(self, doc_id: str) -> dict[str, str]:
        """Map block uids to block IDs."""
        rows = await self._fetch(
            "SELECT id, block_uid FROM doc_blocks WHERE doc_id = ?", (doc_id,)
        )
        return {row["block_uid"]: row["id"] for row in rows}

    async def insert_facts(
        self,
        doc_id: str,
        block_id: str,
        items: Sequence[MaterialFactItem],
        source: FactSource,
    ) -> int:
        """
        Insert facts for one block.

        Missing canonical names fall back to the raw name, missing keys are
        derived from the raw name.

        Returns:
            Number of rows written
        """
        if not items:
            return 0

        rows = [
            (
                _new_id(),
                doc_id,
                block_id,
                item.raw_name,
                item.canonical_name or item.raw_name,
                item.canonical_key or generate_canonical_key(item.raw_name),
                item.quantity,
                item.unit,
                item.mark,
                item.gost,
                item.description,
                item.note,
                item.source_snippet,
                source.value,
                item.confidence,
            )
            for item in items
        ]

        conn = await self._get_connection()
        try:
            await conn.executemany(
                """
                INSERT INTO material_facts
                (id, doc_id, block_id, raw_name, canonical_name, canonical_key, quantity,
                 unit, mark, gost, description, note, source_snippet, source, confidence)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
            await conn.commit()
        except aiosqlite.Error as e:
            await conn.rollback()
            raise StorageError(
                f"Failed to save facts: {e}",
                {"doc_id": doc_id, "block_id": block_id},
            ) from e

        return len(rows)

    async def get_facts(self, doc_id: str) -> list[dict[str, Any]]:
        """Get facts of a document in insertion order."""
        rows = await self._fetch(
            "SELECT * FROM material_facts WHERE doc_id = ? ORDER BY rowid", (doc_id,)
        )
        for row in rows:
            row["user_verified"] = bool(row["user_verified"])
        return rows

    async def update_fact_canonical(
        self,
        fact_id: str,
        canonical_name: str,
        canonical_key: str | None = None,
    ) -> None:
        """
        Apply a user correction to a fact's canonical identity.

        Only canonical fields change; the fact is marked as user-verified.

        Args:
            fact_id: Fact ID
            canonical_name: Corrected canonical name
            canonical_key: Corrected key (derived from the name if None)
        """
        key = canonical_key or generate_canonical_key(canonical_name)
        cursor = await self._write(
            """
            UPDATE material_facts
            SET canonical_name = ?, canonical_key = ?, user_verified = 1,
                updated_at = CURRENT_TIMESTAMP
            WHERE id = ?
            """,
            (canonical_name, key, fact_id),
            f"Failed to update fact {fact_id}",
        )
        if cursor.rowcount == 0:
            raise StorageError(f"Fact not found: {fact_id}", code=ErrorCode.FACT_NOT_FOUND)

    async def get_bom(self, doc_id: str) -> list[BomLine]:
        """Get the bill of materials of a document, summed by key and unit."""
        rows = await self._fetch(
            """
            SELECT * FROM bom_summary
            WHERE doc_id = ?
            ORDER BY canonical_name, unit
            """,
            (doc_id,),
        )
        return [
            BomLine(
                canonical_key=row["canonical_key"],
                canonical_name=row["canonical_name"],
                unit=row["unit"],
                total_qty=row["total_qty"],
                fact_count=row["fact_count"],
                source_block_ids=sorted(row["source_block_ids"].split(","))
                if row["source_block_ids"]
                else [],
                all_verified=bool(row["all_verified"]),
            )
            for row in rows
        ]

    # --- Helpers ---

    async def _fetch(self, sql: str, params: tuple[Any, ...] = ()) -> list[dict[str, Any]]:
        conn = await self._get_connection()
        try:
            cursor = await conn.execute(sql, params)
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StorageError(f"Query failed: {e}", code=ErrorCode.STORAGE_READ_FAILED) from e
        return [dict(row) for row in rows]

    async def _write(
        self,
        sql: str,
        params: tuple[Any, ...],
        error_message: str,
    ) -> aiosqlite.Cursor:
        conn = await self._get_connection()
        try:
            cursor = await conn.execute(sql, params)
            await conn.commit()
        except aiosqlite.Error as e:
            await conn.rollback()
            raise StorageError(f"{error_message}: {e}") from e
        return cursor

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None
