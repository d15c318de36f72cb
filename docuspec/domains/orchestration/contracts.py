"""
Orchestration Contracts - Interfaces for orchestration domain.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from docuspec.domains.extraction.models import FactSource, MaterialFactItem

from .models import DocumentStatus


@runtime_checkable
class FactStore(Protocol):
    """Contract for the persistence used by an extraction run."""

    async def set_document_status(
        self,
        doc_id: str,
        status: DocumentStatus,
        error_message: str | None = None,
    ) -> None:
        """
        Update the lifecycle status of a document.

        Args:
            doc_id: Document ID
            status: New status
            error_message: Failure reason, stored with ERROR
        """
        ...

    async def clear_facts(self, doc_id: str) -> None:
        """Delete every fact of a document."""
        ...

    async def get_block_ids(self, doc_id: str) -> dict[str, str]:
        """
        Map block uids to storage ids.

        Returns:
            {block_uid: block_id} for every stored block of the document
        """
        ...

    async def insert_facts(
        self,
        doc_id: str,
        block_id: str,
        items: Sequence[MaterialFactItem],
        source: FactSource,
    ) -> int:
        """
        Insert facts for one block.

        Returns:
            Number of rows written
        """
        ...
