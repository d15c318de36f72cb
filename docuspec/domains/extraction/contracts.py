"""
Extraction Contracts - Interfaces for extraction domain.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Protocol, runtime_checkable

from .models import BlockForExtraction, MaterialFactItem

ProgressCallback = Callable[[int, int], None]


@runtime_checkable
class ExtractionTransport(Protocol):
    """
    Contract for the structured-extraction capability behind the LLM gateway.

    Implementations retry once after a short fixed backoff, abort the
    in-flight call after `timeout` seconds, and raise a single uniform
    error type when the call cannot be completed.

    Example:
        >>> class MyTransport:
        ...     async def complete_json(self, system, user, *, temperature=0.1, timeout=None):
        ...         return '{"items": []}'
        >>> assert isinstance(MyTransport(), ExtractionTransport)
    """

    async def complete_json(
        self,
        system: str,
        user: str,
        *,
        temperature: float = 0.1,
        timeout: float | None = None,
    ) -> str:
        """
        Send a system instruction and user content, get raw JSON text back.

        Args:
            system: System instruction
            user: User content
            temperature: Sampling temperature
            timeout: Seconds before the in-flight call is aborted

        Returns:
            Raw model output expected to parse as JSON
        """
        ...


@runtime_checkable
class BlockExtractor(Protocol):
    """Contract for the per-block LLM gateway used by the pipeline."""

    async def extract_batch(
        self,
        blocks: Sequence[BlockForExtraction],
        on_progress: ProgressCallback | None = None,
    ) -> dict[str, list[MaterialFactItem]]:
        """
        Extract facts for every block.

        Args:
            blocks: Blocks selected for LLM extraction
            on_progress: Called with (completed, total) after each block

        Returns:
            Facts per block id (empty list for failed blocks)
        """
        ...
