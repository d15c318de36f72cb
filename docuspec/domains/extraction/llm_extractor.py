"""
LLM Block Extractor - Per-block material extraction through an LLM.

Blocks are sent one at a time. A block whose call or response fails yields
no facts and never stops the rest of the batch.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

from .canonical import generate_canonical_key
from .contracts import ExtractionTransport, ProgressCallback
from .models import BlockForExtraction, ExtractionResponse, MaterialFactItem

logger = logging.getLogger(__name__)

__all__ = ["LLMBlockExtractor", "SYSTEM_PROMPT", "build_user_prompt", "parse_extraction_response"]

SYSTEM_PROMPT = """You are a construction BOM (Bill of Materials) extractor for Russian architectural documentation.
Your task is to extract materials, elements, and quantities from the provided text/table content.

RULES:
1. Extract ONLY materials/elements explicitly mentioned in the provided content.
2. DO NOT invent or hallucinate materials not present in the source.
3. Return a JSON object with key "items" containing an array of extracted materials.
4. Each item must include source_snippet - an exact quote from the source text that proves this material exists.
5. If the content contains no materials or construction elements, return {"items": []}.
6. Fix common OCR errors: "спилобата" -> "стилобата", "Tun" -> "Тип", "опм." -> "отм."
7. For canonical_name: normalize the material name (fix typos, standardize, remove "или аналог").
8. For canonical_key: create a lowercase Latin slug (transliterate Russian, replace spaces with underscores).
9. Parse Russian numeric format: "202,6" means 202.6; "1 692,9" means 1692.9.
10. Unit should be standardized: м2, м3, шт, м.п., кг, т, л, компл.

Each item in the "items" array must have this structure:
{
  "raw_name": "exact name from document",
  "canonical_name": "normalized Russian name",
  "canonical_key": "latin_slug_key",
  "quantity": 123.4 or null,
  "unit": "м2" or null,
  "mark": "position/mark identifier" or null,
  "gost": "ГОСТ reference" or null,
  "description": "additional description" or null,
  "note": "remarks" or null,
  "source_snippet": "exact quote from source proving this item exists",
  "confidence": 0.9
}"""


def build_user_prompt(item: BlockForExtraction) -> str:
    """Page, block id, optional section and the full block content."""
    prompt = f"Page: {item.page_no}\nBlock ID: {item.block.uid}\n"
    if item.section_context:
        prompt += f"Section: {item.section_context}\n"
    prompt += f"\nContent:\n{item.block.content}"
    return prompt


def _load_json(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        # Try to extract JSON from surrounding prose or code fences
        start = text.find("{")
        end = text.rfind("}") + 1
        if start >= 0 and end > start:
            return json.loads(text[start:end])
        raise


def parse_extraction_response(text: str) -> list[MaterialFactItem]:
    """
    Validate raw model output and keep only grounded items.

    Raises:
        ValueError: Output is not JSON or does not match the schema
    """
    response = ExtractionResponse.model_validate(_load_json(text))

    items: list[MaterialFactItem] = []
    for item in response.items:
        if not item.source_snippet or not item.source_snippet.strip():
            logger.debug("Dropping ungrounded item: %s", item.raw_name)
            continue
        if not item.canonical_key:
            item.canonical_key = generate_canonical_key(item.canonical_name or item.raw_name)
        items.append(item)

    return items


class LLMBlockExtractor:
    """
    Material extractor for blocks the rules cannot handle.

    Example:
        >>> from docuspec.adapters.openrouter import OpenRouterClient
        >>> extractor = LLMBlockExtractor(OpenRouterClient())
        >>> results = await extractor.extract_batch(blocks, on_progress=print)
    """

    def __init__(
        self,
        transport: ExtractionTransport,
        temperature: float = 0.1,
        timeout_seconds: float | None = None,
        max_concurrent: int = 1,
    ) -> None:
        """
        Initialize extractor.

        Args:
            transport: Structured-extraction capability
            temperature: Sampling temperature for every call
            timeout_seconds: Per-call timeout passed to the transport
            max_concurrent: Default number of blocks in flight (1 = sequential)
        """
        self._transport = transport
        self._temperature = temperature
        self._timeout = timeout_seconds
        self._max_concurrent = max(1, max_concurrent)

    async def extract_block(self, item: BlockForExtraction) -> list[MaterialFactItem]:
        """
        Extract facts from a single block.

        Returns:
            Grounded facts, or an empty list if the call or validation failed
        """
        try:
            content = await self._transport.complete_json(
                SYSTEM_PROMPT,
                build_user_prompt(item),
                temperature=self._temperature,
                timeout=self._timeout,
            )
            items = parse_extraction_response(content)
        except Exception as e:
            logger.error("LLM extraction failed for block %s: %s", item.block.uid, e)
            return []

        logger.debug("Block %s: LLM returned %d grounded facts", item.block.uid, len(items))
        return items

    async def iter_extract(
        self,
        blocks: Sequence[BlockForExtraction],
    ) -> AsyncIterator[tuple[str, list[MaterialFactItem]]]:
        """
        Yield (block_id, facts) strictly one block at a time.

        The next call is not started until the consumer asks for it, so
        breaking out of the loop stops the batch.
        """
        for item in blocks:
            yield item.block_id, await self.extract_block(item)

    async def extract_batch(
        self,
        blocks: Sequence[BlockForExtraction],
        on_progress: ProgressCallback | None = None,
        max_concurrent: int | None = None,
    ) -> dict[str, list[MaterialFactItem]]:
        """
        Extract facts for a batch of blocks.

        Args:
            blocks: Blocks selected for LLM extraction
            on_progress: Called with (completed, total) after each block
            max_concurrent: Blocks in flight at once (defaults to the instance setting)

        Returns:
            Facts per block id, in input order
        """
        total = len(blocks)
        limit = max(1, max_concurrent or self._max_concurrent)
        results: dict[str, list[MaterialFactItem]] = {}
        completed = 0

        logger.info("LLM extraction: %d blocks (concurrency=%d)", total, limit)

        if limit == 1:
            async for block_id, items in self.iter_extract(blocks):
                results[block_id] = items
                completed += 1
                if on_progress:
                    on_progress(completed, total)
            return results

        semaphore = asyncio.Semaphore(limit)

        async def extract_with_limit(
            item: BlockForExtraction,
        ) -> tuple[str, list[MaterialFactItem]]:
            async with semaphore:
                return item.block_id, await self.extract_block(item)

        for future in asyncio.as_completed([extract_with_limit(b) for b in blocks]):
            block_id, items = await future
            results[block_id] = items
            completed += 1
            if on_progress:
                on_progress(completed, total)

        return {b.block_id: results[b.block_id] for b in blocks}
