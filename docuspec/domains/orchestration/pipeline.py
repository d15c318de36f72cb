"""
Extraction Pipeline - Orchestrates a document run through the domains.

Coordinates parsing, rule-based extraction, LLM fallback, merging and
persistence. Routing is pure (`plan_extraction`); all side effects happen
in `ExtractionPipeline.run` through the `FactStore` contract.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from docuspec.config.errors import DocuSpecError, ExtractionError
from docuspec.domains.extraction.contracts import BlockExtractor
from docuspec.domains.extraction.merge import llm_unique_items, merge_results
from docuspec.domains.extraction.models import BlockForExtraction, FactSource, MaterialFactItem
from docuspec.domains.extraction.rules import rule_based_extract
from docuspec.domains.parsing.models import ParsedDocument
from docuspec.domains.parsing.parser import parse_document

from .contracts import FactStore
from .models import (
    DocumentStatus,
    ExtractedFact,
    ExtractionPlan,
    ExtractionProgress,
    ExtractionRunResult,
    ExtractionStatus,
)
from .router import is_skipped, needs_llm

logger = logging.getLogger(__name__)

__all__ = ["ExtractionPipeline", "plan_extraction"]

ProgressObserver = Callable[[ExtractionProgress], None]


def plan_extraction(
    document: ParsedDocument,
    block_ids: Mapping[str, str] | None = None,
) -> ExtractionPlan:
    """
    Run the rules and build the LLM queue for a parsed document.

    Args:
        document: Parsed document
        block_ids: {block_uid: block_id} from storage. Blocks missing from
            the mapping are skipped. Without a mapping the uid is the id.
            A repeated uid keeps only its first block.

    Returns:
        Rule results per block id and the blocks that still need the LLM
    """
    plan = ExtractionPlan()
    seen_uids: set[str] = set()

    for page, block in document.iter_blocks():
        # The first block with a given uid wins, as in storage
        if block.uid in seen_uids:
            logger.warning("Duplicate block uid %s, keeping first", block.uid)
            continue
        seen_uids.add(block.uid)

        if is_skipped(block):
            continue

        block_id = block.uid if block_ids is None else block_ids.get(block.uid)
        if block_id is None:
            logger.debug("Block %s has no storage id, skipping", block.uid)
            continue

        rule_items = rule_based_extract(block) if block.has_table else []
        if rule_items:
            plan.rule_results.setdefault(block_id, []).extend(rule_items)

        if needs_llm(block, rule_items):
            plan.llm_queue.append(
                BlockForExtraction(
                    block=block,
                    page_no=page.page_no,
                    block_id=block_id,
                    section_context=block.section_title,
                )
            )

    logger.info(
        "Plan: %d rule facts in %d blocks, %d blocks for LLM",
        plan.rule_fact_count,
        len(plan.rule_results),
        len(plan.llm_queue),
    )
    return plan


class ExtractionPipeline:
    """
    Main extraction pipeline.

    Coordinates:
    - Document status transitions
    - Clearing previous facts (re-extraction replaces them)
    - Rule-based extraction, saved immediately
    - LLM extraction for the remaining blocks
    - Merge and save of LLM-only facts

    Example:
        >>> pipeline = ExtractionPipeline(LLMBlockExtractor(client), store=repo)
        >>> result = await pipeline.run(markdown, doc_id=doc_id)
        >>> print(result.rule_fact_count, result.llm_fact_count)
    """

    def __init__(
        self,
        extractor: BlockExtractor | None = None,
        store: FactStore | None = None,
    ) -> None:
        """
        Initialize pipeline.

        Args:
            extractor: LLM gateway. None disables the LLM stage.
            store: Persistence. None keeps the run in memory.
        """
        self._extractor = extractor
        self._store = store

    async def run(
        self,
        text: str,
        doc_id: str | None = None,
        on_progress: ProgressObserver | None = None,
    ) -> ExtractionRunResult:
        """
        Extract material facts from a Markdown document.

        Args:
            text: Raw Markdown
            doc_id: Stored document ID (required with a store)
            on_progress: Receives a progress snapshot on every change

        Returns:
            Parsed document and every saved fact

        Raises:
            StorageError: Persistence failed (the document is marked as error)
            ExtractionError: Any other failure of the run
        """
        if self._store is not None and doc_id is None:
            raise ExtractionError("doc_id is required when a store is configured")

        start_time = time.time()
        progress = ExtractionProgress()

        def report(**changes: Any) -> None:
            nonlocal progress
            progress = progress.model_copy(update=changes)
            if on_progress:
                on_progress(progress)

        facts: list[ExtractedFact] = []

        try:
            if self._store is not None:
                await self._store.set_document_status(doc_id, DocumentStatus.EXTRACTING)
                await self._store.clear_facts(doc_id)

            # Step 1: Parse and run the rules
            report(status=ExtractionStatus.RULE_BASED, error_message=None)
            document = parse_document(text)
            block_ids = None
            if self._store is not None:
                block_ids = await self._store.get_block_ids(doc_id)
            plan = plan_extraction(document, block_ids)

            for block_id, items in plan.rule_results.items():
                await self._save(doc_id, block_id, items, FactSource.RULE_BASED, facts)

            # Step 2: LLM for whatever the rules could not cover
            llm_queue = plan.llm_queue if self._extractor is not None else []
            if plan.llm_queue and self._extractor is None:
                logger.info("LLM disabled, skipping %d blocks", len(plan.llm_queue))

            report(
                status=ExtractionStatus.LLM_EXTRACTING,
                completed_batches=0,
                total_batches=len(llm_queue),
                extracted_facts=len(facts),
            )

            if llm_queue:
                await self._run_llm(doc_id, llm_queue, plan, facts, report)

            # Step 3: Finish
            report(status=ExtractionStatus.SAVING)
            if self._store is not None:
                await self._store.set_document_status(doc_id, DocumentStatus.DONE)

            report(
                status=ExtractionStatus.DONE,
                completed_batches=len(llm_queue),
                total_batches=len(llm_queue),
                extracted_facts=len(facts),
            )

        except Exception as e:
            message = e.message if isinstance(e, DocuSpecError) else str(e) or "Extraction failed"
            logger.error("Extraction failed for document %s: %s", doc_id, message)
            report(status=ExtractionStatus.ERROR, error_message=message)
            await self._mark_failed(doc_id, message)
            if isinstance(e, DocuSpecError):
                raise
            raise ExtractionError(message, {"doc_id": doc_id}) from e

        logger.info(
            "Extraction done: %d facts (%d blocks via LLM) in %.1fs",
            len(facts),
            len(llm_queue),
            time.time() - start_time,
        )

        return ExtractionRunResult(
            doc_id=doc_id,
            document=document,
            facts=facts,
            llm_blocks=len(llm_queue),
            progress=progress,
        )

    async def _run_llm(
        self,
        doc_id: str | None,
        llm_queue: Sequence[BlockForExtraction],
        plan: ExtractionPlan,
        facts: list[ExtractedFact],
        report: Callable[..., None],
    ) -> None:
        """Extract, merge with the rule results, save the LLM-only facts."""
        llm_results = await self._extractor.extract_batch(
            llm_queue,
            on_progress=lambda completed, total: report(
                completed_batches=completed, total_batches=total
            ),
        )

        report(status=ExtractionStatus.MERGING)

        for block_id, llm_items in llm_results.items():
            rule_items = plan.rule_results.get(block_id, [])
            merged = merge_results(rule_items, llm_items)
            await self._save(
                doc_id, block_id, llm_unique_items(rule_items, merged), FactSource.LLM, facts
            )

        report(extracted_facts=len(facts))

    async def _save(
        self,
        doc_id: str | None,
        block_id: str,
        items: Sequence[MaterialFactItem],
        source: FactSource,
        facts: list[ExtractedFact],
    ) -> None:
        if not items:
            return
        if self._store is not None:
            await self._store.insert_facts(doc_id, block_id, items, source)
        facts.extend(ExtractedFact(block_id=block_id, source=source, item=item) for item in items)

    async def _mark_failed(self, doc_id: str | None, message: str) -> None:
        if self._store is None or doc_id is None:
            return
        try:
            await self._store.set_document_status(doc_id, DocumentStatus.ERROR, message)
        except DocuSpecError as e:
            logger.error("Could not mark document %s as failed: %s", doc_id, e)
