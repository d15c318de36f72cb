"""
Orchestration Models - Data types for orchestration domain.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from docuspec.domains.extraction.models import BlockForExtraction, FactSource, MaterialFactItem
from docuspec.domains.parsing.models import ParsedDocument


class DocumentStatus(str, Enum):
    """Lifecycle of a stored document."""

    UPLOADED = "uploaded"
    PARSING = "parsing"
    EXTRACTING = "extracting"
    DONE = "done"
    ERROR = "error"
    HAS_ERRORS = "has_errors"  # parsed, but some blocks failed recognition


class ExtractionStatus(str, Enum):
    """Stage of an extraction run."""

    IDLE = "idle"
    RULE_BASED = "rule_based"
    LLM_EXTRACTING = "llm_extracting"
    MERGING = "merging"
    SAVING = "saving"
    DONE = "done"
    ERROR = "error"


class ExtractionProgress(BaseModel):
    """Progress snapshot reported to observers of a run."""

    status: ExtractionStatus = ExtractionStatus.IDLE
    completed_batches: int = 0
    total_batches: int = 0
    extracted_facts: int = 0
    error_message: str | None = None


class ExtractionPlan(BaseModel):
    """Pure result of routing a parsed document."""

    rule_results: dict[str, list[MaterialFactItem]] = Field(default_factory=dict)
    llm_queue: list[BlockForExtraction] = Field(default_factory=list)

    @property
    def rule_fact_count(self) -> int:
        """Number of facts found by the rules."""
        return sum(len(items) for items in self.rule_results.values())


class ExtractedFact(BaseModel):
    """A fact as it was saved, tagged with its block and origin."""

    block_id: str
    source: FactSource
    item: MaterialFactItem


class ExtractionRunResult(BaseModel):
    """Outcome of a completed pipeline run."""

    doc_id: str | None = None
    document: ParsedDocument
    facts: list[ExtractedFact] = Field(default_factory=list)
    llm_blocks: int = 0
    progress: ExtractionProgress = Field(default_factory=ExtractionProgress)

    @property
    def rule_fact_count(self) -> int:
        """Number of saved rule-based facts."""
        return sum(1 for fact in self.facts if fact.source == FactSource.RULE_BASED)

    @property
    def llm_fact_count(self) -> int:
        """Number of saved LLM facts."""
        return sum(1 for fact in self.facts if fact.source == FactSource.LLM)
