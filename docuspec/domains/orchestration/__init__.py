"""
Orchestration Domain - Block routing and extraction pipeline coordination.

This domain handles:
- Routing blocks between the rules and the LLM
- Extraction planning (pure)
- Pipeline runs with status and progress reporting
- Persistence through the FactStore contract
"""

from .contracts import FactStore
from .models import (
    DocumentStatus,
    ExtractedFact,
    ExtractionPlan,
    ExtractionProgress,
    ExtractionRunResult,
    ExtractionStatus,
)
from .pipeline import ExtractionPipeline, plan_extraction
from .router import is_skipped, needs_llm

__all__ = [
    # Contracts
    "FactStore",
    # Models
    "DocumentStatus",
    "ExtractedFact",
    "ExtractionPlan",
    "ExtractionProgress",
    "ExtractionRunResult",
    "ExtractionStatus",
    # Implementations
    "ExtractionPipeline",
    "plan_extraction",
    "is_skipped",
    "needs_llm",
]
