"""Analysis stage implementations."""

from datelens.pipeline.analyzers import (
    run_chronology_mapper,
    run_pattern_recognizer,
    run_safety_screener,
)
from datelens.pipeline.chunking import chunk_units, estimate_tokens
from datelens.pipeline.dispatch import DispatchError, StageError, dispatch_completion
from datelens.pipeline.evaluators import (
    run_attachment_evaluator,
    run_crisis_evaluator,
    run_growth_evaluator,
    run_risk_evaluator,
)
from datelens.pipeline.grouping import group_conversations
from datelens.pipeline.metadata import MetadataAnalysisResult, analyze_metadata
from datelens.pipeline.orchestrator import (
    OrchestratorResult,
    ProcessingSummary,
    run_deep_analysis,
    run_two_stage_analysis,
)
from datelens.pipeline.significance import (
    detect_significant_conversations,
    detect_significant_conversations_async,
    score_conversation,
)

__all__ = [
    "DispatchError",
    "MetadataAnalysisResult",
    "OrchestratorResult",
    "ProcessingSummary",
    "StageError",
    "analyze_metadata",
    "chunk_units",
    "detect_significant_conversations",
    "detect_significant_conversations_async",
    "dispatch_completion",
    "estimate_tokens",
    "group_conversations",
    "run_attachment_evaluator",
    "run_chronology_mapper",
    "run_crisis_evaluator",
    "run_deep_analysis",
    "run_growth_evaluator",
    "run_pattern_recognizer",
    "run_risk_evaluator",
    "run_safety_screener",
    "run_two_stage_analysis",
    "score_conversation",
]
