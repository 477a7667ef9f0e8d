"""Two-stage analysis: safety triage followed by deep analysis."""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from typing import Literal

from datelens.config import Settings
from datelens.costs import CostTracker
from datelens.models import LLMJsonClient
from datelens.pipeline.analyzers import (
    run_chronology_mapper,
    run_pattern_recognizer,
    run_safety_screener,
)
from datelens.pipeline.escalation import (
    EscalationSignal,
    chronology_signal,
    pattern_signal,
    risk_signal,
    safety_signal,
    stage1_escalation_reason,
)
from datelens.pipeline.evaluators import (
    run_attachment_evaluator,
    run_crisis_evaluator,
    run_growth_evaluator,
    run_risk_evaluator,
)
from datelens.reports import Stage1Report, Stage2Report, build_stage1_report, build_stage2_report
from datelens.schemas import (
    DatelensModel,
    Dataset,
    DeepAnalysisOutput,
    SafetyFindings,
    SafetyOutput,
    StageMetadata,
    TokenUsage,
)

logger = logging.getLogger(__name__)


class ProcessingSummary(DatelensModel):
    stage1_duration_ms: float
    stage2_duration_ms: float
    total_duration_ms: float
    stage1_cost_usd: float
    stage2_cost_usd: float
    total_cost_usd: float
    escalated: bool
    escalation_reason: str | None = None


class OrchestratorResult(DatelensModel):
    """Final record of one analysis run."""

    completed_stage: Literal["stage2"] = "stage2"
    stage1_report: Stage1Report
    stage2_report: Stage2Report
    safety: SafetyOutput
    deep_analysis: DeepAnalysisOutput
    processing: ProcessingSummary


def run_deep_analysis(
    dataset: Dataset,
    safety: SafetyFindings,
    llm_client: LLMJsonClient,
    settings: Settings | None = None,
    *,
    cost_tracker: CostTracker | None = None,
    now: datetime | None = None,
) -> DeepAnalysisOutput:
    """Run pattern and chronology analysis plus every evaluator whose predicate fires."""

    settings = settings or Settings()
    started = time.perf_counter()
    patterns = run_pattern_recognizer(
        dataset, llm_client, settings, cost_tracker=cost_tracker, now=now
    )
    chronology = run_chronology_mapper(
        dataset, llm_client, settings, cost_tracker=cost_tracker, now=now
    )

    fired: list[EscalationSignal] = []

    def _fires(signal: EscalationSignal) -> bool:
        if signal.escalate:
            fired.append(signal)
            logger.info(
                "Escalating %s -> %s: %s",
                signal.source_stage,
                signal.target_stage,
                signal.reason,
            )
        return signal.escalate

    risk = attachment = growth = crisis = None
    if _fires(safety_signal(safety, threshold=settings.risk_escalation_level)):
        risk = run_risk_evaluator(
            dataset, safety, llm_client, settings, cost_tracker=cost_tracker, now=now
        )
        if _fires(risk_signal(risk, risk.source_risk_level)):
            crisis = run_crisis_evaluator(
                dataset, risk, llm_client, settings, cost_tracker=cost_tracker, now=now
            )
    if _fires(pattern_signal(patterns, complexity_threshold=settings.complexity_threshold)):
        attachment = run_attachment_evaluator(
            dataset, patterns, llm_client, settings, cost_tracker=cost_tracker, now=now
        )
    growth_gate = chronology_signal(
        chronology.growth,
        chronology.time_range.duration_months,
        min_months=settings.min_months_for_growth,
    )
    if _fires(growth_gate):
        growth = run_growth_evaluator(
            dataset, chronology, llm_client, settings, cost_tracker=cost_tracker, now=now
        )
    triggered = [signal.target_stage for signal in fired]

    stage_metadata = [
        output.metadata
        for output in (patterns, chronology, risk, attachment, growth, crisis)
        if output is not None
    ]
    metadata = StageMetadata(
        analyzed_at=datetime.now(UTC),
        duration_ms=(time.perf_counter() - started) * 1000.0,
        model=settings.pattern_model,
        messages_analyzed=patterns.metadata.messages_analyzed,
        conversations_analyzed=patterns.metadata.conversations_analyzed,
        tokens_used=TokenUsage(
            input=sum(item.tokens_used.input for item in stage_metadata),
            output=sum(item.tokens_used.output for item in stage_metadata),
        ),
        cost_usd=sum(item.cost_usd for item in stage_metadata),
        chunk_count=sum(item.chunk_count for item in stage_metadata),
    )
    logger.info(
        "Deep analysis finished: evaluators=%s cost=$%.4f",
        ",".join(triggered) or "none",
        metadata.cost_usd,
    )
    return DeepAnalysisOutput(
        patterns=patterns,
        chronology=chronology,
        risk=risk,
        attachment=attachment,
        growth=growth,
        crisis=crisis,
        triggered_evaluators=triggered,
        trigger_reasons={signal.target_stage: signal.reason or "" for signal in fired},
        metadata=metadata,
    )


def run_two_stage_analysis(
    dataset: Dataset,
    llm_client: LLMJsonClient,
    settings: Settings | None = None,
    *,
    cost_tracker: CostTracker | None = None,
    now: datetime | None = None,
) -> OrchestratorResult:
    """Run safety triage, then deep analysis for every user.

    Deep analysis always runs. The safety escalation verdict is still computed and
    reported as `processing.escalated`, and it decides whether the risk evaluator runs.
    """

    settings = settings or Settings()
    cost_tracker = cost_tracker or CostTracker(settings.budget_limit_usd)
    started = time.perf_counter()
    logger.info("Stage 1: screening %d messages", len(dataset.messages))

    stage1_started = time.perf_counter()
    safety = run_safety_screener(
        dataset, llm_client, settings, cost_tracker=cost_tracker, now=now
    )
    stage1_duration_ms = (time.perf_counter() - stage1_started) * 1000.0
    stage1_report = build_stage1_report(safety)

    escalation_reason = stage1_escalation_reason(
        safety, threshold=settings.risk_escalation_level
    )
    if safety.escalate:
        logger.info("Stage 2: escalating (%s)", escalation_reason)
    else:
        logger.info("Stage 2: safety check passed (%s)", safety.risk_level.upper())

    stage2_started = time.perf_counter()
    deep = run_deep_analysis(
        dataset, safety, llm_client, settings, cost_tracker=cost_tracker, now=now
    )
    stage2_duration_ms = (time.perf_counter() - stage2_started) * 1000.0
    stage2_report = build_stage2_report(deep, stage1_report)

    if cost_tracker.is_budget_exceeded():
        logger.warning(
            "Run cost $%.4f reached the $%.2f budget",
            cost_tracker.total_cost(),
            cost_tracker.budget_limit_usd,
        )

    processing = ProcessingSummary(
        stage1_duration_ms=stage1_duration_ms,
        stage2_duration_ms=stage2_duration_ms,
        total_duration_ms=(time.perf_counter() - started) * 1000.0,
        stage1_cost_usd=safety.metadata.cost_usd,
        stage2_cost_usd=deep.metadata.cost_usd,
        total_cost_usd=safety.metadata.cost_usd + deep.metadata.cost_usd,
        escalated=safety.escalate,
        escalation_reason=escalation_reason,
    )
    return OrchestratorResult(
        stage1_report=stage1_report,
        stage2_report=stage2_report,
        safety=safety,
        deep_analysis=deep,
        processing=processing,
    )
