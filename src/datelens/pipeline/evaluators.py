"""Deep-analysis evaluators run when a foundation stage escalates.

Each evaluator receives the dataset plus the output that triggered it, and records
the trigger reason in its metadata.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from datetime import datetime

from datelens.config import Settings
from datelens.costs import CostTracker
from datelens.models import LLMJsonClient
from datelens.pipeline.aggregation import merge_risk_findings
from datelens.pipeline.analyzers import build_stage_metadata, dispatch_chunked, dispatch_stage
from datelens.pipeline.chunking import chunk_units
from datelens.pipeline.escalation import (
    attachment_trigger_reason,
    crisis_trigger_reason,
    growth_trigger_reason,
    risk_trigger_reason,
    should_escalate_to_crisis,
)
from datelens.pipeline.grouping import group_conversations
from datelens.pipeline.sampling import (
    build_time_segments,
    filter_recent,
    format_message_unit,
    sample_conversations,
    take_most_recent,
)
from datelens.prompts import (
    ATTACHMENT_EVALUATOR_SYSTEM_PROMPT,
    CRISIS_EVALUATOR_SYSTEM_PROMPT,
    GROWTH_EVALUATOR_SYSTEM_PROMPT,
    RISK_EVALUATOR_SYSTEM_PROMPT,
    build_evaluator_user_prompt,
)
from datelens.schemas import (
    AttachmentFindings,
    AttachmentOutput,
    ChronologyOutput,
    CrisisFindings,
    CrisisOutput,
    Dataset,
    GrowthFindings,
    GrowthOutput,
    PatternOutput,
    RiskFindings,
    RiskOutput,
    SafetyFindings,
)

logger = logging.getLogger(__name__)


def _first_chunk(units: Sequence[str], settings: Settings, stage: str) -> list[str]:
    """Bound a single-request sample to one chunk of the token budget."""

    chunks = chunk_units(
        units,
        max_tokens_per_chunk=settings.max_tokens_per_chunk,
        chars_per_token=settings.chars_per_token,
    )
    if not chunks:
        return []
    if len(chunks) > 1:
        logger.debug("%s: kept first %d of %d units", stage, len(chunks[0]), len(units))
    return chunks[0]


def _recent_units(dataset: Dataset, settings: Settings, now: datetime | None) -> list[str]:
    recent = take_most_recent(
        dataset.messages,
        max_messages=settings.risk_max_messages,
        window_days=settings.recency_window_days,
        now=now,
    )
    # Oldest first reads as a transcript.
    return [format_message_unit(message, include_date=True) for message in reversed(recent)]


def _bullet_lines(items: Sequence[str]) -> str:
    return "\n".join(f"- {item}" for item in items) if items else "- none"


def run_risk_evaluator(
    dataset: Dataset,
    safety: SafetyFindings,
    llm_client: LLMJsonClient,
    settings: Settings | None = None,
    *,
    cost_tracker: CostTracker | None = None,
    now: datetime | None = None,
) -> RiskOutput:
    """Look for manipulation tactics, coercive control and trauma bonding."""

    settings = settings or Settings()
    started = time.perf_counter()
    trigger_reason = risk_trigger_reason(safety)
    units = _recent_units(dataset, settings, now)
    context = (
        f"Safety risk level: {safety.risk_level}\n"
        f"Safety summary: {safety.summary}\n"
        "Red flags:\n"
        + _bullet_lines(
            [f"{flag.type} ({flag.severity}): {flag.description}" for flag in safety.red_flags]
        )
    )
    logger.info("Risk evaluation triggered: %s", trigger_reason)

    def build_prompt(chunk: list[str], *, batch_index: int, batch_count: int) -> str:
        prompt = build_evaluator_user_prompt(
            trigger_reason=trigger_reason, context=context, units=chunk
        )
        if batch_count > 1:
            prompt = f"Batch {batch_index} of {batch_count}.\n" + prompt
        return prompt

    if units:
        chunk_findings, costs = dispatch_chunked(
            llm_client,
            stage="risk",
            units=units,
            system_prompt=RISK_EVALUATOR_SYSTEM_PROMPT,
            build_user_prompt=build_prompt,
            payload_model=RiskFindings,
            model=settings.risk_model,
            temperature=settings.analysis_temperature,
            settings=settings,
            cost_tracker=cost_tracker,
        )
        findings = merge_risk_findings(chunk_findings)
    else:
        costs = []
        findings = RiskFindings(summary="No recent messages to evaluate.")

    metadata = build_stage_metadata(
        model=settings.risk_model,
        started=started,
        costs=costs,
        messages_analyzed=len(units),
        trigger_reason=trigger_reason,
    )
    return RiskOutput(
        **findings.model_dump(),
        source_risk_level=safety.risk_level,
        escalate=should_escalate_to_crisis(findings, safety.risk_level),
        metadata=metadata,
    )


def run_attachment_evaluator(
    dataset: Dataset,
    pattern: PatternOutput,
    llm_client: LLMJsonClient,
    settings: Settings | None = None,
    *,
    cost_tracker: CostTracker | None = None,
    now: datetime | None = None,
) -> AttachmentOutput:
    """Assess attachment style when pattern recognition found mixed signals."""

    settings = settings or Settings()
    started = time.perf_counter()
    trigger_reason = attachment_trigger_reason(
        pattern, complexity_threshold=settings.complexity_threshold
    )
    recent = filter_recent(dataset.messages, window_days=settings.recency_window_days, now=now)
    sample = sample_conversations(
        group_conversations(recent, dataset.user_id),
        max_conversations=settings.max_conversations,
        max_messages_per_conversation=settings.max_messages_per_conversation,
    )
    units = _first_chunk(sample.units, settings, "attachment")
    markers = pattern.attachment_markers
    context = (
        f"Communication consistency: {pattern.communication_style.consistency}\n"
        f"Complexity score: {pattern.complexity_score:.2f}\n"
        f"Anxiety markers:\n{_bullet_lines(markers.anxiety_markers)}\n"
        f"Avoidance markers:\n{_bullet_lines(markers.avoidance_markers)}\n"
        f"Secure markers:\n{_bullet_lines(markers.secure_markers)}\n"
        f"Pattern summary: {pattern.summary}"
    )
    logger.info("Attachment evaluation triggered: %s", trigger_reason)

    findings, cost = dispatch_stage(
        llm_client,
        stage="attachment",
        system_prompt=ATTACHMENT_EVALUATOR_SYSTEM_PROMPT,
        user_prompt=build_evaluator_user_prompt(
            trigger_reason=trigger_reason, context=context, units=units
        ),
        payload_model=AttachmentFindings,
        model=settings.attachment_model,
        temperature=settings.analysis_temperature,
        settings=settings,
        cost_tracker=cost_tracker,
    )
    metadata = build_stage_metadata(
        model=settings.attachment_model,
        started=started,
        costs=[cost],
        messages_analyzed=sample.message_count,
        conversations_analyzed=sample.conversation_count,
        trigger_reason=trigger_reason,
    )
    return AttachmentOutput(**findings.model_dump(), metadata=metadata)


def run_growth_evaluator(
    dataset: Dataset,
    chronology: ChronologyOutput,
    llm_client: LLMJsonClient,
    settings: Settings | None = None,
    *,
    cost_tracker: CostTracker | None = None,
    now: datetime | None = None,
) -> GrowthOutput:
    """Describe skill progression over a long history in which growth was detected."""

    settings = settings or Settings()
    started = time.perf_counter()
    trigger_reason = growth_trigger_reason(
        chronology.growth, chronology.time_range.duration_months
    )
    units: list[str] = []
    for segment in build_time_segments(dataset.messages, now=now):
        units.append(f"--- {segment.label} ---")
        units.extend(
            format_message_unit(message, include_date=True)
            for message in segment.messages[: settings.segment_sample_size]
        )
    units = _first_chunk(units, settings, "growth")
    growth = chronology.growth
    context = (
        f"Growth direction: {growth.direction}\n"
        f"Growth areas:\n{_bullet_lines(growth.areas)}\n"
        f"Evidence:\n{_bullet_lines(growth.evidence)}\n"
        f"Chronology summary: {chronology.summary}"
    )
    logger.info("Growth evaluation triggered: %s", trigger_reason)

    findings, cost = dispatch_stage(
        llm_client,
        stage="growth",
        system_prompt=GROWTH_EVALUATOR_SYSTEM_PROMPT,
        user_prompt=build_evaluator_user_prompt(
            trigger_reason=trigger_reason, context=context, units=units
        ),
        payload_model=GrowthFindings,
        model=settings.growth_model,
        temperature=settings.analysis_temperature,
        settings=settings,
        cost_tracker=cost_tracker,
    )
    metadata = build_stage_metadata(
        model=settings.growth_model,
        started=started,
        costs=[cost],
        messages_analyzed=sum(1 for unit in units if not unit.startswith("---")),
        trigger_reason=trigger_reason,
    )
    return GrowthOutput(**findings.model_dump(), metadata=metadata)


def run_crisis_evaluator(
    dataset: Dataset,
    risk: RiskOutput,
    llm_client: LLMJsonClient,
    settings: Settings | None = None,
    *,
    cost_tracker: CostTracker | None = None,
    now: datetime | None = None,
) -> CrisisOutput:
    """Produce a threat assessment and safety plan after serious risk findings."""

    settings = settings or Settings()
    started = time.perf_counter()
    trigger_reason = crisis_trigger_reason(risk, risk.source_risk_level)
    units = _first_chunk(_recent_units(dataset, settings, now), settings, "crisis")
    control = risk.coercive_control
    context = (
        "Manipulation tactics:\n"
        + _bullet_lines(
            [
                f"{tactic.type} ({tactic.severity}, {tactic.pattern}): {tactic.description}"
                for tactic in risk.manipulation_tactics
            ]
        )
        + f"\nCoercive control detected: {control.detected} ({control.severity})\n"
        f"Trauma bonding detected: {risk.trauma_bonding.detected}\n"
        f"Risk summary: {risk.summary}"
    )
    logger.warning("Crisis evaluation triggered: %s", trigger_reason)

    findings, cost = dispatch_stage(
        llm_client,
        stage="crisis",
        system_prompt=CRISIS_EVALUATOR_SYSTEM_PROMPT,
        user_prompt=build_evaluator_user_prompt(
            trigger_reason=trigger_reason, context=context, units=units
        ),
        payload_model=CrisisFindings,
        model=settings.crisis_model,
        temperature=settings.analysis_temperature,
        settings=settings,
        cost_tracker=cost_tracker,
    )
    metadata = build_stage_metadata(
        model=settings.crisis_model,
        started=started,
        costs=[cost],
        messages_analyzed=len(units),
        trigger_reason=trigger_reason,
    )
    return CrisisOutput(**findings.model_dump(), metadata=metadata)
