"""Foundation analyzers: safety screener, pattern recognizer, chronology mapper."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import TypeVar

from pydantic import BaseModel

from datelens.config import Settings
from datelens.costs import CostEstimate, CostTracker
from datelens.models import LLMJsonClient
from datelens.pipeline.aggregation import merge_pattern_findings, merge_safety_findings
from datelens.pipeline.chunking import chunk_units
from datelens.pipeline.dispatch import StageError, dispatch_completion
from datelens.pipeline.escalation import (
    should_escalate_to_attachment,
    should_escalate_to_growth,
    should_escalate_to_risk,
)
from datelens.pipeline.grouping import group_conversations
from datelens.pipeline.sampling import (
    build_time_segments,
    compute_time_range,
    filter_recent,
    format_message_unit,
    sample_conversations,
    sample_recent_messages,
)
from datelens.prompts import (
    CHRONOLOGY_MAPPER_SYSTEM_PROMPT,
    PATTERN_RECOGNIZER_SYSTEM_PROMPT,
    SAFETY_SCREENER_SYSTEM_PROMPT,
    build_chronology_user_prompt,
    build_pattern_user_prompt,
    build_safety_user_prompt,
)
from datelens.schemas import (
    ChronologyFindings,
    ChronologyOutput,
    Dataset,
    PatternFindings,
    PatternOutput,
    SafetyFindings,
    SafetyOutput,
    SegmentSummary,
    StageMetadata,
    TokenUsage,
)

logger = logging.getLogger(__name__)

FindingsT = TypeVar("FindingsT", bound=BaseModel)


def build_stage_metadata(
    *,
    model: str,
    started: float,
    costs: Sequence[CostEstimate],
    messages_analyzed: int = 0,
    conversations_analyzed: int = 0,
    trigger_reason: str | None = None,
) -> StageMetadata:
    """Summarize the calls one stage made."""

    return StageMetadata(
        analyzed_at=datetime.now(UTC),
        duration_ms=(time.perf_counter() - started) * 1000.0,
        model=model,
        tokens_used=TokenUsage(
            input=sum(cost.input_tokens for cost in costs),
            output=sum(cost.output_tokens for cost in costs),
        ),
        cost_usd=sum(cost.total_cost for cost in costs),
        messages_analyzed=messages_analyzed,
        conversations_analyzed=conversations_analyzed,
        chunk_count=len(costs),
        trigger_reason=trigger_reason,
    )


def dispatch_stage(
    llm_client: LLMJsonClient,
    *,
    stage: str,
    system_prompt: str,
    user_prompt: str,
    payload_model: type[FindingsT],
    model: str,
    temperature: float,
    settings: Settings,
    cost_tracker: CostTracker | None,
) -> tuple[FindingsT, CostEstimate]:
    """Dispatch one request for a stage, wrapping any failure in `StageError`."""

    try:
        result = dispatch_completion(
            llm_client,
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            payload_model=payload_model,
            model=model,
            temperature=temperature,
            expected_output_tokens=settings.expected_output_tokens,
            chars_per_token=settings.chars_per_token,
        )
    except Exception as exc:
        raise StageError(stage, str(exc)) from exc

    if cost_tracker is not None:
        cost_tracker.add_cost(result.cost)
    return result.payload, result.cost


def dispatch_chunked(
    llm_client: LLMJsonClient,
    *,
    stage: str,
    units: Sequence[str],
    system_prompt: str,
    build_user_prompt: Callable[..., str],
    payload_model: type[FindingsT],
    model: str,
    temperature: float,
    settings: Settings,
    cost_tracker: CostTracker | None,
) -> tuple[list[FindingsT], list[CostEstimate]]:
    """Chunk `units` to the token budget and dispatch one request per chunk, in order."""

    chunks = chunk_units(
        units,
        max_tokens_per_chunk=settings.max_tokens_per_chunk,
        chars_per_token=settings.chars_per_token,
    )
    logger.debug("%s: %d units in %d chunks", stage, len(units), len(chunks))

    findings: list[FindingsT] = []
    costs: list[CostEstimate] = []
    for index, chunk in enumerate(chunks, start=1):
        payload, cost = dispatch_stage(
            llm_client,
            stage=stage,
            system_prompt=system_prompt,
            user_prompt=build_user_prompt(chunk, batch_index=index, batch_count=len(chunks)),
            payload_model=payload_model,
            model=model,
            temperature=temperature,
            settings=settings,
            cost_tracker=cost_tracker,
        )
        findings.append(payload)
        costs.append(cost)
    return findings, costs


def run_safety_screener(
    dataset: Dataset,
    llm_client: LLMJsonClient,
    settings: Settings | None = None,
    *,
    cost_tracker: CostTracker | None = None,
    now: datetime | None = None,
) -> SafetyOutput:
    """Screen recent messages for red flags and decide whether risk evaluation is due."""

    settings = settings or Settings()
    started = time.perf_counter()
    sampled = sample_recent_messages(
        dataset.messages,
        window_days=settings.recency_window_days,
        max_messages=settings.safety_max_messages,
        recent_weight=settings.recent_message_weight,
        now=now,
    )
    logger.info("Safety screening %d of %d messages", len(sampled), len(dataset.messages))

    if sampled:
        chunk_findings, costs = dispatch_chunked(
            llm_client,
            stage="safety",
            units=[format_message_unit(message) for message in sampled],
            system_prompt=SAFETY_SCREENER_SYSTEM_PROMPT,
            build_user_prompt=build_safety_user_prompt,
            payload_model=SafetyFindings,
            model=settings.safety_model,
            temperature=settings.safety_temperature,
            settings=settings,
            cost_tracker=cost_tracker,
        )
        findings = merge_safety_findings(chunk_findings)
    else:
        costs = []
        findings = SafetyFindings(summary="No messages in the recency window to screen.")

    metadata = build_stage_metadata(
        model=settings.safety_model,
        started=started,
        costs=costs,
        messages_analyzed=len(sampled),
        conversations_analyzed=len({message.match_id for message in sampled}),
    )
    output = SafetyOutput(
        **findings.model_dump(),
        escalate=should_escalate_to_risk(findings, threshold=settings.risk_escalation_level),
        metadata=metadata,
    )
    logger.info(
        "Safety screening finished: risk=%s flags=%d escalate=%s cost=$%.4f",
        output.risk_level,
        len(output.red_flags),
        output.escalate,
        metadata.cost_usd,
    )
    return output


def run_pattern_recognizer(
    dataset: Dataset,
    llm_client: LLMJsonClient,
    settings: Settings | None = None,
    *,
    cost_tracker: CostTracker | None = None,
    now: datetime | None = None,
) -> PatternOutput:
    """Characterize communication style over the most recently active conversations."""

    settings = settings or Settings()
    started = time.perf_counter()
    recent = filter_recent(dataset.messages, window_days=settings.recency_window_days, now=now)
    sample = sample_conversations(
        group_conversations(recent, dataset.user_id),
        max_conversations=settings.max_conversations,
        max_messages_per_conversation=settings.max_messages_per_conversation,
    )
    logger.info(
        "Pattern recognition over %d conversations (%d messages)",
        sample.conversation_count,
        sample.message_count,
    )

    if sample.units:
        chunk_findings, costs = dispatch_chunked(
            llm_client,
            stage="pattern",
            units=sample.units,
            system_prompt=PATTERN_RECOGNIZER_SYSTEM_PROMPT,
            build_user_prompt=build_pattern_user_prompt,
            payload_model=PatternFindings,
            model=settings.pattern_model,
            temperature=settings.analysis_temperature,
            settings=settings,
            cost_tracker=cost_tracker,
        )
        findings = merge_pattern_findings(chunk_findings)
    else:
        costs = []
        findings = PatternFindings(summary="No recent conversations to analyze.")

    metadata = build_stage_metadata(
        model=settings.pattern_model,
        started=started,
        costs=costs,
        messages_analyzed=sample.message_count,
        conversations_analyzed=sample.conversation_count,
    )
    return PatternOutput(
        **findings.model_dump(),
        escalate=should_escalate_to_attachment(
            findings, complexity_threshold=settings.complexity_threshold
        ),
        metadata=metadata,
    )


def run_chronology_mapper(
    dataset: Dataset,
    llm_client: LLMJsonClient,
    settings: Settings | None = None,
    *,
    cost_tracker: CostTracker | None = None,
    now: datetime | None = None,
) -> ChronologyOutput:
    """Map how communication changed across weighted recency segments."""

    settings = settings or Settings()
    started = time.perf_counter()
    time_range = compute_time_range(dataset.messages, now=now)
    segments = build_time_segments(dataset.messages, now=now)

    costs: list[CostEstimate] = []
    if segments:
        rendered = [
            (
                segment.label,
                segment.weight,
                [
                    format_message_unit(message, include_date=True)
                    for message in segment.messages[: settings.segment_sample_size]
                ],
            )
            for segment in segments
        ]
        findings, cost = dispatch_stage(
            llm_client,
            stage="chronology",
            system_prompt=CHRONOLOGY_MAPPER_SYSTEM_PROMPT,
            user_prompt=build_chronology_user_prompt(
                rendered, duration_months=time_range.duration_months
            ),
            payload_model=ChronologyFindings,
            model=settings.chronology_model,
            temperature=settings.analysis_temperature,
            settings=settings,
            cost_tracker=cost_tracker,
        )
        costs.append(cost)
    else:
        findings = ChronologyFindings(summary="No message history to map.")

    patterns_by_label = {item.label: item.patterns for item in findings.segment_analysis}
    segment_summaries = [
        SegmentSummary(
            label=segment.label,
            start=segment.start,
            end=segment.end,
            weight=segment.weight,
            message_count=len(segment.messages),
            patterns=patterns_by_label.get(segment.label, []),
        )
        for segment in segments
    ]
    metadata = build_stage_metadata(
        model=settings.chronology_model,
        started=started,
        costs=costs,
        messages_analyzed=sum(
            min(len(segment.messages), settings.segment_sample_size) for segment in segments
        ),
        conversations_analyzed=len({message.match_id for message in dataset.messages}),
    )
    logger.info(
        "Chronology mapped %d segments over %d months",
        len(segments),
        time_range.duration_months,
    )
    return ChronologyOutput(
        time_range=time_range,
        segments=segment_summaries,
        growth=findings.growth,
        life_stage_context=findings.life_stage_context,
        summary=findings.summary,
        escalate=should_escalate_to_growth(
            findings.growth,
            time_range.duration_months,
            min_months=settings.min_months_for_growth,
        ),
        metadata=metadata,
    )
