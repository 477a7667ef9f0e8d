"""Per-conversation significance scoring in paced concurrent batches."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from pydantic import Field

from datelens.config import Settings
from datelens.costs import CostEstimate, CostTracker
from datelens.models import LLMJsonClient
from datelens.pipeline.dispatch import dispatch_completion
from datelens.pipeline.grouping import group_conversations
from datelens.pipeline.sampling import format_message_unit, representative_sample
from datelens.prompts import SIGNIFICANCE_SYSTEM_PROMPT, build_significance_user_prompt
from datelens.schemas import (
    Conversation,
    ConversationDuration,
    Dataset,
    DatelensModel,
    SignificanceAnalysisResult,
    SignificanceBreakdown,
    SignificanceFlags,
    SignificanceStatistics,
    SignificantConversation,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class _SignificancePayload(DatelensModel):
    is_significant: bool = False
    flags: SignificanceFlags = Field(default_factory=SignificanceFlags)
    score: int = Field(default=0, ge=0, le=100)
    highlights: list[str] = Field(default_factory=list)
    reasoning: str = "Conversation shows significant engagement"


@dataclass(frozen=True)
class _ScoreOutcome:
    record: SignificantConversation | None
    cost: CostEstimate | None = None


def conversation_duration(conversation: Conversation) -> ConversationDuration:
    """Span between first and last message, in whole days rounded up."""

    first = conversation.messages[0].sent_at
    last = conversation.messages[-1].sent_at
    return ConversationDuration(
        days=math.ceil((last - first).total_seconds() / 86400),
        first_message=first,
        last_message=last,
    )


def average_message_count(conversations: Sequence[Conversation]) -> float:
    if not conversations:
        return 0.0
    return sum(len(conversation.messages) for conversation in conversations) / len(conversations)


def fallback_significance(
    conversation: Conversation,
    *,
    avg_message_count: float,
    settings: Settings,
) -> SignificantConversation | None:
    """Length-only verdict used when scoring a conversation failed."""

    count = len(conversation.messages)
    unusually_long = (
        count >= avg_message_count * settings.significance_fallback_length_ratio
        and count >= settings.significance_fallback_min_messages
    )
    if not unusually_long:
        return None

    duration = conversation_duration(conversation)
    return SignificantConversation(
        match_id=conversation.match_id,
        participant_id=conversation.participant_id,
        message_count=count,
        duration=duration,
        flags=SignificanceFlags(unusual_length=True),
        score=settings.significance_fallback_score,
        highlights=[f"Extended conversation with {count} messages over {duration.days} days"],
        reasoning="Unusually long conversation compared to average",
        fallback_used=True,
    )


def _score_conversation(
    conversation: Conversation,
    llm_client: LLMJsonClient,
    *,
    avg_message_count: float,
    settings: Settings,
) -> _ScoreOutcome:
    if len(conversation.messages) < settings.significance_min_messages:
        return _ScoreOutcome(record=None)

    duration = conversation_duration(conversation)
    sample = representative_sample(conversation.messages, settings.significance_sample_size)
    units = [
        f"[{index}] {format_message_unit(message)}"
        for index, message in enumerate(sample, start=1)
    ]
    try:
        result = dispatch_completion(
            llm_client,
            system_prompt=SIGNIFICANCE_SYSTEM_PROMPT,
            user_prompt=build_significance_user_prompt(
                match_id=conversation.match_id,
                message_count=len(conversation.messages),
                duration_days=duration.days,
                avg_message_count=avg_message_count,
                units=units,
            ),
            payload_model=_SignificancePayload,
            model=settings.significance_model,
            temperature=settings.safety_temperature,
            expected_output_tokens=300,
            chars_per_token=settings.chars_per_token,
        )
    except Exception as exc:
        logger.warning(
            "Significance scoring failed for match %s (%s: %s); using length fallback",
            conversation.match_id,
            type(exc).__name__,
            exc,
        )
        return _ScoreOutcome(
            record=fallback_significance(
                conversation, avg_message_count=avg_message_count, settings=settings
            )
        )

    payload = result.payload
    if not payload.is_significant:
        return _ScoreOutcome(record=None, cost=result.cost)
    return _ScoreOutcome(
        record=SignificantConversation(
            match_id=conversation.match_id,
            participant_id=conversation.participant_id,
            message_count=len(conversation.messages),
            duration=duration,
            flags=payload.flags,
            score=payload.score,
            highlights=payload.highlights[:3],
            reasoning=payload.reasoning,
        ),
        cost=result.cost,
    )


def score_conversation(
    conversation: Conversation,
    llm_client: LLMJsonClient,
    *,
    avg_message_count: float,
    settings: Settings | None = None,
) -> SignificantConversation | None:
    """Score one conversation; None means not significant."""

    return _score_conversation(
        conversation,
        llm_client,
        avg_message_count=avg_message_count,
        settings=settings or Settings(),
    ).record


def compute_significance_statistics(
    records: Sequence[SignificantConversation],
    conversations: Sequence[Conversation],
) -> SignificanceStatistics:
    total = len(conversations)
    significant = len(records)
    return SignificanceStatistics(
        total_conversations=total,
        total_significant=significant,
        breakdown=SignificanceBreakdown(
            led_to_date=sum(1 for record in records if record.flags.led_to_date),
            contact_exchange=sum(1 for record in records if record.flags.contact_exchange),
            unusual_length=sum(1 for record in records if record.flags.unusual_length),
            emotional_depth=sum(1 for record in records if record.flags.emotional_depth),
        ),
        percentage_significant=(significant / total * 100.0) if total else 0.0,
        avg_message_count=(
            sum(record.message_count for record in records) / significant if significant else 0.0
        ),
        avg_message_count_all=average_message_count(conversations),
    )


async def _pause(seconds: float) -> None:
    await asyncio.sleep(seconds)


async def detect_significant_conversations_async(
    dataset: Dataset,
    llm_client: LLMJsonClient,
    settings: Settings | None = None,
    *,
    cost_tracker: CostTracker | None = None,
    progress_callback: ProgressCallback | None = None,
) -> SignificanceAnalysisResult:
    """Score every conversation, one batch at a time, with a pause between batches.

    Conversations within a batch are scored concurrently in worker threads; records
    are collected in conversation order regardless of completion order.
    """

    settings = settings or Settings()
    started = time.perf_counter()
    conversations = group_conversations(dataset.messages, dataset.user_id)
    avg_count = average_message_count(conversations)
    batch_size = settings.significance_batch_size
    batches = [
        conversations[index : index + batch_size]
        for index in range(0, len(conversations), batch_size)
    ]
    logger.info(
        "Scoring %d conversations in %d batches (avg %.1f messages)",
        len(conversations),
        len(batches),
        avg_count,
    )

    records: list[SignificantConversation] = []
    total_cost = 0.0
    for batch_number, batch in enumerate(batches, start=1):
        tasks = [
            asyncio.create_task(
                asyncio.to_thread(
                    _score_conversation,
                    conversation,
                    llm_client,
                    avg_message_count=avg_count,
                    settings=settings,
                )
            )
            for conversation in batch
        ]
        found = 0
        for task in tasks:
            outcome = await task
            if outcome.cost is not None:
                total_cost += outcome.cost.total_cost
                if cost_tracker is not None:
                    cost_tracker.add_cost(outcome.cost)
            if outcome.record is not None:
                records.append(outcome.record)
                found += 1
        logger.info("Batch %d/%d: %d significant", batch_number, len(batches), found)
        if progress_callback is not None:
            progress_callback(batch_number, len(batches))

        if batch_number < len(batches) and settings.significance_batch_delay_seconds > 0:
            await _pause(settings.significance_batch_delay_seconds)

    statistics = compute_significance_statistics(records, conversations)
    logger.info(
        "Significance detection found %d of %d conversations (%.1f%%)",
        statistics.total_significant,
        statistics.total_conversations,
        statistics.percentage_significant,
    )
    return SignificanceAnalysisResult(
        significant_conversations=records,
        statistics=statistics,
        cost_usd=total_cost,
        duration_ms=(time.perf_counter() - started) * 1000.0,
    )


def detect_significant_conversations(
    dataset: Dataset,
    llm_client: LLMJsonClient,
    settings: Settings | None = None,
    *,
    cost_tracker: CostTracker | None = None,
    progress_callback: ProgressCallback | None = None,
) -> SignificanceAnalysisResult:
    """Synchronous entry point for `detect_significant_conversations_async`."""

    return asyncio.run(
        detect_significant_conversations_async(
            dataset,
            llm_client,
            settings,
            cost_tracker=cost_tracker,
            progress_callback=progress_callback,
        )
    )
