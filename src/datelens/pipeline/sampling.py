"""Recency-weighted sampling of messages and conversations."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from datelens.schemas import Conversation, Message, TimeRange, TimeSegment

DAYS_PER_MONTH = 30

# (label, newer bound in months ago, older bound in months ago, weight), newest first.
TIME_SEGMENT_BUCKETS: tuple[tuple[str, int, int | None, float], ...] = (
    ("Last 6 months", 0, 6, 1.0),
    ("6-12 months ago", 6, 12, 0.6),
    ("12-18 months ago", 12, 18, 0.3),
    ("18+ months ago", 18, None, 0.1),
)


def _utc_now() -> datetime:
    return datetime.now(UTC)


def sender_label(message: Message) -> str:
    return "User" if message.direction == "user" else "Match"


def format_message_unit(message: Message, *, include_date: bool = False) -> str:
    """Render one message as a prompt line."""

    line = f"{sender_label(message)}: {message.body}"
    if include_date:
        return f"[{message.sent_at.date().isoformat()}] {line}"
    return line


def filter_recent(
    messages: Sequence[Message],
    *,
    window_days: int,
    now: datetime | None = None,
) -> list[Message]:
    """Drop every message older than the recency horizon."""

    cutoff = (now or _utc_now()) - timedelta(days=window_days)
    return [message for message in messages if message.sent_at >= cutoff]


def weighted_take(
    messages: Sequence[Message],
    *,
    max_messages: int,
    recent_weight: float,
) -> list[Message]:
    """Take a recency-weighted sample of at most `max_messages` messages.

    `floor(max_messages * recent_weight)` slots go to the newest messages and the
    remaining slots to the next-newest, recent part first.
    """

    if max_messages <= 0:
        return []
    if len(messages) <= max_messages:
        return list(messages)

    newest_first = sorted(messages, key=lambda message: message.sent_at, reverse=True)
    recent_count = math.floor(max_messages * recent_weight)
    older_count = max_messages - recent_count
    recent = newest_first[:recent_count]
    older = newest_first[recent_count : recent_count + older_count]
    return recent + older


def sample_recent_messages(
    messages: Sequence[Message],
    *,
    window_days: int,
    max_messages: int,
    recent_weight: float,
    now: datetime | None = None,
) -> list[Message]:
    """Window filter followed by the weighted take."""

    in_window = filter_recent(messages, window_days=window_days, now=now)
    return weighted_take(in_window, max_messages=max_messages, recent_weight=recent_weight)


def take_most_recent(
    messages: Sequence[Message],
    *,
    max_messages: int,
    window_days: int | None = None,
    now: datetime | None = None,
) -> list[Message]:
    """Newest `max_messages` messages, newest first, optionally inside a window."""

    pool = list(messages)
    if window_days is not None:
        pool = filter_recent(pool, window_days=window_days, now=now)
    pool.sort(key=lambda message: message.sent_at, reverse=True)
    return pool[:max_messages]


@dataclass(frozen=True)
class ConversationSample:
    """Rendered per-conversation sample: header lines interleaved with messages."""

    units: list[str]
    conversation_count: int
    message_count: int


def rank_conversations(conversations: Sequence[Conversation]) -> list[Conversation]:
    """Order conversations by their most recent message, newest first."""

    active = [conversation for conversation in conversations if conversation.messages]
    return sorted(active, key=lambda conversation: conversation.last_message_at, reverse=True)


def sample_conversations(
    conversations: Sequence[Conversation],
    *,
    max_conversations: int,
    max_messages_per_conversation: int,
) -> ConversationSample:
    """Top-N most recently active conversations, each capped to its latest M messages."""

    units: list[str] = []
    message_count = 0
    selected = rank_conversations(conversations)[:max_conversations]
    for index, conversation in enumerate(selected, start=1):
        latest = conversation.messages[-max_messages_per_conversation:]
        units.append(f"--- Conversation {index} ({len(latest)} messages) ---")
        units.extend(format_message_unit(message) for message in latest)
        message_count += len(latest)
    return ConversationSample(
        units=units,
        conversation_count=len(selected),
        message_count=message_count,
    )


def build_time_segments(
    messages: Sequence[Message],
    *,
    now: datetime | None = None,
) -> list[TimeSegment]:
    """Bucket messages into non-overlapping recency segments, newest first.

    Months are 30-day periods. Empty buckets are omitted. The oldest bucket starts at
    its earliest message.
    """

    if not messages:
        return []

    current = now or _utc_now()
    segments: list[TimeSegment] = []
    for label, newer_months, older_months, weight in TIME_SEGMENT_BUCKETS:
        end = current - timedelta(days=newer_months * DAYS_PER_MONTH)
        if older_months is None:
            start = None
        else:
            start = current - timedelta(days=older_months * DAYS_PER_MONTH)

        if newer_months == 0:
            bucket = [m for m in messages if start is None or m.sent_at >= start]
        elif start is None:
            bucket = [m for m in messages if m.sent_at < end]
        else:
            bucket = [m for m in messages if start <= m.sent_at < end]
        if not bucket:
            continue

        bucket.sort(key=lambda message: message.sent_at)
        segments.append(
            TimeSegment(
                label=label,
                start=start if start is not None else bucket[0].sent_at,
                end=end,
                weight=weight,
                messages=bucket,
            )
        )
    return segments


def compute_time_range(
    messages: Sequence[Message],
    *,
    now: datetime | None = None,
) -> TimeRange:
    """Earliest/latest timestamps and the span in rounded 30-day months."""

    if not messages:
        current = now or _utc_now()
        return TimeRange(earliest=current, latest=current, duration_months=0)

    timestamps = [message.sent_at for message in messages]
    earliest = min(timestamps)
    latest = max(timestamps)
    span_days = (latest - earliest).total_seconds() / 86400
    return TimeRange(
        earliest=earliest,
        latest=latest,
        duration_months=math.floor(span_days / DAYS_PER_MONTH + 0.5),
    )


def representative_sample(messages: Sequence[Message], max_count: int = 15) -> list[Message]:
    """First, middle and last slices of a conversation, oldest first."""

    if len(messages) <= max_count:
        return list(messages)

    ordered = sorted(messages, key=lambda message: message.sent_at)
    per_section = max_count // 3
    middle_start = len(ordered) // 2 - per_section // 2
    beginning = ordered[:per_section]
    middle = ordered[middle_start : middle_start + per_section]
    end = ordered[-per_section:] if per_section else []
    return beginning + middle + end
