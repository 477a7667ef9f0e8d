"""Deterministic activity metadata: volume, timeline and monthly distribution.

No completion calls are made here, so this runs instantly and for free on any dataset.
"""

from __future__ import annotations

from collections import Counter
from datetime import UTC, datetime

from pydantic import Field

from datelens.schemas import Dataset, DatelensModel

ACTIVE_CONVERSATION_MIN_MESSAGES = 5
PEAK_WINDOW_MONTHS = 4
PEAK_MIN_MONTHS = 3


class VolumeMetrics(DatelensModel):
    total_matches: int = 0
    total_messages: int = 0
    active_conversations: int = 0
    average_messages_per_conversation: float = 0.0
    messages_sent_by_user: int = 0
    messages_received: int = 0


class TimelineMetrics(DatelensModel):
    first_activity: datetime | None = None
    last_activity: datetime | None = None
    total_days: int = 0
    days_since_last_activity: int = 0
    peak_activity_period: str | None = None


class MonthlyCount(DatelensModel):
    month: str
    count: int


class ActivityDistribution(DatelensModel):
    matches_by_month: list[MonthlyCount] = Field(default_factory=list)
    messages_by_month: list[MonthlyCount] = Field(default_factory=list)


class MetadataAnalysisResult(DatelensModel):
    platform: str
    volume: VolumeMetrics
    timeline: TimelineMetrics
    distribution: ActivityDistribution
    summary: str
    assessment: str


def _month_key(value: datetime) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def _month_label(key: str) -> str:
    return datetime.strptime(key, "%Y-%m").strftime("%b %Y")


def _monthly(values: list[datetime]) -> list[MonthlyCount]:
    counts = Counter(_month_key(value) for value in values)
    return [MonthlyCount(month=month, count=counts[month]) for month in sorted(counts)]


def compute_volume(dataset: Dataset) -> VolumeMetrics:
    per_match = Counter(message.match_id for message in dataset.messages)
    sent = sum(1 for message in dataset.messages if message.direction == "user")
    total = len(dataset.messages)
    average = total / len(per_match) if per_match else 0.0
    return VolumeMetrics(
        total_matches=len(dataset.matches),
        total_messages=total,
        active_conversations=sum(
            1 for count in per_match.values() if count >= ACTIVE_CONVERSATION_MIN_MESSAGES
        ),
        average_messages_per_conversation=round(average, 1),
        messages_sent_by_user=sent,
        messages_received=total - sent,
    )


def find_peak_period(messages_by_month: list[MonthlyCount]) -> str | None:
    """Best run of up to four consecutive active months, e.g. "Jan 2024 to Apr 2024"."""

    if len(messages_by_month) < PEAK_MIN_MONTHS:
        return None

    best_total = 0
    best_start = 0
    for start in range(len(messages_by_month) - PEAK_MIN_MONTHS + 1):
        window = messages_by_month[start : start + PEAK_WINDOW_MONTHS]
        total = sum(item.count for item in window)
        if total > best_total:
            best_total = total
            best_start = start

    peak = messages_by_month[best_start : best_start + PEAK_WINDOW_MONTHS]
    return f"{_month_label(peak[0].month)} to {_month_label(peak[-1].month)}"


def compute_timeline(dataset: Dataset, *, now: datetime | None = None) -> TimelineMetrics:
    dates = [message.sent_at for message in dataset.messages]
    dates.extend(match.created_at for match in dataset.matches if match.created_at is not None)
    if not dates:
        return TimelineMetrics()

    first = min(dates)
    last = max(dates)
    current = now or datetime.now(UTC)
    return TimelineMetrics(
        first_activity=first,
        last_activity=last,
        total_days=(last - first).days,
        days_since_last_activity=max(0, (current - last).days),
        peak_activity_period=find_peak_period(
            _monthly([message.sent_at for message in dataset.messages])
        ),
    )


def _duration_phrase(total_days: int) -> str:
    years = total_days / 365
    if years >= 1:
        return f"{round(years, 1)} years"
    return f"{round(total_days / 30)} months"


def _plural(count: int, word: str, suffix: str = "s") -> str:
    return f"{count} {word}{'' if count == 1 else suffix}"


def build_summary(platform: str, timeline: TimelineMetrics) -> str:
    if timeline.first_activity is None or timeline.last_activity is None:
        return f"No activity data available for {platform}"
    return (
        f"You were active on {platform} from {timeline.first_activity.strftime('%b %Y')} "
        f"to {timeline.last_activity.strftime('%b %Y')} "
        f"({_duration_phrase(timeline.total_days)})"
    )


def build_assessment(platform: str, timeline: TimelineMetrics, volume: VolumeMetrics) -> str:
    if timeline.first_activity is None:
        return f"No activity found on {platform}. Please check your data export."

    days_since = timeline.days_since_last_activity
    if days_since >= 365:
        parts = [f"It appears you haven't used {platform} in a while"]
    elif days_since >= 90:
        parts = [f"You were active on {platform} within the past year"]
    elif days_since >= 30:
        parts = [f"You've been active on {platform} in the past few months"]
    else:
        parts = [f"You've been active on {platform} very recently"]

    if volume.total_matches > 0:
        parts.append(f"We found {_plural(volume.total_matches, 'match', 'es')} to analyze")
        if volume.active_conversations > 0:
            percentage = round(volume.active_conversations / volume.total_matches * 100)
            parts.append(
                f"with {_plural(volume.active_conversations, 'meaningful conversation')} "
                f"({percentage}%)"
            )

    if timeline.peak_activity_period and days_since >= 365:
        parts.append(f"Your most active period was around {timeline.peak_activity_period}")
    return ", ".join(parts) + "."


def analyze_metadata(dataset: Dataset, *, now: datetime | None = None) -> MetadataAnalysisResult:
    """Summarize activity without calling the completion capability."""

    volume = compute_volume(dataset)
    timeline = compute_timeline(dataset, now=now)
    distribution = ActivityDistribution(
        matches_by_month=_monthly(
            [match.created_at for match in dataset.matches if match.created_at is not None]
        ),
        messages_by_month=_monthly([message.sent_at for message in dataset.messages]),
    )
    return MetadataAnalysisResult(
        platform=dataset.platform,
        volume=volume,
        timeline=timeline,
        distribution=distribution,
        summary=build_summary(dataset.platform, timeline),
        assessment=build_assessment(dataset.platform, timeline, volume),
    )
