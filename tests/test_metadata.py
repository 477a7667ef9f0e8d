from __future__ import annotations

from datetime import UTC, datetime, timedelta

from datelens.mock_data import generate_mock_dataset
from datelens.pipeline.metadata import (
    MonthlyCount,
    TimelineMetrics,
    VolumeMetrics,
    analyze_metadata,
    build_assessment,
    build_summary,
    find_peak_period,
)
from datelens.schemas import Dataset

NOW = datetime(2025, 6, 1, tzinfo=UTC)


def test_mock_history_metadata():
    result = analyze_metadata(generate_mock_dataset(now=NOW), now=NOW)

    volume = result.volume
    assert volume.total_matches == 6
    assert volume.total_messages == 102
    assert volume.active_conversations == 4
    assert volume.messages_sent_by_user == 51
    assert volume.messages_received == 51
    assert volume.average_messages_per_conversation == 17.0

    timeline = result.timeline
    assert timeline.days_since_last_activity == 4
    assert timeline.total_days > 700
    assert timeline.peak_activity_period is not None
    assert sum(item.count for item in result.distribution.messages_by_month) == 102
    assert sum(item.count for item in result.distribution.matches_by_month) == 6
    months = [item.month for item in result.distribution.messages_by_month]
    assert months == sorted(months)

    assert result.summary.startswith("You were active on mock from ")
    assert result.summary.endswith("(2.1 years)")
    assert result.assessment.startswith("You've been active on mock very recently")
    assert "We found 6 matches to analyze, with 4 meaningful conversations (67%)" in (
        result.assessment
    )


def test_peak_period_picks_busiest_window():
    months = [
        MonthlyCount(month=f"2024-{index:02d}", count=count)
        for index, count in enumerate([1, 5, 5, 5, 5, 1], start=1)
    ]
    assert find_peak_period(months) == "Feb 2024 to May 2024"
    assert find_peak_period(months[:2]) is None


def test_assessment_for_dormant_account_mentions_peak():
    timeline = TimelineMetrics(
        first_activity=NOW - timedelta(days=900),
        last_activity=NOW - timedelta(days=400),
        total_days=500,
        days_since_last_activity=400,
        peak_activity_period="Jan 2023 to Apr 2023",
    )
    volume = VolumeMetrics(total_matches=1, total_messages=3)

    assessment = build_assessment("tinder", timeline, volume)

    assert assessment == (
        "It appears you haven't used tinder in a while, We found 1 match to analyze, "
        "Your most active period was around Jan 2023 to Apr 2023."
    )
    assert build_summary("tinder", timeline).endswith("(1.4 years)")


def test_empty_dataset():
    result = analyze_metadata(Dataset(user_id="u", platform="bumble"), now=NOW)
    assert result.volume.total_messages == 0
    assert result.timeline.first_activity is None
    assert result.summary == "No activity data available for bumble"
    assert result.assessment == "No activity found on bumble. Please check your data export."
