from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta

import pytest

from datelens.config import Settings
from datelens.costs import CostTracker
from datelens.mock_data import generate_mock_dataset
from datelens.pipeline import significance
from datelens.pipeline.significance import (
    detect_significant_conversations,
    fallback_significance,
    score_conversation,
)
from datelens.schemas import Conversation, Dataset, Message

NOW = datetime(2025, 6, 1, tzinfo=UTC)


class _FakeJsonClient:
    """Answer by match id; unknown matches are judged not significant."""

    def __init__(self, by_match: dict[str, dict] | None = None, *, fail: bool = False):
        self.by_match = by_match or {}
        self.fail = fail
        self.prompts: list[str] = []
        self._lock = threading.Lock()

    def complete_json(self, *, system_prompt: str, user_prompt: str, **kwargs) -> dict:
        with self._lock:
            self.prompts.append(user_prompt)
        if self.fail:
            raise RuntimeError("rate limited")
        first_line = user_prompt.splitlines()[0]
        match_id = first_line.removeprefix("match_id: ")
        return self.by_match.get(match_id, {"isSignificant": False})


def _conversation(match_id: str, count: int, *, days: float = 10.0) -> Conversation:
    start = NOW - timedelta(days=days)
    step = timedelta(days=days) / max(count - 1, 1)
    messages = [
        Message(
            id=f"{match_id}-{index}",
            match_id=match_id,
            sender_id="user-1" if index % 2 == 0 else f"partner-{match_id}",
            sent_at=start + step * index,
            body=f"message {index}",
            direction="user" if index % 2 == 0 else "match",
        )
        for index in range(count)
    ]
    return Conversation(match_id=match_id, participant_id=f"partner-{match_id}", messages=messages)


def _dataset(*conversations: Conversation) -> Dataset:
    messages = [message for conversation in conversations for message in conversation.messages]
    return Dataset(user_id="user-1", messages=messages)


def _settings(**overrides) -> Settings:
    overrides.setdefault("significance_batch_delay_seconds", 0.0)
    return Settings(openrouter_api_key="test", **overrides)


def test_short_conversation_is_never_scored():
    client = _FakeJsonClient({"m1": {"isSignificant": True, "score": 90}})
    record = score_conversation(
        _conversation("m1", 2), client, avg_message_count=2.0, settings=_settings()
    )
    assert record is None
    assert client.prompts == []


def test_significant_conversation_keeps_top_three_highlights():
    client = _FakeJsonClient(
        {
            "m1": {
                "isSignificant": True,
                "flags": {"contactExchange": True},
                "score": 72,
                "highlights": ["a", "b", "c", "d"],
                "reasoning": "Swapped numbers.",
            }
        }
    )
    record = score_conversation(
        _conversation("m1", 30, days=4.5), client, avg_message_count=12.0, settings=_settings()
    )

    assert record is not None
    assert record.flags.contact_exchange is True
    assert record.score == 72
    assert record.highlights == ["a", "b", "c"]
    assert record.duration.days == 5
    assert record.fallback_used is False
    prompt = client.prompts[0]
    assert "Total messages: 30" in prompt
    assert "Average conversation length for this user: 12.0 messages" in prompt
    # Representative sample: 15 of the 30 messages are sent.
    assert prompt.count("\n[") == 15


def test_failed_scoring_falls_back_to_length_heuristic():
    long_one = _conversation("long", 50)
    others = [_conversation(f"s{index}", 5) for index in range(4)]
    tracker = CostTracker()

    result = detect_significant_conversations(
        _dataset(long_one, *others),
        _FakeJsonClient(fail=True),
        _settings(),
        cost_tracker=tracker,
    )

    assert [item.match_id for item in result.significant_conversations] == ["long"]
    record = result.significant_conversations[0]
    assert record.fallback_used is True
    assert record.score == 50
    assert record.flags.model_dump() == {
        "led_to_date": False,
        "contact_exchange": False,
        "unusual_length": True,
        "emotional_depth": False,
    }
    assert result.cost_usd == 0.0
    assert tracker.total_cost() == 0.0


def test_fallback_requires_absolute_minimum_length():
    record = fallback_significance(
        _conversation("m1", 10), avg_message_count=3.0, settings=_settings()
    )
    assert record is None


def test_mock_history_statistics():
    dataset = generate_mock_dataset(now=NOW)
    client = _FakeJsonClient(
        {
            "match-001": {
                "isSignificant": True,
                "flags": {"ledToDate": True, "contactExchange": True},
                "score": 85,
            }
        }
    )

    result = detect_significant_conversations(dataset, client, _settings())

    stats = result.statistics
    assert stats.total_conversations == 6
    assert stats.total_significant == 1
    assert stats.breakdown.led_to_date == 1
    assert stats.breakdown.contact_exchange == 1
    assert stats.percentage_significant == pytest.approx(100 / 6)
    assert stats.avg_message_count == 10
    # The two-message conversation is skipped without a request.
    assert len(client.prompts) == 5
    assert result.cost_usd > 0


def test_batches_are_paced_and_reported(monkeypatch):
    pauses: list[float] = []

    async def fake_pause(seconds: float) -> None:
        pauses.append(seconds)

    monkeypatch.setattr(significance, "_pause", fake_pause)
    progress: list[tuple[int, int]] = []
    conversations = [_conversation(f"m{index}", 4) for index in range(5)]

    detect_significant_conversations(
        _dataset(*conversations),
        _FakeJsonClient(),
        _settings(significance_batch_size=2, significance_batch_delay_seconds=0.25),
        progress_callback=lambda done, total: progress.append((done, total)),
    )

    assert pauses == [0.25, 0.25]
    assert progress == [(1, 3), (2, 3), (3, 3)]


def test_records_follow_conversation_order():
    conversations = [_conversation(f"m{index}", 4) for index in range(4)]
    client = _FakeJsonClient(
        {f"m{index}": {"isSignificant": True, "score": 60} for index in range(4)}
    )
    result = detect_significant_conversations(_dataset(*conversations), client, _settings())
    assert [item.match_id for item in result.significant_conversations] == [
        "m0",
        "m1",
        "m2",
        "m3",
    ]


def test_single_coffee_conversation_end_to_end():
    conversation = _conversation("coffee", 3)
    messages = [
        message.model_copy(update={"body": body})
        for message, body in zip(
            conversation.messages,
            ["Want to get coffee Saturday?", "Yes! 10am works", "See you there"],
            strict=True,
        )
    ]
    client = _FakeJsonClient(
        {"coffee": {"isSignificant": True, "flags": {"ledToDate": True}, "score": 80}}
    )

    result = detect_significant_conversations(
        Dataset(user_id="user-1", messages=messages), client, _settings()
    )

    stats = result.statistics
    assert stats.total_significant == 1
    assert stats.breakdown.led_to_date == 1
    assert stats.percentage_significant == 100.0
    assert "User: Want to get coffee Saturday?" in client.prompts[0]
