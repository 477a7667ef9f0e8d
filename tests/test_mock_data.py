"""Tests for mock data generation utilities."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta

from datelens.mock_data import MOCK_USER_ID, generate_mock_dataset, write_mock_messages

NOW = datetime(2025, 6, 1, tzinfo=UTC)


def test_generation_is_deterministic_for_seed_and_clock():
    first = generate_mock_dataset(seed=3, now=NOW)
    second = generate_mock_dataset(seed=3, now=NOW)
    assert first == second
    assert generate_mock_dataset(seed=4, now=NOW) != first


def test_dataset_shape():
    dataset = generate_mock_dataset(now=NOW)

    assert dataset.user_id == MOCK_USER_ID
    assert len(dataset.matches) == 6
    assert len({message.id for message in dataset.messages}) == len(dataset.messages)
    sent = [message.sent_at for message in dataset.messages]
    assert sent == sorted(sent)
    assert max(sent) <= NOW
    assert all(
        (message.sender_id == MOCK_USER_ID) == (message.direction == "user")
        for message in dataset.messages
    )
    for match in dataset.matches:
        first = min(m.sent_at for m in dataset.messages if m.match_id == match.id)
        assert match.created_at < first


def test_history_covers_recent_and_old_activity():
    dataset = generate_mock_dataset(now=NOW)
    ages = [NOW - message.sent_at for message in dataset.messages]
    assert min(ages) < timedelta(days=90)
    assert max(ages) > timedelta(days=540)


def test_written_rows_use_camel_case(tmp_path):
    path = write_mock_messages(tmp_path / "out" / "messages.jsonl", generate_mock_dataset(now=NOW))
    rows = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert len(rows) == 102
    assert set(rows[0]) == {"id", "matchId", "senderId", "sentAt", "body", "direction"}
