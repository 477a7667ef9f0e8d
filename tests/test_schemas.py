"""Tests for core data schemas."""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from datelens.schemas import (
    RISK_LEVEL_ORDER,
    Conversation,
    Message,
    PatternFindings,
    RiskFindings,
    SafetyFindings,
    SignificantConversation,
    ordinal,
)


class TestMessage:
    def test_accepts_camel_case_keys(self):
        message = Message.model_validate(
            {
                "id": "m1",
                "matchId": "match-1",
                "senderId": "user-1",
                "sentAt": "2024-05-01T18:30:00Z",
                "body": "Hi!",
                "direction": "user",
            }
        )
        assert message.match_id == "match-1"
        assert message.sent_at == datetime(2024, 5, 1, 18, 30, tzinfo=UTC)

    def test_naive_timestamp_is_treated_as_utc(self):
        message = Message(
            id="m1",
            match_id="match-1",
            sender_id="user-1",
            sent_at=datetime(2024, 5, 1, 12, 0),
            direction="match",
        )
        assert message.sent_at.tzinfo is not None
        assert message.body == ""

    def test_rejects_unknown_direction(self):
        with pytest.raises(ValidationError):
            Message(
                id="m1",
                match_id="match-1",
                sender_id="user-1",
                sent_at=datetime(2024, 5, 1, tzinfo=UTC),
                direction="system",
            )

    def test_is_immutable(self):
        message = Message(
            id="m1",
            match_id="match-1",
            sender_id="user-1",
            sent_at=datetime(2024, 5, 1, tzinfo=UTC),
            direction="user",
        )
        with pytest.raises(ValidationError):
            message.body = "changed"


class TestConversation:
    def test_counts_and_last_message(self):
        messages = [
            Message(
                id=f"m{index}",
                match_id="match-1",
                sender_id="user-1",
                sent_at=datetime(2024, 5, index, tzinfo=UTC),
                direction="user",
            )
            for index in (1, 2, 3)
        ]
        conversation = Conversation(
            match_id="match-1", participant_id="partner-1", messages=messages
        )
        assert conversation.message_count == 3
        assert conversation.last_message_at == datetime(2024, 5, 3, tzinfo=UTC)


class TestFindingsDefaults:
    def test_safety_defaults_are_neutral(self):
        findings = SafetyFindings()
        assert findings.risk_level == "green"
        assert findings.red_flags == []
        assert findings.summary == "Safety screening completed"

    def test_safety_risk_level_is_normalized(self):
        findings = SafetyFindings.model_validate({"riskLevel": " ORANGE "})
        assert findings.risk_level == "orange"

    def test_partial_pattern_payload_validates(self):
        findings = PatternFindings.model_validate(
            {"communicationStyle": {"consistency": "mixed"}, "complexityScore": 0.4}
        )
        assert findings.communication_style.consistency == "mixed"
        assert findings.communication_style.initiation_pattern == "balanced"
        assert findings.authenticity.score == 0.5
        assert findings.complexity_score == 0.4

    def test_complexity_score_is_bounded(self):
        with pytest.raises(ValidationError):
            PatternFindings(complexity_score=1.5)

    def test_unknown_fields_are_ignored(self):
        findings = RiskFindings.model_validate({"summary": "ok", "confidence": 0.9})
        assert findings.summary == "ok"


def test_significant_conversation_score_bounds():
    with pytest.raises(ValidationError):
        SignificantConversation.model_validate(
            {
                "matchId": "match-1",
                "participantId": "p",
                "messageCount": 10,
                "duration": {
                    "days": 1,
                    "firstMessage": "2024-01-01T00:00:00Z",
                    "lastMessage": "2024-01-02T00:00:00Z",
                },
                "flags": {},
                "score": 101,
            }
        )


def test_risk_level_ordinal():
    assert [ordinal(level, RISK_LEVEL_ORDER) for level in RISK_LEVEL_ORDER] == [0, 1, 2, 3]
