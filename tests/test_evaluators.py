from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from datelens.config import Settings
from datelens.pipeline import StageError
from datelens.pipeline.evaluators import (
    run_attachment_evaluator,
    run_crisis_evaluator,
    run_growth_evaluator,
    run_risk_evaluator,
)
from datelens.schemas import (
    AttachmentMarkers,
    ChronologyOutput,
    Dataset,
    Growth,
    Message,
    PatternOutput,
    RedFlag,
    RiskOutput,
    SafetyFindings,
    StageMetadata,
    TimeRange,
)

NOW = datetime(2025, 6, 1, tzinfo=UTC)


class _FakeJsonClient:
    def __init__(self, payloads: dict[str, dict] | None = None, *, fail: bool = False):
        self.payloads = payloads or {}
        self.fail = fail
        self.calls: list[dict] = []

    def complete_json(self, *, system_prompt: str, user_prompt: str, **kwargs) -> dict:
        self.calls.append({"system_prompt": system_prompt, "user_prompt": user_prompt, **kwargs})
        if self.fail:
            raise RuntimeError("upstream unavailable")
        return self.payloads.get(kwargs.get("schema_name"), {})


def _metadata() -> StageMetadata:
    return StageMetadata(analyzed_at=NOW, duration_ms=1.0, model="test-model")


def _dataset() -> Dataset:
    messages = []
    for index, days_ago in enumerate([600, 300, 10, 5, 2, 1]):
        direction = "user" if index % 2 == 0 else "match"
        messages.append(
            Message(
                id=f"m{index}",
                match_id="match-1",
                sender_id="user-1" if direction == "user" else "partner-1",
                sent_at=NOW - timedelta(days=days_ago),
                body=f"Body {index}",
                direction=direction,
            )
        )
    return Dataset(user_id="user-1", messages=messages)


def _settings(**overrides) -> Settings:
    return Settings(openrouter_api_key="test", **overrides)


def _safety(level: str = "orange") -> SafetyFindings:
    return SafetyFindings(
        risk_level=level,
        red_flags=[
            RedFlag(type="financial-request", severity="high", description="Asked for $300")
        ],
        summary="Money request.",
    )


def _risk(level: str = "yellow", **findings) -> RiskOutput:
    return RiskOutput(source_risk_level=level, metadata=_metadata(), **findings)


class TestRiskEvaluator:
    def test_records_trigger_and_passes_safety_context(self):
        client = _FakeJsonClient({"RiskFindings": {"summary": "Pressure tactics."}})
        output = run_risk_evaluator(_dataset(), _safety(), client, _settings(), now=NOW)

        assert output.metadata.trigger_reason == (
            "Moderate safety concerns detected; Red flags: financial-request"
        )
        assert output.source_risk_level == "orange"
        assert output.escalate is True
        # Only the four messages inside the 90-day window are sent.
        assert output.metadata.messages_analyzed == 4
        prompt = client.calls[0]["user_prompt"]
        assert prompt.startswith("This evaluation was triggered because: Moderate safety")
        assert "- financial-request (high): Asked for $300" in prompt
        assert "Body 0" not in prompt
        assert prompt.index("Body 2") < prompt.index("Body 5")

    def test_yellow_source_escalates_only_on_serious_findings(self):
        calm = _FakeJsonClient({"RiskFindings": {}})
        assert run_risk_evaluator(
            _dataset(), _safety("yellow"), calm, _settings(), now=NOW
        ).escalate is False

        severe = _FakeJsonClient(
            {
                "RiskFindings": {
                    "manipulationTactics": [
                        {"type": "gaslighting", "severity": "critical", "description": "x"}
                    ]
                }
            }
        )
        assert run_risk_evaluator(
            _dataset(), _safety("yellow"), severe, _settings(), now=NOW
        ).escalate is True

    def test_chunked_requests_are_labeled(self):
        client = _FakeJsonClient()
        output = run_risk_evaluator(
            _dataset(), _safety(), client, _settings(max_tokens_per_chunk=5), now=NOW
        )
        assert output.metadata.chunk_count == len(client.calls) > 1
        assert client.calls[0]["user_prompt"].startswith(f"Batch 1 of {len(client.calls)}.\n")


class TestAttachmentEvaluator:
    def test_reason_reflects_pattern_signals(self):
        pattern = PatternOutput(
            complexity_score=0.6,
            attachment_markers=AttachmentMarkers(
                anxiety_markers=["checks phone"], avoidance_markers=["needs space"]
            ),
            metadata=_metadata(),
        )
        client = _FakeJsonClient(
            {
                "AttachmentFindings": {
                    "attachmentStyle": {"primary": "anxious-preoccupied", "confidence": 0.7}
                }
            }
        )
        output = run_attachment_evaluator(_dataset(), pattern, client, _settings(), now=NOW)

        assert output.attachment_style.primary == "anxious-preoccupied"
        assert output.metadata.trigger_reason == (
            "Pattern complexity 0.60; Both anxiety and avoidance markers present"
        )
        assert "- checks phone" in client.calls[0]["user_prompt"]
        assert len(client.calls) == 1


class TestGrowthEvaluator:
    def test_single_request_over_segments(self):
        chronology = ChronologyOutput(
            time_range=TimeRange(
                earliest=NOW - timedelta(days=600), latest=NOW, duration_months=20
            ),
            growth=Growth(detected=True, direction="improving", areas=["directness"]),
            metadata=_metadata(),
        )
        client = _FakeJsonClient({"GrowthFindings": {"summary": "Clear progress."}})
        output = run_growth_evaluator(
            _dataset(), chronology, client, _settings(max_tokens_per_chunk=5), now=NOW
        )

        assert len(client.calls) == 1
        assert output.summary == "Clear progress."
        assert output.metadata.trigger_reason == (
            "20 months of history; growth improving; Areas: directness"
        )
        assert "--- Last 6 months ---" in client.calls[0]["user_prompt"]


class TestCrisisEvaluator:
    def test_reason_names_source_level(self):
        client = _FakeJsonClient({"CrisisFindings": {"threatAssessment": {"level": "high"}}})
        output = run_crisis_evaluator(
            _dataset(), _risk("red"), client, _settings(), now=NOW
        )
        assert output.threat_assessment.level == "high"
        assert output.metadata.trigger_reason == "RED risk level from safety screening"

    def test_failure_names_crisis_stage(self):
        with pytest.raises(StageError) as exc_info:
            run_crisis_evaluator(
                _dataset(), _risk("red"), _FakeJsonClient(fail=True), _settings(), now=NOW
            )
        assert exc_info.value.stage == "crisis"
        assert str(exc_info.value).startswith("crisis stage failed")
