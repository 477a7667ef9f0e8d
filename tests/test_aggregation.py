"""Tests for merging per-chunk findings."""

from datelens.pipeline.aggregation import (
    merge_pattern_findings,
    merge_risk_findings,
    merge_safety_findings,
    merge_summaries,
)
from datelens.schemas import (
    AttachmentMarkers,
    Authenticity,
    Boundaries,
    CoerciveControl,
    CommunicationStyle,
    ManipulationTactic,
    PatternFindings,
    RedFlag,
    RiskFindings,
    SafetyFindings,
)


class TestMergeSummaries:
    def test_single_summary_passes_through(self):
        assert merge_summaries(["All good."]) == "All good."

    def test_multiple_summaries_are_labelled(self):
        merged = merge_summaries(["First.", "Second."])
        assert merged == "Analyzed 2 batches. Batch 1: First. Batch 2: Second."


class TestMergeSafety:
    def test_empty_input_gives_defaults(self):
        assert merge_safety_findings([]) == SafetyFindings()

    def test_single_chunk_is_returned_unchanged(self):
        findings = SafetyFindings(risk_level="yellow", summary="One chunk.")
        assert merge_safety_findings([findings]) is findings

    def test_worst_level_and_deduplicated_flags(self):
        pressure = RedFlag(type="pressure", severity="medium", description="Pushes to meet")
        merged = merge_safety_findings(
            [
                SafetyFindings(
                    risk_level="yellow",
                    red_flags=[pressure],
                    green_flags=["Respects boundaries"],
                    summary="Chunk one.",
                ),
                SafetyFindings(
                    risk_level="orange",
                    red_flags=[
                        RedFlag(type="pressure", severity="high", description="pushes  TO meet"),
                        RedFlag(type="financial-request", severity="high", description="Asks $"),
                    ],
                    green_flags=["respects boundaries"],
                    summary="Chunk two.",
                ),
                SafetyFindings(risk_level="green", summary="Chunk three."),
            ]
        )
        assert merged.risk_level == "orange"
        assert [flag.type for flag in merged.red_flags] == ["pressure", "financial-request"]
        assert merged.red_flags[0].severity == "medium"
        assert merged.green_flags == ["Respects boundaries"]
        assert merged.summary.startswith("Analyzed 3 batches.")

    def test_flags_without_description_dedupe_by_type(self):
        merged = merge_safety_findings(
            [
                SafetyFindings(red_flags=[RedFlag(type="threat")]),
                SafetyFindings(red_flags=[RedFlag(type="pressure"), RedFlag(type="threat")]),
            ]
        )
        assert [flag.type for flag in merged.red_flags] == ["threat", "pressure"]

    def test_merge_is_idempotent_for_equal_inputs(self):
        findings = SafetyFindings(
            risk_level="orange",
            red_flags=[RedFlag(type="pressure", description="Pushes")],
            summary="Same.",
        )
        merged = merge_safety_findings([findings, findings])
        assert merged.risk_level == findings.risk_level
        assert merged.red_flags == findings.red_flags


class TestMergePattern:
    def test_conservative_merge(self):
        merged = merge_pattern_findings(
            [
                PatternFindings(
                    communication_style=CommunicationStyle(
                        consistency="very-consistent", initiation_pattern="proactive"
                    ),
                    attachment_markers=AttachmentMarkers(anxiety_markers=["Double texting"]),
                    authenticity=Authenticity(score=0.8, vulnerability_shown=True),
                    boundaries=Boundaries(
                        user_sets_boundaries=False, user_respects_boundaries=True
                    ),
                    complexity_score=0.1,
                ),
                PatternFindings(
                    communication_style=CommunicationStyle(consistency="mixed"),
                    attachment_markers=AttachmentMarkers(
                        anxiety_markers=["double texting"], avoidance_markers=["Goes quiet"]
                    ),
                    authenticity=Authenticity(score=0.4, genuine_interest=True),
                    boundaries=Boundaries(
                        user_sets_boundaries=True, user_respects_boundaries=False
                    ),
                    complexity_score=0.6,
                ),
            ]
        )
        assert merged.communication_style.consistency == "mixed"
        assert merged.communication_style.initiation_pattern == "proactive"
        assert merged.attachment_markers.anxiety_markers == ["Double texting"]
        assert merged.attachment_markers.avoidance_markers == ["Goes quiet"]
        assert merged.authenticity.score == 0.4
        assert merged.authenticity.vulnerability_shown is True
        assert merged.authenticity.genuine_interest is True
        assert merged.boundaries.user_sets_boundaries is True
        assert merged.boundaries.user_respects_boundaries is False
        assert merged.complexity_score == 0.6


class TestMergeRisk:
    def test_worst_control_severity_and_union_of_tactics(self):
        merged = merge_risk_findings(
            [
                RiskFindings(
                    manipulation_tactics=[
                        ManipulationTactic(type="gaslighting", description="Denies events")
                    ],
                    coercive_control=CoerciveControl(detected=False, severity="low"),
                    recommendations=["Keep records"],
                ),
                RiskFindings(
                    manipulation_tactics=[
                        ManipulationTactic(type="gaslighting", description="denies events"),
                        ManipulationTactic(type="isolation", description="Discourages friends"),
                    ],
                    coercive_control=CoerciveControl(detected=True, severity="high"),
                    recommendations=["keep records", "Talk to a friend"],
                ),
            ]
        )
        assert [t.type for t in merged.manipulation_tactics] == ["gaslighting", "isolation"]
        assert merged.coercive_control.detected is True
        assert merged.coercive_control.severity == "high"
        assert merged.recommendations == ["Keep records", "Talk to a friend"]
