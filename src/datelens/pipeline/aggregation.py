"""Merge per-chunk stage findings into one result.

Severity-like fields take the worst value across chunks, finding lists are
concatenated and deduplicated by normalized description (first occurrence wins),
and summaries are passed through for a single chunk or combined in chunk order.
Every merge returns a new value.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from typing import TypeVar

from datelens.schemas import (
    CONSISTENCY_ORDER,
    CONTROL_SEVERITY_ORDER,
    RISK_LEVEL_ORDER,
    AttachmentMarkers,
    Authenticity,
    Boundaries,
    CoerciveControl,
    CommunicationStyle,
    PatternFindings,
    RiskFindings,
    SafetyFindings,
    TraumaBonding,
    ordinal,
)

T = TypeVar("T")


def normalize_key(text: str) -> str:
    return " ".join(text.lower().split())


def dedupe_by(items: Iterable[T], key: Callable[[T], str]) -> list[T]:
    """Drop later items whose key was already seen."""

    seen: set[str] = set()
    unique: list[T] = []
    for item in items:
        item_key = key(item)
        if item_key in seen:
            continue
        seen.add(item_key)
        unique.append(item)
    return unique


def dedupe_texts(texts: Iterable[str]) -> list[str]:
    return dedupe_by((text for text in texts if text.strip()), normalize_key)


def max_by_order(values: Iterable[str], order: tuple[str, ...], default: str) -> str:
    """Highest-ranked value on an ordered scale."""

    best = default
    for value in values:
        if ordinal(value, order) > ordinal(best, order):
            best = value
    return best


def merge_summaries(summaries: Sequence[str]) -> str:
    """Pass a lone summary through; otherwise state the batch count and concatenate."""

    if len(summaries) == 1:
        return summaries[0]
    body = " ".join(
        f"Batch {index}: {summary.strip()}"
        for index, summary in enumerate(summaries, start=1)
        if summary.strip()
    )
    header = f"Analyzed {len(summaries)} batches."
    return f"{header} {body}" if body else header


def merge_safety_findings(findings: Sequence[SafetyFindings]) -> SafetyFindings:
    if not findings:
        return SafetyFindings()
    if len(findings) == 1:
        return findings[0]

    return SafetyFindings(
        risk_level=max_by_order(
            (item.risk_level for item in findings), RISK_LEVEL_ORDER, "green"
        ),
        red_flags=dedupe_by(
            (flag for item in findings for flag in item.red_flags),
            lambda flag: normalize_key(flag.description) or flag.type,
        ),
        green_flags=dedupe_texts(text for item in findings for text in item.green_flags),
        summary=merge_summaries([item.summary for item in findings]),
    )


def merge_pattern_findings(findings: Sequence[PatternFindings]) -> PatternFindings:
    if not findings:
        return PatternFindings()
    if len(findings) == 1:
        return findings[0]

    first = findings[0]
    styles = [item.communication_style for item in findings]
    markers = [item.attachment_markers for item in findings]
    authenticity = [item.authenticity for item in findings]
    boundaries = [item.boundaries for item in findings]

    return PatternFindings(
        communication_style=CommunicationStyle(
            consistency=max_by_order(
                (style.consistency for style in styles), CONSISTENCY_ORDER, "very-consistent"
            ),
            emotional_expressiveness=first.communication_style.emotional_expressiveness,
            initiation_pattern=first.communication_style.initiation_pattern,
        ),
        attachment_markers=AttachmentMarkers(
            anxiety_markers=dedupe_texts(m for item in markers for m in item.anxiety_markers),
            avoidance_markers=dedupe_texts(
                m for item in markers for m in item.avoidance_markers
            ),
            secure_markers=dedupe_texts(m for item in markers for m in item.secure_markers),
        ),
        authenticity=Authenticity(
            score=min(item.score for item in authenticity),
            vulnerability_shown=any(item.vulnerability_shown for item in authenticity),
            genuine_interest=any(item.genuine_interest for item in authenticity),
        ),
        boundaries=Boundaries(
            user_sets_boundaries=any(item.user_sets_boundaries for item in boundaries),
            user_respects_boundaries=all(item.user_respects_boundaries for item in boundaries),
            examples=dedupe_texts(e for item in boundaries for e in item.examples),
        ),
        complexity_score=max(item.complexity_score for item in findings),
        summary=merge_summaries([item.summary for item in findings]),
    )


def merge_risk_findings(findings: Sequence[RiskFindings]) -> RiskFindings:
    if not findings:
        return RiskFindings()
    if len(findings) == 1:
        return findings[0]

    controls = [item.coercive_control for item in findings]
    bonding = [item.trauma_bonding for item in findings]

    return RiskFindings(
        manipulation_tactics=dedupe_by(
            (tactic for item in findings for tactic in item.manipulation_tactics),
            lambda tactic: normalize_key(tactic.description) or tactic.type,
        ),
        coercive_control=CoerciveControl(
            detected=any(item.detected for item in controls),
            tactics=dedupe_texts(t for item in controls for t in item.tactics),
            severity=max_by_order(
                (item.severity for item in controls), CONTROL_SEVERITY_ORDER, "low"
            ),
            evidence=dedupe_texts(e for item in controls for e in item.evidence),
        ),
        trauma_bonding=TraumaBonding(
            detected=any(item.detected for item in bonding),
            indicators=dedupe_texts(i for item in bonding for i in item.indicators),
            cycle_detected=any(item.cycle_detected for item in bonding),
            evidence=dedupe_texts(e for item in bonding for e in item.evidence),
        ),
        summary=merge_summaries([item.summary for item in findings]),
        recommendations=dedupe_texts(r for item in findings for r in item.recommendations),
    )
