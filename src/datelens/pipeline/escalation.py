"""Escalation predicates deciding whether a deeper evaluator runs.

Each predicate looks only at one stage's aggregated findings and is pure: the same
findings always give the same answer. `*_signal` helpers wrap a predicate into an
`EscalationSignal` carrying the human-readable reasons behind the verdict.
"""

from __future__ import annotations

from dataclasses import dataclass

from datelens.schemas import (
    RISK_LEVEL_ORDER,
    Growth,
    PatternFindings,
    RiskFindings,
    RiskLevel,
    SafetyFindings,
    ordinal,
)

HIGHEST_FLAG_SEVERITY = "high"
CRISIS_SOURCE_LEVELS = frozenset({"orange", "red"})
CRISIS_CONTROL_SEVERITIES = frozenset({"high", "critical"})
RECURRING_PATTERNS = frozenset({"frequent", "consistent"})
MIXED_CONSISTENCY = frozenset({"mixed", "inconsistent"})

_RISK_LEVEL_REASONS = {
    "red": "Critical safety risk detected",
    "orange": "Moderate safety concerns detected",
    "yellow": "Minor safety concerns detected",
}


@dataclass(frozen=True)
class EscalationSignal:
    """Verdict of one stage boundary."""

    source_stage: str
    target_stage: str
    escalate: bool
    reasons: tuple[str, ...] = ()

    @property
    def reason(self) -> str | None:
        return "; ".join(self.reasons) if self.reasons else None


# Predicates ------------------------------------------------------------------


def should_escalate_to_risk(
    safety: SafetyFindings,
    *,
    threshold: RiskLevel = "yellow",
) -> bool:
    if ordinal(safety.risk_level, RISK_LEVEL_ORDER) >= ordinal(threshold, RISK_LEVEL_ORDER):
        return True
    return any(flag.severity == HIGHEST_FLAG_SEVERITY for flag in safety.red_flags)


def should_escalate_to_attachment(
    pattern: PatternFindings,
    *,
    complexity_threshold: float = 0.3,
) -> bool:
    if pattern.complexity_score > complexity_threshold:
        return True
    if pattern.communication_style.consistency in MIXED_CONSISTENCY:
        return True
    markers = pattern.attachment_markers
    return bool(markers.anxiety_markers) and bool(markers.avoidance_markers)


def should_escalate_to_growth(
    growth: Growth,
    duration_months: int,
    *,
    min_months: int = 18,
) -> bool:
    if duration_months < min_months or not growth.detected:
        return False
    return growth.direction == "improving" or bool(growth.areas)


def should_escalate_to_crisis(risk: RiskFindings, source_risk_level: RiskLevel) -> bool:
    if source_risk_level in CRISIS_SOURCE_LEVELS:
        return True
    if any(tactic.severity == "critical" for tactic in risk.manipulation_tactics):
        return True
    control = risk.coercive_control
    if control.detected and control.severity in CRISIS_CONTROL_SEVERITIES:
        return True
    recurring = [t for t in risk.manipulation_tactics if t.pattern in RECURRING_PATTERNS]
    return len(recurring) >= 2


# Trigger reasons --------------------------------------------------------------


def risk_trigger_reason(safety: SafetyFindings) -> str:
    reasons: list[str] = []
    if safety.risk_level in _RISK_LEVEL_REASONS:
        reasons.append(_RISK_LEVEL_REASONS[safety.risk_level])
    if safety.red_flags:
        reasons.append("Red flags: " + ", ".join(flag.type for flag in safety.red_flags))
    return "; ".join(reasons) or "Safety screening escalation"


def attachment_trigger_reason(
    pattern: PatternFindings,
    *,
    complexity_threshold: float = 0.3,
) -> str:
    reasons: list[str] = []
    if pattern.complexity_score > complexity_threshold:
        reasons.append(f"Pattern complexity {pattern.complexity_score:.2f}")
    if pattern.communication_style.consistency in MIXED_CONSISTENCY:
        reasons.append(f"{pattern.communication_style.consistency} communication consistency")
    markers = pattern.attachment_markers
    if markers.anxiety_markers and markers.avoidance_markers:
        reasons.append("Both anxiety and avoidance markers present")
    return "; ".join(reasons) or "Pattern recognition escalation"


def growth_trigger_reason(growth: Growth, duration_months: int) -> str:
    reasons = [f"{duration_months} months of history", f"growth {growth.direction}"]
    if growth.areas:
        reasons.append("Areas: " + ", ".join(growth.areas))
    return "; ".join(reasons)


def crisis_trigger_reason(risk: RiskFindings, source_risk_level: RiskLevel) -> str:
    reasons: list[str] = []
    if source_risk_level in CRISIS_SOURCE_LEVELS:
        reasons.append(f"{source_risk_level.upper()} risk level from safety screening")
    critical = [t.type for t in risk.manipulation_tactics if t.severity == "critical"]
    if critical:
        reasons.append("Critical manipulation tactics: " + ", ".join(critical))
    control = risk.coercive_control
    if control.detected and control.severity in CRISIS_CONTROL_SEVERITIES:
        reasons.append(f"{control.severity.capitalize()} coercive control detected")
    recurring = [t.type for t in risk.manipulation_tactics if t.pattern in RECURRING_PATTERNS]
    if len(recurring) >= 2:
        reasons.append("Recurring manipulation patterns: " + ", ".join(recurring))
    return "; ".join(reasons) or "Risk evaluation escalation"


def stage1_escalation_reason(
    safety: SafetyFindings,
    *,
    threshold: RiskLevel = "yellow",
) -> str | None:
    """Reason reported by the orchestrator when the safety stage escalates."""

    if not should_escalate_to_risk(safety, threshold=threshold):
        return None
    reasons: list[str] = []
    if ordinal(safety.risk_level, RISK_LEVEL_ORDER) >= ordinal(threshold, RISK_LEVEL_ORDER):
        reasons.append(f"{safety.risk_level.upper()} risk level detected in Stage 1")
    high_flags = [f.type for f in safety.red_flags if f.severity == HIGHEST_FLAG_SEVERITY]
    if high_flags:
        reasons.append("High-severity red flags detected in Stage 1: " + ", ".join(high_flags))
    return "; ".join(reasons)


# Signals ----------------------------------------------------------------------


def safety_signal(safety: SafetyFindings, *, threshold: RiskLevel = "yellow") -> EscalationSignal:
    escalate = should_escalate_to_risk(safety, threshold=threshold)
    return EscalationSignal(
        source_stage="safety",
        target_stage="risk",
        escalate=escalate,
        reasons=(risk_trigger_reason(safety),) if escalate else (),
    )


def pattern_signal(
    pattern: PatternFindings,
    *,
    complexity_threshold: float = 0.3,
) -> EscalationSignal:
    escalate = should_escalate_to_attachment(pattern, complexity_threshold=complexity_threshold)
    reasons = (
        (attachment_trigger_reason(pattern, complexity_threshold=complexity_threshold),)
        if escalate
        else ()
    )
    return EscalationSignal(
        source_stage="pattern", target_stage="attachment", escalate=escalate, reasons=reasons
    )


def chronology_signal(
    growth: Growth,
    duration_months: int,
    *,
    min_months: int = 18,
) -> EscalationSignal:
    escalate = should_escalate_to_growth(growth, duration_months, min_months=min_months)
    reasons = (growth_trigger_reason(growth, duration_months),) if escalate else ()
    return EscalationSignal(
        source_stage="chronology", target_stage="growth", escalate=escalate, reasons=reasons
    )


def risk_signal(risk: RiskFindings, source_risk_level: RiskLevel) -> EscalationSignal:
    escalate = should_escalate_to_crisis(risk, source_risk_level)
    reasons = (crisis_trigger_reason(risk, source_risk_level),) if escalate else ()
    return EscalationSignal(
        source_stage="risk", target_stage="crisis", escalate=escalate, reasons=reasons
    )
