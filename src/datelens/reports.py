"""User-facing report builders for the two analysis stages."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from datelens.schemas import (
    AttachmentStyle,
    DatelensModel,
    DeepAnalysisOutput,
    RedFlagType,
    RiskLevel,
    SafetyOutput,
    StageMetadata,
)

Priority = Literal["high", "medium", "low"]

RISK_HEADLINES: dict[str, str] = {
    "green": "Your conversations show healthy patterns",
    "yellow": "Your conversations are mostly healthy with minor areas to watch",
    "orange": "Some concerning patterns detected",
    "red": "Serious safety concerns detected",
}

RISK_DESCRIPTIONS: dict[str, str] = {
    "green": (
        "We found no significant safety concerns in your dating conversations. Your "
        "communication patterns suggest healthy relationship dynamics."
    ),
    "yellow": (
        "Your conversations are generally healthy, but we noticed a few patterns worth "
        "keeping an eye on. Awareness can help you maintain healthy boundaries."
    ),
    "orange": (
        "We detected multiple concerning patterns in your conversations that warrant closer "
        "attention. They could indicate developing issues that deserve deeper analysis."
    ),
    "red": (
        "We identified serious safety concerns in your conversations. These patterns may "
        "indicate manipulation, coercion, or other harmful dynamics. We strongly recommend "
        "reviewing the detailed analysis and considering professional support."
    ),
}

RED_FLAG_TITLES: dict[str, str] = {
    "threat": "Safety Concern: Threatening Behavior",
    "financial-request": "Safety Concern: Financial Requests",
    "explicit-manipulation": "Safety Concern: Manipulation Detected",
    "pressure": "Safety Concern: Pressure or Coercion",
    "inconsistency": "Pattern Alert: Inconsistencies Detected",
    "other": "Safety Concern",
}

TACTIC_NAMES: dict[str, str] = {
    "DARVO": "DARVO (Deny, Attack, Reverse Victim & Offender)",
    "gaslighting": "Gaslighting",
    "love-bombing": "Love-Bombing",
    "triangulation": "Triangulation",
    "projection": "Projection",
    "isolation": "Isolation Tactics",
    "financial-control": "Financial Control",
    "emotional-blackmail": "Emotional Blackmail",
}

ATTACHMENT_DESCRIPTIONS: dict[str, str] = {
    "secure": (
        "You show a secure attachment style: comfortable with both intimacy and "
        "independence, open about your needs, and respectful of others' boundaries."
    ),
    "anxious-preoccupied": (
        "You show signs of an anxious attachment style, with a strong desire for closeness "
        "and reassurance and some worry about where relationships stand."
    ),
    "dismissive-avoidant": (
        "You show an avoidant attachment style, valuing independence and self-reliance and "
        "sometimes pulling back from emotional closeness."
    ),
    "fearful-avoidant": (
        "You show a fearful-avoidant attachment style, with conflicting pulls toward both "
        "intimacy and distance that can create push-pull dynamics."
    ),
    "disorganized": (
        "Your attachment signals vary a lot between situations, mixing characteristics of "
        "several attachment patterns."
    ),
}

ESCALATION_REASONS: dict[str, str] = {
    "orange": (
        "The patterns we detected suggest deeper dynamics that warrant comprehensive analysis."
    ),
    "red": (
        "The safety concerns we identified require thorough analysis to give you complete "
        "information and resources."
    ),
}

ESCALATION_NEXT_STEPS: dict[str, str] = {
    "orange": (
        "A comprehensive analysis examines attachment patterns and relationship dynamics and "
        "provides detailed safety guidance."
    ),
    "red": (
        "A comprehensive safety analysis identifies specific manipulation tactics, assesses "
        "risk, and lists crisis resources where needed."
    ),
}


class Insight(DatelensModel):
    category: Literal["safety", "communication", "positive-patterns"]
    title: str
    description: str
    examples: list[str] = Field(default_factory=list)


class Recommendation(DatelensModel):
    priority: Priority
    recommendation: str
    rationale: str


class ProcessingInfo(DatelensModel):
    stage: str
    completed_at: datetime
    duration_seconds: int
    cost_usd: float
    model: str


class EscalationInfo(DatelensModel):
    will_escalate: bool = True
    reason: str
    next_steps: str


class SafetyAssessment(DatelensModel):
    risk_level: RiskLevel
    headline: str
    summary: str
    risk_level_description: str


class Stage1Report(DatelensModel):
    report_type: Literal["stage1-complete", "stage1-escalating"]
    safety_assessment: SafetyAssessment
    insights: list[Insight] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)
    processing_info: ProcessingInfo
    escalation: EscalationInfo | None = None


class TacticSummary(DatelensModel):
    type: str
    severity: str
    description: str
    examples: list[str] = Field(default_factory=list)
    pattern: str


class SafetyDeepDive(DatelensModel):
    manipulation_tactics: list[TacticSummary] = Field(default_factory=list)
    coercive_control_detected: bool = False
    coercive_control_summary: str = ""
    trauma_bonding_detected: bool = False
    trauma_bonding_summary: str = ""
    recommendations: list[str] = Field(default_factory=list)


class AttachmentSection(DatelensModel):
    primary_style: AttachmentStyle | None = None
    confidence: float = 0.0
    style_description: str = ""
    triggers: list[str] = Field(default_factory=list)
    coping_mechanisms: list[str] = Field(default_factory=list)
    problematic_patterns: list[str] = Field(default_factory=list)
    growth_opportunities: list[str] = Field(default_factory=list)


class GrowthSection(DatelensModel):
    time_range_months: int = 0
    direction: str = "stable"
    summary: str = ""
    skills_improved: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class CrisisSection(DatelensModel):
    threat_level: str
    immediate_concerns: list[str] = Field(default_factory=list)
    resources: list[str] = Field(default_factory=list)
    immediate_steps: list[str] = Field(default_factory=list)
    urgent_recommendations: list[str] = Field(default_factory=list)


class Stage1Summary(DatelensModel):
    risk_level: RiskLevel
    headline: str
    summary: str


class Stage2Report(DatelensModel):
    report_type: Literal["stage2-comprehensive"] = "stage2-comprehensive"
    stage1_summary: Stage1Summary
    communication_summary: str
    chronology_summary: str
    key_themes: list[str] = Field(default_factory=list)
    safety_deep_dive: SafetyDeepDive | None = None
    attachment: AttachmentSection | None = None
    growth: GrowthSection | None = None
    crisis: CrisisSection | None = None
    triggered_evaluators: list[str] = Field(default_factory=list)
    processing_info: ProcessingInfo


def _processing_info(stage: str, metadata: StageMetadata) -> ProcessingInfo:
    return ProcessingInfo(
        stage=stage,
        completed_at=metadata.analyzed_at,
        duration_seconds=round(metadata.duration_ms / 1000),
        cost_usd=metadata.cost_usd,
        model=metadata.model or "unknown",
    )


def _stage1_recommendations(safety: SafetyOutput) -> list[Recommendation]:
    level = safety.risk_level
    recommendations: list[Recommendation] = []
    if level in ("green", "yellow"):
        if safety.green_flags:
            recommendations.append(
                Recommendation(
                    priority="high",
                    recommendation=(
                        "Continue fostering the healthy communication patterns you've developed"
                    ),
                    rationale=(
                        "Your conversations show respectful communication, boundary setting, "
                        "and genuine connection."
                    ),
                )
            )
        if level == "yellow" and safety.red_flags:
            recommendations.append(
                Recommendation(
                    priority="medium",
                    recommendation="Stay aware of the minor concerns we identified",
                    rationale=(
                        "The flagged patterns are worth monitoring. Trust your instincts if "
                        "they escalate or become more frequent."
                    ),
                )
            )
        recommendations.append(
            Recommendation(
                priority="low",
                recommendation="Keep reflecting on your dating experiences",
                rationale=(
                    "Regular reflection keeps you attuned to your needs, boundaries, and what "
                    "you are looking for."
                ),
            )
        )
    elif level == "orange":
        recommendations.extend(
            [
                Recommendation(
                    priority="high",
                    recommendation="Review the detailed safety analysis",
                    rationale="The patterns we detected warrant deeper analysis.",
                ),
                Recommendation(
                    priority="high",
                    recommendation="Trust your instincts and maintain strong boundaries",
                    rationale=(
                        "If something feels off in an interaction, that feeling is valid."
                    ),
                ),
                Recommendation(
                    priority="medium",
                    recommendation=(
                        "Consider discussing these patterns with a trusted friend or counselor"
                    ),
                    rationale="An outside perspective helps you make informed decisions.",
                ),
            ]
        )
    else:
        recommendations.extend(
            [
                Recommendation(
                    priority="high",
                    recommendation="Review the comprehensive safety analysis carefully",
                    rationale="We detected serious patterns that need your attention.",
                ),
                Recommendation(
                    priority="high",
                    recommendation="Consider reaching out to a professional for support",
                    rationale=(
                        "A therapist, counselor, or domestic violence advocate can provide "
                        "specialized guidance."
                    ),
                ),
                Recommendation(
                    priority="high",
                    recommendation="Prioritize your safety and well-being",
                    rationale=(
                        "If you feel unsafe at any point, seek help from trusted people or "
                        "professional resources."
                    ),
                ),
            ]
        )
    return recommendations


def _escalation_info(safety: SafetyOutput) -> EscalationInfo | None:
    if not safety.escalate:
        return None
    key = "red" if safety.risk_level == "red" else "orange"
    return EscalationInfo(reason=ESCALATION_REASONS[key], next_steps=ESCALATION_NEXT_STEPS[key])


def red_flag_title(flag_type: RedFlagType) -> str:
    return RED_FLAG_TITLES.get(flag_type, RED_FLAG_TITLES["other"])


def build_stage1_report(safety: SafetyOutput) -> Stage1Report:
    """Turn safety screening output into the quick-triage report."""

    insights = [
        Insight(
            category="safety",
            title=red_flag_title(flag.type),
            description=flag.description,
            examples=flag.examples,
        )
        for flag in safety.red_flags
    ]
    insights.extend(
        Insight(category="positive-patterns", title="Healthy Pattern Identified", description=text)
        for text in safety.green_flags[:3]
    )

    return Stage1Report(
        report_type=(
            "stage1-complete" if safety.risk_level in ("green", "yellow") else "stage1-escalating"
        ),
        safety_assessment=SafetyAssessment(
            risk_level=safety.risk_level,
            headline=RISK_HEADLINES[safety.risk_level],
            summary=safety.summary,
            risk_level_description=RISK_DESCRIPTIONS[safety.risk_level],
        ),
        insights=insights,
        recommendations=_stage1_recommendations(safety),
        processing_info=_processing_info("Stage 1: Quick Triage", safety.metadata),
        escalation=_escalation_info(safety),
    )


def build_stage2_report(deep: DeepAnalysisOutput, stage1: Stage1Report) -> Stage2Report:
    """Combine deep-analysis outputs into the comprehensive report."""

    patterns = deep.patterns
    chronology = deep.chronology
    themes = list(patterns.attachment_markers.secure_markers[:2])
    for segment in chronology.segments[:1]:
        themes.extend(segment.patterns[:2])

    safety_section = None
    if deep.risk is not None:
        risk = deep.risk
        safety_section = SafetyDeepDive(
            manipulation_tactics=[
                TacticSummary(
                    type=TACTIC_NAMES.get(tactic.type, tactic.type),
                    severity=tactic.severity,
                    description=tactic.description,
                    examples=tactic.examples,
                    pattern=tactic.pattern,
                )
                for tactic in risk.manipulation_tactics
            ],
            coercive_control_detected=risk.coercive_control.detected,
            coercive_control_summary=(
                "We identified patterns of coercive control: tactics used to dominate, "
                "control, or manipulate the other person."
                if risk.coercive_control.detected
                else "We did not identify significant patterns of coercive control."
            ),
            trauma_bonding_detected=risk.trauma_bonding.detected,
            trauma_bonding_summary=(
                "We identified signs of trauma bonding, such as cycles of intense affection "
                "and mistreatment."
                if risk.trauma_bonding.detected
                else "We did not identify signs of trauma bonding."
            ),
            recommendations=risk.recommendations,
        )

    attachment_section = None
    if deep.attachment is not None:
        attachment = deep.attachment
        style = attachment.attachment_style
        attachment_section = AttachmentSection(
            primary_style=style.primary,
            confidence=style.confidence,
            style_description=(
                ATTACHMENT_DESCRIPTIONS[style.primary] if style.primary else style.explanation
            ),
            triggers=attachment.triggers_and_coping.triggers,
            coping_mechanisms=attachment.triggers_and_coping.coping_mechanisms,
            problematic_patterns=attachment.relationship_dynamics.problematic_patterns,
            growth_opportunities=attachment.growth_opportunities,
        )

    growth_section = None
    if deep.growth is not None:
        growth = deep.growth
        growth_section = GrowthSection(
            time_range_months=chronology.time_range.duration_months,
            direction=chronology.growth.direction,
            summary=growth.summary,
            skills_improved=[
                item.skill for item in growth.skill_progression if item.direction == "improving"
            ],
            recommendations=[item.recommendation for item in growth.recommendations],
        )

    crisis_section = None
    if deep.crisis is not None:
        crisis = deep.crisis
        crisis_section = CrisisSection(
            threat_level=crisis.threat_assessment.level,
            immediate_concerns=crisis.threat_assessment.immediate_concerns,
            resources=[
                f"{item.name}: {item.contact}" if item.contact else item.name
                for item in crisis.professional_resources
            ],
            immediate_steps=crisis.safety_planning.immediate_steps,
            urgent_recommendations=crisis.urgent_recommendations,
        )

    return Stage2Report(
        stage1_summary=Stage1Summary(
            risk_level=stage1.safety_assessment.risk_level,
            headline=stage1.safety_assessment.headline,
            summary=stage1.safety_assessment.summary,
        ),
        communication_summary=patterns.summary,
        chronology_summary=chronology.summary,
        key_themes=themes,
        safety_deep_dive=safety_section,
        attachment=attachment_section,
        growth=growth_section,
        crisis=crisis_section,
        triggered_evaluators=deep.triggered_evaluators,
        processing_info=_processing_info("Stage 2: Comprehensive Analysis", deep.metadata),
    )


def _bullets(items: list[str]) -> list[str]:
    return [f"- {item}" for item in items]


def render_stage1_markdown(report: Stage1Report) -> str:
    assessment = report.safety_assessment
    lines = [
        f"# {assessment.headline}",
        "",
        assessment.risk_level_description,
        "",
        f"**Risk level:** {assessment.risk_level.upper()}",
        "",
        f"**Summary:** {assessment.summary}",
        "",
    ]
    if report.insights:
        lines.extend(["## Key Insights", ""])
        for index, insight in enumerate(report.insights, start=1):
            lines.extend([f"### {index}. {insight.title}", "", insight.description, ""])
            if insight.examples:
                lines.append("**Examples:**")
                lines.extend(_bullets(insight.examples))
                lines.append("")
    if report.recommendations:
        lines.extend(["## Recommendations", ""])
        for item in report.recommendations:
            lines.append(f"- **[{item.priority.upper()}] {item.recommendation}**")
            lines.append(f"  {item.rationale}")
        lines.append("")
    if report.escalation is not None:
        escalation = report.escalation
        lines.extend(["## Next Steps", "", escalation.reason, "", escalation.next_steps, ""])
    info = report.processing_info
    lines.extend(["---", f"*{info.stage}: {info.duration_seconds}s using {info.model}*"])
    return "\n".join(lines) + "\n"


def render_stage2_markdown(report: Stage2Report) -> str:
    lines = [
        "# Comprehensive Analysis",
        "",
        f"**Stage 1 risk level:** {report.stage1_summary.risk_level.upper()}",
        "",
        "## Communication Patterns",
        "",
        report.communication_summary,
        "",
        "## Over Time",
        "",
        report.chronology_summary,
        "",
    ]
    if report.key_themes:
        lines.extend(["## Key Themes", "", *_bullets(report.key_themes), ""])
    if report.safety_deep_dive is not None:
        dive = report.safety_deep_dive
        lines.extend(["## Safety Deep Dive", ""])
        for tactic in dive.manipulation_tactics:
            lines.append(
                f"- **{tactic.type}** ({tactic.severity}, {tactic.pattern}): {tactic.description}"
            )
        lines.extend(["", dive.coercive_control_summary, "", dive.trauma_bonding_summary, ""])
        lines.extend(_bullets(dive.recommendations))
        lines.append("")
    if report.attachment is not None:
        section = report.attachment
        lines.extend(["## Attachment", "", section.style_description, ""])
        lines.extend(_bullets(section.growth_opportunities))
        lines.append("")
    if report.growth is not None:
        section = report.growth
        heading = f"{section.time_range_months} months, {section.direction}."
        lines.extend(["## Growth", "", heading, "", section.summary, ""])
        lines.extend(_bullets(section.recommendations))
        lines.append("")
    if report.crisis is not None:
        section = report.crisis
        lines.extend(["## Immediate Safety", "", f"**Threat level:** {section.threat_level}", ""])
        lines.extend(_bullets(section.immediate_steps + section.urgent_recommendations))
        lines.extend(["", "**Resources:**", *_bullets(section.resources), ""])
    info = report.processing_info
    lines.extend(["---", f"*{info.stage}: {info.duration_seconds}s using {info.model}*"])
    return "\n".join(lines) + "\n"


def render_report_markdown(stage1: Stage1Report, stage2: Stage2Report | None = None) -> str:
    """Render both stage reports as one markdown document."""

    parts = [render_stage1_markdown(stage1)]
    if stage2 is not None:
        parts.append(render_stage2_markdown(stage2))
    return "\n".join(parts)
