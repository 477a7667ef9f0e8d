"""Core data schemas for datelens.

Stage payloads (`*Findings`) carry neutral defaults for every field so a partially
filled completion response still validates. Stage outputs extend the findings with
processing metadata and, where a later stage exists, the escalation verdict.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

RiskLevel = Literal["green", "yellow", "orange", "red"]
RISK_LEVEL_ORDER: tuple[str, ...] = ("green", "yellow", "orange", "red")

FlagSeverity = Literal["low", "medium", "high"]
FLAG_SEVERITY_ORDER: tuple[str, ...] = ("low", "medium", "high")

RedFlagType = Literal[
    "threat",
    "financial-request",
    "explicit-manipulation",
    "pressure",
    "inconsistency",
    "other",
]

Consistency = Literal["very-consistent", "mostly-consistent", "mixed", "inconsistent"]
CONSISTENCY_ORDER: tuple[str, ...] = (
    "very-consistent",
    "mostly-consistent",
    "mixed",
    "inconsistent",
)

GrowthDirection = Literal["improving", "declining", "stable"]

TacticType = Literal[
    "DARVO",
    "gaslighting",
    "love-bombing",
    "triangulation",
    "projection",
    "isolation",
    "financial-control",
    "emotional-blackmail",
    "other",
]
TacticSeverity = Literal["medium", "high", "critical"]
TACTIC_SEVERITY_ORDER: tuple[str, ...] = ("medium", "high", "critical")

ControlSeverity = Literal["low", "medium", "high", "critical"]
CONTROL_SEVERITY_ORDER: tuple[str, ...] = ("low", "medium", "high", "critical")

PatternFrequency = Literal["isolated", "occasional", "frequent", "consistent"]

AttachmentStyle = Literal[
    "secure",
    "anxious-preoccupied",
    "dismissive-avoidant",
    "fearful-avoidant",
    "disorganized",
]

ThreatLevel = Literal["moderate", "high", "severe", "imminent"]
THREAT_LEVEL_ORDER: tuple[str, ...] = ("moderate", "high", "severe", "imminent")

Level3 = Literal["low", "medium", "high"]


def ordinal(value: str, order: tuple[str, ...]) -> int:
    """Return the position of `value` within an ordered scale."""

    return order.index(value)


class DatelensModel(BaseModel):
    """Immutable base model accepting both snake_case and camelCase keys."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_null_fields(cls, data):
        # An explicit null means "not provided", so the field default applies.
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


# ---------------------------------------------------------------------------
# Input data
# ---------------------------------------------------------------------------


class Message(DatelensModel):
    """A single normalized message."""

    id: str
    match_id: str
    sender_id: str
    sent_at: datetime
    body: str = ""
    direction: Literal["user", "match"]

    @field_validator("sent_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class MatchContext(DatelensModel):
    """Match-level context from the import layer."""

    id: str
    created_at: datetime | None = None
    status: str = "active"
    participants: list[str] = Field(default_factory=list)

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


class Dataset(DatelensModel):
    """A user's normalized message history."""

    user_id: str
    platform: str = "unknown"
    messages: list[Message] = Field(default_factory=list)
    matches: list[MatchContext] = Field(default_factory=list)


class Conversation(DatelensModel):
    """All messages exchanged with one counterparty, oldest first."""

    match_id: str
    participant_id: str
    messages: list[Message]

    @property
    def message_count(self) -> int:
        return len(self.messages)

    @property
    def last_message_at(self) -> datetime | None:
        return self.messages[-1].sent_at if self.messages else None


class TimeSegment(DatelensModel):
    """Messages falling into one recency bucket."""

    label: str
    start: datetime
    end: datetime
    weight: float = Field(gt=0.0, le=1.0)
    messages: list[Message] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Stage metadata
# ---------------------------------------------------------------------------


class TokenUsage(DatelensModel):
    input: int = 0
    output: int = 0


class StageMetadata(DatelensModel):
    """Processing metadata every stage output carries."""

    analyzed_at: datetime
    duration_ms: float = Field(ge=0.0)
    model: str
    tokens_used: TokenUsage = Field(default_factory=TokenUsage)
    cost_usd: float = Field(default=0.0, ge=0.0)
    messages_analyzed: int = 0
    conversations_analyzed: int = 0
    chunk_count: int = 0
    trigger_reason: str | None = None


# ---------------------------------------------------------------------------
# Safety screener
# ---------------------------------------------------------------------------


class RedFlag(DatelensModel):
    type: RedFlagType = "other"
    severity: FlagSeverity = "low"
    description: str = ""
    examples: list[str] = Field(default_factory=list)


class SafetyFindings(DatelensModel):
    risk_level: RiskLevel = "green"
    red_flags: list[RedFlag] = Field(default_factory=list)
    green_flags: list[str] = Field(default_factory=list)
    summary: str = "Safety screening completed"

    @field_validator("risk_level", mode="before")
    @classmethod
    def _normalize_risk_level(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class SafetyOutput(SafetyFindings):
    stage: Literal["safety"] = "safety"
    escalate: bool = False
    metadata: StageMetadata


# ---------------------------------------------------------------------------
# Pattern recognizer
# ---------------------------------------------------------------------------


class CommunicationStyle(DatelensModel):
    consistency: Consistency = "mostly-consistent"
    emotional_expressiveness: Level3 = "medium"
    initiation_pattern: Literal["proactive", "responsive", "balanced"] = "balanced"


class AttachmentMarkers(DatelensModel):
    anxiety_markers: list[str] = Field(default_factory=list)
    avoidance_markers: list[str] = Field(default_factory=list)
    secure_markers: list[str] = Field(default_factory=list)


class Authenticity(DatelensModel):
    score: float = Field(default=0.5, ge=0.0, le=1.0)
    vulnerability_shown: bool = False
    genuine_interest: bool = False


class Boundaries(DatelensModel):
    user_sets_boundaries: bool = False
    user_respects_boundaries: bool = False
    examples: list[str] = Field(default_factory=list)


class PatternFindings(DatelensModel):
    communication_style: CommunicationStyle = Field(default_factory=CommunicationStyle)
    attachment_markers: AttachmentMarkers = Field(default_factory=AttachmentMarkers)
    authenticity: Authenticity = Field(default_factory=Authenticity)
    boundaries: Boundaries = Field(default_factory=Boundaries)
    complexity_score: float = Field(default=0.0, ge=0.0, le=1.0)
    summary: str = "Pattern recognition completed"


class PatternOutput(PatternFindings):
    stage: Literal["pattern"] = "pattern"
    escalate: bool = False
    metadata: StageMetadata


# ---------------------------------------------------------------------------
# Chronology mapper
# ---------------------------------------------------------------------------


class TimeRange(DatelensModel):
    earliest: datetime
    latest: datetime
    duration_months: int = 0


class SegmentPatterns(DatelensModel):
    label: str = ""
    patterns: list[str] = Field(default_factory=list)


class SegmentSummary(DatelensModel):
    label: str
    start: datetime
    end: datetime
    weight: float
    message_count: int
    patterns: list[str] = Field(default_factory=list)


class Growth(DatelensModel):
    detected: bool = False
    direction: GrowthDirection = "stable"
    areas: list[str] = Field(default_factory=list)
    evidence: list[str] = Field(default_factory=list)


class LifeStageContext(DatelensModel):
    transitions: list[str] = Field(default_factory=list)
    events: list[str] = Field(default_factory=list)


class ChronologyFindings(DatelensModel):
    segment_analysis: list[SegmentPatterns] = Field(default_factory=list)
    growth: Growth = Field(default_factory=Growth)
    life_stage_context: LifeStageContext = Field(default_factory=LifeStageContext)
    summary: str = "Chronological analysis completed"


class ChronologyOutput(DatelensModel):
    stage: Literal["chronology"] = "chronology"
    time_range: TimeRange
    segments: list[SegmentSummary] = Field(default_factory=list)
    growth: Growth = Field(default_factory=Growth)
    life_stage_context: LifeStageContext = Field(default_factory=LifeStageContext)
    summary: str = "Chronological analysis completed"
    escalate: bool = False
    metadata: StageMetadata


# ---------------------------------------------------------------------------
# Risk evaluator
# ---------------------------------------------------------------------------


class ManipulationTactic(DatelensModel):
    type: TacticType = "other"
    severity: TacticSeverity = "medium"
    description: str = ""
    examples: list[str] = Field(default_factory=list)
    pattern: PatternFrequency = "isolated"


class CoerciveControl(DatelensModel):
    detected: bool = False
    tactics: list[str] = Field(default_factory=list)
    severity: ControlSeverity = "low"
    evidence: list[str] = Field(default_factory=list)


class TraumaBonding(DatelensModel):
    detected: bool = False
    indicators: list[str] = Field(default_factory=list)
    cycle_detected: bool = False
    evidence: list[str] = Field(default_factory=list)


class RiskFindings(DatelensModel):
    manipulation_tactics: list[ManipulationTactic] = Field(default_factory=list)
    coercive_control: CoerciveControl = Field(default_factory=CoerciveControl)
    trauma_bonding: TraumaBonding = Field(default_factory=TraumaBonding)
    summary: str = "Risk analysis completed"
    recommendations: list[str] = Field(default_factory=list)


class RiskOutput(RiskFindings):
    stage: Literal["risk"] = "risk"
    source_risk_level: RiskLevel
    escalate: bool = False
    metadata: StageMetadata


# ---------------------------------------------------------------------------
# Attachment evaluator
# ---------------------------------------------------------------------------


class AttachmentStyleAssessment(DatelensModel):
    primary: AttachmentStyle | None = None
    secondary: AttachmentStyle | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    explanation: str = ""


class TriggersAndCoping(DatelensModel):
    triggers: list[str] = Field(default_factory=list)
    coping_mechanisms: list[str] = Field(default_factory=list)
    coping_quality: Literal["mostly-healthy", "mixed", "mostly-unhealthy"] = "mixed"


class RelationshipDynamics(DatelensModel):
    pursue_withdraw: bool = False
    anxious_avoidant_trap: bool = False
    secure_functioning: list[str] = Field(default_factory=list)
    problematic_patterns: list[str] = Field(default_factory=list)


class AttachmentFindings(DatelensModel):
    attachment_style: AttachmentStyleAssessment = Field(
        default_factory=AttachmentStyleAssessment
    )
    triggers_and_coping: TriggersAndCoping = Field(default_factory=TriggersAndCoping)
    relationship_dynamics: RelationshipDynamics = Field(default_factory=RelationshipDynamics)
    summary: str = "Attachment evaluation completed"
    growth_opportunities: list[str] = Field(default_factory=list)


class AttachmentOutput(AttachmentFindings):
    stage: Literal["attachment"] = "attachment"
    metadata: StageMetadata


# ---------------------------------------------------------------------------
# Growth evaluator
# ---------------------------------------------------------------------------


class SkillProgression(DatelensModel):
    skill: str = ""
    starting_level: Level3 = "medium"
    current_level: Level3 = "medium"
    direction: GrowthDirection = "stable"
    evidence: list[str] = Field(default_factory=list)


class DevelopmentOpportunity(DatelensModel):
    area: str = ""
    priority: Level3 = "medium"
    current_state: str = ""
    desired_state: str = ""
    actions: list[str] = Field(default_factory=list)


class GrowthRecommendation(DatelensModel):
    category: str = "general"
    recommendation: str = ""
    rationale: str = ""
    resources: list[str] = Field(default_factory=list)


class GrowthFindings(DatelensModel):
    skill_progression: list[SkillProgression] = Field(default_factory=list)
    development_opportunities: list[DevelopmentOpportunity] = Field(default_factory=list)
    recommendations: list[GrowthRecommendation] = Field(default_factory=list)
    summary: str = "Growth evaluation completed"


class GrowthOutput(GrowthFindings):
    stage: Literal["growth"] = "growth"
    metadata: StageMetadata


# ---------------------------------------------------------------------------
# Crisis evaluator
# ---------------------------------------------------------------------------


class ThreatAssessment(DatelensModel):
    level: ThreatLevel = "moderate"
    threats: list[str] = Field(default_factory=list)
    escalation_risk: Level3 = "low"
    immediate_concerns: list[str] = Field(default_factory=list)


class ProfessionalResource(DatelensModel):
    type: Literal["hotline", "therapy", "legal", "shelter", "advocacy"] = "therapy"
    name: str = ""
    description: str = ""
    contact: str | None = None


class SafetyPlanning(DatelensModel):
    immediate_steps: list[str] = Field(default_factory=list)
    support_system: list[str] = Field(default_factory=list)
    documentation: list[str] = Field(default_factory=list)
    exit_planning: list[str] = Field(default_factory=list)


class CrisisFindings(DatelensModel):
    threat_assessment: ThreatAssessment = Field(default_factory=ThreatAssessment)
    professional_resources: list[ProfessionalResource] = Field(default_factory=list)
    safety_planning: SafetyPlanning = Field(default_factory=SafetyPlanning)
    summary: str = "Crisis evaluation completed"
    urgent_recommendations: list[str] = Field(default_factory=list)


class CrisisOutput(CrisisFindings):
    stage: Literal["crisis"] = "crisis"
    metadata: StageMetadata


# ---------------------------------------------------------------------------
# Deep analysis (stage 2)
# ---------------------------------------------------------------------------


class DeepAnalysisOutput(DatelensModel):
    """Everything the deep-analysis stage produced in one run."""

    stage: Literal["deep-analysis"] = "deep-analysis"
    patterns: PatternOutput
    chronology: ChronologyOutput
    risk: RiskOutput | None = None
    attachment: AttachmentOutput | None = None
    growth: GrowthOutput | None = None
    crisis: CrisisOutput | None = None
    triggered_evaluators: list[str] = Field(default_factory=list)
    trigger_reasons: dict[str, str] = Field(default_factory=dict)
    metadata: StageMetadata


# ---------------------------------------------------------------------------
# Significance
# ---------------------------------------------------------------------------


class SignificanceFlags(DatelensModel):
    led_to_date: bool = False
    contact_exchange: bool = False
    unusual_length: bool = False
    emotional_depth: bool = False


class ConversationDuration(DatelensModel):
    days: int = 0
    first_message: datetime
    last_message: datetime


class SignificantConversation(DatelensModel):
    """A conversation judged significant. Insignificant ones are never recorded."""

    match_id: str
    participant_id: str
    message_count: int
    duration: ConversationDuration
    flags: SignificanceFlags
    score: int = Field(ge=0, le=100)
    highlights: list[str] = Field(default_factory=list)
    reasoning: str = ""
    fallback_used: bool = False


class SignificanceBreakdown(DatelensModel):
    led_to_date: int = 0
    contact_exchange: int = 0
    unusual_length: int = 0
    emotional_depth: int = 0


class SignificanceStatistics(DatelensModel):
    total_conversations: int = 0
    total_significant: int = 0
    breakdown: SignificanceBreakdown = Field(default_factory=SignificanceBreakdown)
    percentage_significant: float = 0.0
    avg_message_count: float = 0.0
    avg_message_count_all: float = 0.0


class SignificanceAnalysisResult(DatelensModel):
    significant_conversations: list[SignificantConversation] = Field(default_factory=list)
    statistics: SignificanceStatistics = Field(default_factory=SignificanceStatistics)
    cost_usd: float = 0.0
    duration_ms: float = 0.0
