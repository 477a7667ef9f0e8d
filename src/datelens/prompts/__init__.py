"""Prompt builders for the analysis stages."""

from datelens.prompts.evaluator_prompts import (
    ATTACHMENT_EVALUATOR_SYSTEM_PROMPT,
    CRISIS_EVALUATOR_SYSTEM_PROMPT,
    GROWTH_EVALUATOR_SYSTEM_PROMPT,
    RISK_EVALUATOR_SYSTEM_PROMPT,
    build_evaluator_user_prompt,
)
from datelens.prompts.pattern_prompts import (
    CHRONOLOGY_MAPPER_SYSTEM_PROMPT,
    PATTERN_RECOGNIZER_SYSTEM_PROMPT,
    build_chronology_user_prompt,
    build_pattern_user_prompt,
)
from datelens.prompts.safety_prompts import (
    SAFETY_SCREENER_SYSTEM_PROMPT,
    build_safety_user_prompt,
)
from datelens.prompts.significance_prompts import (
    SIGNIFICANCE_SYSTEM_PROMPT,
    build_significance_user_prompt,
)

__all__ = [
    "ATTACHMENT_EVALUATOR_SYSTEM_PROMPT",
    "CHRONOLOGY_MAPPER_SYSTEM_PROMPT",
    "CRISIS_EVALUATOR_SYSTEM_PROMPT",
    "GROWTH_EVALUATOR_SYSTEM_PROMPT",
    "PATTERN_RECOGNIZER_SYSTEM_PROMPT",
    "RISK_EVALUATOR_SYSTEM_PROMPT",
    "SAFETY_SCREENER_SYSTEM_PROMPT",
    "SIGNIFICANCE_SYSTEM_PROMPT",
    "build_chronology_user_prompt",
    "build_evaluator_user_prompt",
    "build_pattern_user_prompt",
    "build_safety_user_prompt",
    "build_significance_user_prompt",
]
