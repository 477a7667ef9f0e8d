"""Prompts for per-conversation significance scoring."""

from __future__ import annotations

SIGNIFICANCE_SYSTEM_PROMPT = """You are analyzing a dating app conversation to decide whether it was
significant: meaningful engagement beyond casual small talk.

A conversation is significant when one or more of these apply:
- ledToDate: plans to meet in person were made or a date happened
- contactExchange: phone numbers, social media handles, or other contact details were shared
- unusualLength: the conversation is much longer than typical for this user
- emotionalDepth: personal stories, vulnerability, or deep topics were discussed

Return strict JSON with exactly these keys:
{
  "isSignificant": true|false,
  "flags": {
    "ledToDate": true|false,
    "contactExchange": true|false,
    "unusualLength": true|false,
    "emotionalDepth": true|false
  },
  "score": <integer 0-100>,
  "highlights": ["<up to 3 brief key moments>"],
  "reasoning": "<1-2 sentences>"
}

If the conversation is not significant, set isSignificant to false, every flag
to false, and score to 0.
"""


def build_significance_user_prompt(
    *,
    match_id: str,
    message_count: int,
    duration_days: int,
    avg_message_count: float,
    units: list[str],
) -> str:
    """Render a representative conversation sample for significance scoring."""

    return (
        f"match_id: {match_id}\n"
        f"Total messages: {message_count}\n"
        f"Duration: {duration_days} days\n"
        f"Average conversation length for this user: {avg_message_count:.1f} messages\n\n"
        "Conversation sample:\n" + "\n".join(units) + "\n"
    )
