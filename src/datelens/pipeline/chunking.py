"""Split ordered text units into token-bounded chunks."""

from __future__ import annotations

import math
from collections.abc import Sequence


def estimate_tokens(text: str, chars_per_token: int = 4) -> int:
    """Rough, deterministic token estimate from character count."""

    if chars_per_token <= 0:
        raise ValueError(f"chars_per_token must be > 0, got {chars_per_token}.")
    return math.ceil(len(text) / chars_per_token)


def chunk_units(
    units: Sequence[str],
    *,
    max_tokens_per_chunk: int,
    chars_per_token: int = 4,
) -> list[list[str]]:
    """Greedily pack units into chunks that stay within the token budget.

    A unit that alone exceeds the budget gets a chunk of its own. Concatenating the
    chunks in order reproduces `units` exactly.
    """

    if max_tokens_per_chunk <= 0:
        raise ValueError(f"max_tokens_per_chunk must be > 0, got {max_tokens_per_chunk}.")

    chunks: list[list[str]] = []
    current: list[str] = []
    current_tokens = 0
    for unit in units:
        unit_tokens = estimate_tokens(unit, chars_per_token)
        if current and current_tokens + unit_tokens > max_tokens_per_chunk:
            chunks.append(current)
            current = []
            current_tokens = 0
        current.append(unit)
        current_tokens += unit_tokens
    if current:
        chunks.append(current)
    return chunks
