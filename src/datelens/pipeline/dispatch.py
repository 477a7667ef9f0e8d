"""Single-request dispatch to the completion capability."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Generic, TypeVar

from pydantic import BaseModel, ValidationError

from datelens.costs import CostEstimate, estimate_cost
from datelens.models import LLMJsonClient
from datelens.pipeline.chunking import estimate_tokens

logger = logging.getLogger(__name__)

PayloadT = TypeVar("PayloadT", bound=BaseModel)


class DispatchError(ValueError):
    """Raised when a completion payload is not a valid structured result."""


class StageError(RuntimeError):
    """Raised when an analysis stage cannot complete."""

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(f"{stage} stage failed: {message}")
        self.stage = stage


@dataclass(frozen=True)
class DispatchResult(Generic[PayloadT]):
    """A validated payload with the estimated usage of the call that produced it."""

    payload: PayloadT
    cost: CostEstimate

    @property
    def input_tokens(self) -> int:
        return self.cost.input_tokens

    @property
    def output_tokens(self) -> int:
        return self.cost.output_tokens


def dispatch_completion(
    llm_client: LLMJsonClient,
    *,
    system_prompt: str,
    user_prompt: str,
    payload_model: type[PayloadT],
    model: str,
    temperature: float | None = None,
    expected_output_tokens: int = 800,
    chars_per_token: int = 4,
) -> DispatchResult[PayloadT]:
    """Send one request and validate the response into `payload_model`.

    Fields missing from the response take the model's neutral defaults. Transport
    errors from the client propagate unchanged; there are no retries here.
    """

    payload = llm_client.complete_json(
        system_prompt=system_prompt,
        user_prompt=user_prompt,
        schema_name=payload_model.__name__,
        model=model,
        temperature=temperature,
    )
    if not isinstance(payload, dict):
        raise DispatchError(
            f"Expected a JSON object from {model}, got {type(payload).__name__}."
        )

    try:
        parsed = payload_model.model_validate(payload)
    except ValidationError as exc:
        raise DispatchError(
            f"{payload_model.__name__} payload failed validation: {exc}"
        ) from exc

    input_tokens = estimate_tokens(system_prompt + user_prompt, chars_per_token)
    cost = estimate_cost(model, input_tokens, expected_output_tokens)
    logger.debug(
        "Dispatched %s to %s (~%d input tokens, $%.4f)",
        payload_model.__name__,
        model,
        input_tokens,
        cost.total_cost,
    )
    return DispatchResult(payload=parsed, cost=cost)
