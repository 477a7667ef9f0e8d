"""Model pricing and per-run cost accounting."""

from __future__ import annotations

import threading
from dataclasses import dataclass


@dataclass(frozen=True)
class ModelPrice:
    """USD price per one million tokens."""

    input_per_1m: float
    output_per_1m: float


MODEL_PRICING: dict[str, ModelPrice] = {
    "openai/gpt-4o-mini": ModelPrice(input_per_1m=0.15, output_per_1m=0.60),
    "openai/gpt-4o": ModelPrice(input_per_1m=2.50, output_per_1m=10.0),
    "openai/gpt-4-turbo": ModelPrice(input_per_1m=10.0, output_per_1m=30.0),
    "openai/gpt-4": ModelPrice(input_per_1m=30.0, output_per_1m=60.0),
    "openai/gpt-3.5-turbo": ModelPrice(input_per_1m=0.50, output_per_1m=1.50),
    "openai/gpt-5": ModelPrice(input_per_1m=1.25, output_per_1m=10.0),
    "anthropic/claude-3-haiku": ModelPrice(input_per_1m=0.25, output_per_1m=1.25),
}

DEFAULT_PRICE = ModelPrice(input_per_1m=10.0, output_per_1m=30.0)


class BudgetExceededError(RuntimeError):
    """Raised when a caller enforces the budget and it has been spent."""


@dataclass(frozen=True)
class CostEstimate:
    """Estimated spend for one completion call or one stage."""

    model: str
    input_tokens: int
    output_tokens: int
    input_cost: float
    output_cost: float

    @property
    def total_cost(self) -> float:
        return self.input_cost + self.output_cost


def price_for_model(model: str) -> ModelPrice:
    """Look up pricing, accepting ids with or without the provider prefix."""

    if model in MODEL_PRICING:
        return MODEL_PRICING[model]
    for model_id, price in MODEL_PRICING.items():
        if model_id.split("/", 1)[-1] == model:
            return price
    return DEFAULT_PRICE


def estimate_cost(model: str, input_tokens: int, output_tokens: int) -> CostEstimate:
    """Price a token count for the given model."""

    price = price_for_model(model)
    input_tokens = max(0, int(input_tokens))
    output_tokens = max(0, int(output_tokens))
    return CostEstimate(
        model=model,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        input_cost=input_tokens / 1_000_000 * price.input_per_1m,
        output_cost=output_tokens / 1_000_000 * price.output_per_1m,
    )


class CostTracker:
    """Running total of estimated spend for one analysis run.

    The total only grows; `reset()` is the single way to bring it back to zero.
    Instances are passed explicitly to the stages that spend against them.
    """

    def __init__(self, budget_limit_usd: float = 2000.0) -> None:
        if budget_limit_usd < 0:
            raise ValueError(f"budget_limit_usd must be >= 0, got {budget_limit_usd}.")
        self._budget_limit_usd = budget_limit_usd
        self._lock = threading.Lock()
        self._costs: list[CostEstimate] = []

    @property
    def budget_limit_usd(self) -> float:
        return self._budget_limit_usd

    def add_cost(self, estimate: CostEstimate) -> None:
        if estimate.total_cost < 0:
            raise ValueError(f"Cost estimates must be non-negative, got {estimate.total_cost}.")
        with self._lock:
            self._costs.append(estimate)

    def total_cost(self) -> float:
        with self._lock:
            return sum(item.total_cost for item in self._costs)

    def remaining_budget(self) -> float:
        return max(0.0, self._budget_limit_usd - self.total_cost())

    def is_budget_exceeded(self) -> bool:
        return self.total_cost() >= self._budget_limit_usd

    def ensure_within_budget(self) -> None:
        """Raise `BudgetExceededError` when the budget is spent."""

        if self.is_budget_exceeded():
            raise BudgetExceededError(
                f"Budget of ${self._budget_limit_usd:.2f} exhausted "
                f"(spent ${self.total_cost():.4f})."
            )

    def costs_by_model(self) -> dict[str, float]:
        breakdown: dict[str, float] = {}
        with self._lock:
            for item in self._costs:
                breakdown[item.model] = breakdown.get(item.model, 0.0) + item.total_cost
        return breakdown

    def all_costs(self) -> list[CostEstimate]:
        with self._lock:
            return list(self._costs)

    def reset(self) -> None:
        with self._lock:
            self._costs = []
