"""Tests for model pricing and cost tracking."""

import pytest

from datelens.costs import (
    DEFAULT_PRICE,
    BudgetExceededError,
    CostTracker,
    estimate_cost,
    price_for_model,
)


def test_price_lookup_accepts_unprefixed_model_ids():
    assert price_for_model("gpt-4o-mini") == price_for_model("openai/gpt-4o-mini")


def test_unknown_model_uses_default_price():
    assert price_for_model("acme/unknown-model") == DEFAULT_PRICE


def test_estimate_cost_per_million_tokens():
    estimate = estimate_cost("openai/gpt-4o", 1_000_000, 100_000)
    assert estimate.input_cost == pytest.approx(2.50)
    assert estimate.output_cost == pytest.approx(1.0)
    assert estimate.total_cost == pytest.approx(3.50)


def test_estimate_cost_clamps_negative_tokens():
    estimate = estimate_cost("openai/gpt-4o", -5, 0)
    assert estimate.input_tokens == 0
    assert estimate.total_cost == 0.0


class TestCostTracker:
    def test_totals_and_breakdown(self):
        tracker = CostTracker(budget_limit_usd=10.0)
        tracker.add_cost(estimate_cost("openai/gpt-4o", 1_000_000, 0))
        tracker.add_cost(estimate_cost("openai/gpt-4o-mini", 1_000_000, 0))
        tracker.add_cost(estimate_cost("openai/gpt-4o", 1_000_000, 0))

        assert tracker.total_cost() == pytest.approx(5.15)
        assert tracker.remaining_budget() == pytest.approx(4.85)
        assert tracker.costs_by_model() == pytest.approx(
            {"openai/gpt-4o": 5.0, "openai/gpt-4o-mini": 0.15}
        )
        assert len(tracker.all_costs()) == 3
        assert tracker.is_budget_exceeded() is False

    def test_budget_exceeded_at_limit(self):
        tracker = CostTracker(budget_limit_usd=2.5)
        tracker.add_cost(estimate_cost("openai/gpt-4o", 1_000_000, 0))
        assert tracker.is_budget_exceeded() is True
        assert tracker.remaining_budget() == 0.0
        with pytest.raises(BudgetExceededError):
            tracker.ensure_within_budget()

    def test_reset_clears_total(self):
        tracker = CostTracker()
        tracker.add_cost(estimate_cost("openai/gpt-4o", 1000, 1000))
        tracker.reset()
        assert tracker.total_cost() == 0.0
        assert tracker.all_costs() == []

    def test_negative_budget_rejected(self):
        with pytest.raises(ValueError):
            CostTracker(budget_limit_usd=-1.0)
