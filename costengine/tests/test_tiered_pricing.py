"""
Tests for tiered (volume-discounted) pricing.
"""
import pytest

from costengine.pricing.source import TierRate
from costengine.services.tiered_pricing import calculate_tiered_cost


METRIC_TIERS = [TierRate(10000, 0.30), TierRate(250000, 0.10), TierRate(float("inf"), 0.05)]


def test_quantity_spanning_two_tiers():
    """50,000 units: 10,000 at $0.30 and 40,000 at $0.10."""
    assert calculate_tiered_cost(50000, [TierRate(10000, 0.30), TierRate(250000, 0.10)]) == pytest.approx(7000.0)


def test_quantity_within_first_tier():
    assert calculate_tiered_cost(500, METRIC_TIERS) == pytest.approx(150.0)


def test_quantity_on_tier_boundary():
    assert calculate_tiered_cost(10000, METRIC_TIERS) == pytest.approx(3000.0)


def test_quantity_in_unbounded_last_tier():
    expected = 10000 * 0.30 + 240000 * 0.10 + 50000 * 0.05
    assert calculate_tiered_cost(300000, METRIC_TIERS) == pytest.approx(expected)


@pytest.mark.parametrize("quantity", [0, -5])
def test_non_positive_quantity_costs_nothing(quantity):
    assert calculate_tiered_cost(quantity, METRIC_TIERS) == 0.0


def test_no_tiers_costs_nothing():
    assert calculate_tiered_cost(100, []) == 0.0


def test_units_past_last_bounded_tier_are_not_charged():
    assert calculate_tiered_cost(20, [TierRate(10, 1.0)]) == pytest.approx(10.0)
