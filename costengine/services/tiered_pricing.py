"""
Tiered (volume-discounted) pricing.
"""
from typing import Sequence

from costengine.pricing.source import TierRate


def calculate_tiered_cost(quantity: float, tiers: Sequence[TierRate]) -> float:
    """
    Cost of quantity units under ordered volume tiers.

    Each tier charges its rate for the units between the previous tier's
    bound and min(up_to, quantity). Units past the last bound are not
    charged, so the last tier should be unbounded (math.inf).

    Args:
        quantity: Units consumed
        tiers: Tiers ordered by ascending up_to

    Returns:
        Total cost; 0 for non-positive quantity or no tiers
    """
    if quantity <= 0 or not tiers:
        return 0.0

    total = 0.0
    previous = 0.0
    for tier in tiers:
        if quantity <= previous:
            break
        billable = min(tier.up_to, quantity) - previous
        if billable > 0:
            total += billable * tier.rate
        previous = tier.up_to
    return total
