"""
Bonus eligibility.

A driver's weekly gross is matched against the threshold table for their
classification; the highest tier reached pays out. Falling short of the
lowest tier is the normal "no bonus" state, not an error.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from dispatch_payroll.data.models import BonusTier, DriverType
from dispatch_payroll.payroll.thresholds import get_thresholds

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class Eligibility(BaseModel):
    """Highest tier reached; zeros when no tier is met."""

    model_config = ConfigDict(frozen=True)

    bonus_amount: Decimal = ZERO
    threshold: Decimal = ZERO


NO_BONUS = Eligibility()


def resolve_eligibility(gross: Decimal, driver_type: DriverType | str) -> Eligibility:
    """
    Find the highest tier whose threshold is at or below ``gross``.

    Args:
        gross: Driver's total gross for the week
        driver_type: Driver classification

    Returns:
        Eligibility for the highest qualifying tier, or NO_BONUS
    """
    reached = NO_BONUS
    for tier in get_thresholds(driver_type):
        if gross >= tier.threshold:
            reached = Eligibility(bonus_amount=tier.bonus, threshold=tier.threshold)
        else:
            break
    return reached


def next_tier(gross: Decimal, driver_type: DriverType | str) -> BonusTier:
    """First tier above ``gross``, or the top tier once every tier is met."""
    tiers = get_thresholds(driver_type)
    for tier in tiers:
        if tier.threshold > gross:
            return tier
    return tiers[-1]


def amount_to_next_tier(gross: Decimal, driver_type: DriverType | str) -> Decimal:
    """Gross still needed to reach the next tier; zero at the top tier."""
    return max(next_tier(gross, driver_type).threshold - gross, ZERO)


def progress_to_next_tier(gross: Decimal, driver_type: DriverType | str) -> Decimal:
    """
    Percent of the way from the current tier to the next, capped at 100.

    Below the first tier progress is measured from zero.
    """
    upcoming = next_tier(gross, driver_type)
    if gross >= upcoming.threshold:
        return HUNDRED

    current = resolve_eligibility(gross, driver_type)
    span = upcoming.threshold - current.threshold
    progress = (gross - current.threshold) / span * HUNDRED
    return min(max(progress, ZERO), HUNDRED)
