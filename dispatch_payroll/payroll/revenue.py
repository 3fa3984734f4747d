"""
Revenue aggregation.

All figures are computed from loads whose **pickup date** falls inside the
period (inclusive at both ends). Pure functions, no side effects.
"""

from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from dispatch_payroll.data.models import (
    FULL_LOAD_COMMISSION_RATE,
    PARTIAL_LOAD_COMMISSION_RATE,
    Driver,
    DriverType,
    Load,
    LoadType,
)
from dispatch_payroll.payroll.eligibility import (
    amount_to_next_tier,
    next_tier,
    progress_to_next_tier,
    resolve_eligibility,
)
from dispatch_payroll.payroll.periods import DateRange, WeekRange

ZERO = Decimal("0")


class RevenueSummary(BaseModel):
    """Top-line gross and commission for a period."""

    full_loads_gross: Decimal = ZERO
    partial_loads_gross: Decimal = ZERO
    total_gross: Decimal = ZERO
    full_load_commission: Decimal = ZERO
    partial_load_commission: Decimal = ZERO
    load_count: int = 0


class DriverPerformance(BaseModel):
    """A driver's gross, load count and bonus standing for a period."""

    driver_id: str
    driver_name: str
    driver_type: DriverType
    truck_number: Optional[str] = None
    total_gross: Decimal
    load_count: int
    bonus_amount: Decimal
    bonus_threshold: Decimal
    next_threshold: Decimal
    amount_to_next_tier: Decimal
    progress_to_next_tier: Decimal


class DayGross(BaseModel):
    day: date
    load_ids: list[str] = Field(default_factory=list)
    total: Decimal = ZERO


class DriverWeeklyGross(BaseModel):
    """One row of the weekly gross table: a driver's gross per weekday."""

    driver_id: str
    driver_name: str
    truck_number: Optional[str] = None
    days: list[DayGross]
    weekly_total: Decimal


def loads_in_period(loads: Iterable[Load], period: DateRange) -> list[Load]:
    """Loads picked up within ``period``."""
    return [load for load in loads if period.contains(load.pickup_date)]


def _gross(loads: Iterable[Load]) -> Decimal:
    return sum((load.rate for load in loads), ZERO)


def aggregate_revenue(loads: Iterable[Load], period: DateRange) -> RevenueSummary:
    """
    Compute gross and commission per load type for a period.

    Commission is applied to the unrounded gross: 1% of FULL, 2% of PARTIAL.

    Args:
        loads: All loads (unfiltered)
        period: Inclusive period to aggregate over

    Returns:
        RevenueSummary for the period
    """
    in_period = loads_in_period(loads, period)

    full_gross = _gross(l for l in in_period if l.load_type is LoadType.FULL)
    partial_gross = _gross(l for l in in_period if l.load_type is LoadType.PARTIAL)

    return RevenueSummary(
        full_loads_gross=full_gross,
        partial_loads_gross=partial_gross,
        total_gross=full_gross + partial_gross,
        full_load_commission=full_gross * FULL_LOAD_COMMISSION_RATE,
        partial_load_commission=partial_gross * PARTIAL_LOAD_COMMISSION_RATE,
        load_count=len(in_period),
    )


def driver_gross(loads: Iterable[Load], driver_id: str, period: DateRange) -> tuple[Decimal, int]:
    """Gross and load count for one driver within ``period``."""
    mine = [l for l in loads_in_period(loads, period) if l.driver_id == driver_id]
    return _gross(mine), len(mine)


def driver_performance(
    drivers: Iterable[Driver],
    loads: Iterable[Load],
    period: DateRange,
) -> list[DriverPerformance]:
    """
    Per-driver gross and bonus standing for active drivers.

    Args:
        drivers: All drivers; inactive ones are skipped
        loads: All loads (unfiltered)
        period: Inclusive period

    Returns:
        One DriverPerformance per active driver, in input order
    """
    in_period = loads_in_period(loads, period)
    results = []

    for driver in drivers:
        if not driver.is_active:
            continue

        gross, count = driver_gross(in_period, driver.driver_id, period)
        eligibility = resolve_eligibility(gross, driver.driver_type)

        results.append(
            DriverPerformance(
                driver_id=driver.driver_id,
                driver_name=driver.driver_name,
                driver_type=driver.driver_type,
                truck_number=driver.truck_number,
                total_gross=gross,
                load_count=count,
                bonus_amount=eligibility.bonus_amount,
                bonus_threshold=eligibility.threshold,
                next_threshold=next_tier(gross, driver.driver_type).threshold,
                amount_to_next_tier=amount_to_next_tier(gross, driver.driver_type),
                progress_to_next_tier=progress_to_next_tier(gross, driver.driver_type),
            )
        )

    return results


def top_performer(performance: Iterable[DriverPerformance]) -> Optional[DriverPerformance]:
    """Driver with the highest gross; None when nobody has any gross."""
    best: Optional[DriverPerformance] = None
    for entry in performance:
        if entry.total_gross > (best.total_gross if best else ZERO):
            best = entry
    return best


def weekly_gross_breakdown(
    drivers: Iterable[Driver],
    loads: Iterable[Load],
    week: WeekRange,
) -> list[DriverWeeklyGross]:
    """
    Gross per driver per weekday (Monday..Sunday) by pickup date.

    Drivers with a truck number come first, ordered by truck; the rest
    follow by name.
    """
    in_week = loads_in_period(loads, week)
    rows = []

    for driver in drivers:
        if not driver.is_active:
            continue
        mine = [l for l in in_week if l.driver_id == driver.driver_id]
        days = []
        for day in week.days():
            day_loads = [l for l in mine if l.pickup_date == day]
            days.append(
                DayGross(
                    day=day,
                    load_ids=[l.load_id for l in day_loads],
                    total=_gross(day_loads),
                )
            )
        rows.append(
            DriverWeeklyGross(
                driver_id=driver.driver_id,
                driver_name=driver.driver_name,
                truck_number=driver.truck_number,
                days=days,
                weekly_total=sum((d.total for d in days), ZERO),
            )
        )

    return sorted(rows, key=_weekly_sort_key)


def _weekly_sort_key(row: DriverWeeklyGross) -> tuple[int, str]:
    if row.truck_number:
        return (0, row.truck_number)
    return (1, row.driver_name.lower())
