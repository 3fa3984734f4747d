"""
Payroll metrics: commissions plus bonuses for the active period.
"""

from collections.abc import Iterable
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from dispatch_payroll.data.models import Bonus
from dispatch_payroll.data.repository import new_record_id
from dispatch_payroll.payroll.periods import ActivePeriod, DateRange, PeriodType
from dispatch_payroll.payroll.revenue import RevenueSummary

ZERO = Decimal("0")


class PayrollMetrics(RevenueSummary):
    """Revenue figures plus bonus and salary totals."""

    total_bonuses: Decimal = ZERO
    total_salary: Decimal = ZERO


class SalarySnapshot(BaseModel):
    """Point-in-time record of a computed salary."""

    salary_id: str = Field(default_factory=new_record_id)
    period_type: PeriodType
    period_start: date
    period_end: date
    full_load_commission: Decimal
    partial_load_commission: Decimal
    total_bonuses: Decimal
    total_salary: Decimal
    calculated_at: datetime = Field(default_factory=datetime.now)


def bonuses_in_period(bonuses: Iterable[Bonus], period: DateRange) -> list[Bonus]:
    """Bonuses (manual and automatic) recorded within ``period``."""
    return [b for b in bonuses if period.contains(b.date)]


def summarize_payroll(
    revenue: RevenueSummary,
    bonuses: Iterable[Bonus],
    period: DateRange,
) -> PayrollMetrics:
    """
    Fold commissions and bonuses into the salary figure.

    Args:
        revenue: Revenue aggregated over the same period
        bonuses: All bonuses (unfiltered)
        period: Active period; bonuses are filtered by their record date

    Returns:
        PayrollMetrics with total_salary = both commissions + total_bonuses
    """
    total_bonuses = sum((b.amount for b in bonuses_in_period(bonuses, period)), ZERO)

    return PayrollMetrics(
        **revenue.model_dump(),
        total_bonuses=total_bonuses,
        total_salary=(
            revenue.full_load_commission + revenue.partial_load_commission + total_bonuses
        ),
    )


def salary_snapshot(metrics: PayrollMetrics, period: ActivePeriod) -> SalarySnapshot:
    """Capture the salary for ``period`` as a snapshot record."""
    return SalarySnapshot(
        period_type=period.period_type,
        period_start=period.start,
        period_end=period.end,
        full_load_commission=metrics.full_load_commission,
        partial_load_commission=metrics.partial_load_commission,
        total_bonuses=metrics.total_bonuses,
        total_salary=metrics.total_salary,
    )
