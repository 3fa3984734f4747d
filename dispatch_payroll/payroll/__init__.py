"""
Payroll computation engine.

This module contains:
- Thresholds: Weekly bonus tier tables per driver classification
- Periods: Week / custom range resolution
- Revenue: Gross and commission aggregation
- Eligibility: Highest bonus tier reached
- Reconciler: Automatic bonus synchronization
- Summary: Final salary metrics
"""

from .eligibility import (
    NO_BONUS,
    Eligibility,
    amount_to_next_tier,
    next_tier,
    progress_to_next_tier,
    resolve_eligibility,
)
from .periods import (
    ActivePeriod,
    DateRange,
    PeriodType,
    WeekRange,
    current_week,
    resolve_period,
    shift_week,
    week_of,
    week_start,
)
from .reconciler import AutomaticBonusReconciler, ReconciliationFailure, ReconciliationResult
from .revenue import (
    DriverPerformance,
    DriverWeeklyGross,
    RevenueSummary,
    aggregate_revenue,
    driver_performance,
    loads_in_period,
    top_performer,
    weekly_gross_breakdown,
)
from .summary import PayrollMetrics, SalarySnapshot, bonuses_in_period, salary_snapshot, summarize_payroll
from .thresholds import (
    COMPANY_DRIVER_THRESHOLDS,
    OWNER_OPERATOR_THRESHOLDS,
    THRESHOLD_TABLES,
    get_thresholds,
)

__all__ = [
    "ActivePeriod",
    "AutomaticBonusReconciler",
    "COMPANY_DRIVER_THRESHOLDS",
    "DateRange",
    "DriverPerformance",
    "DriverWeeklyGross",
    "Eligibility",
    "NO_BONUS",
    "OWNER_OPERATOR_THRESHOLDS",
    "PayrollMetrics",
    "PeriodType",
    "ReconciliationFailure",
    "ReconciliationResult",
    "RevenueSummary",
    "SalarySnapshot",
    "THRESHOLD_TABLES",
    "WeekRange",
    "aggregate_revenue",
    "amount_to_next_tier",
    "bonuses_in_period",
    "current_week",
    "driver_performance",
    "get_thresholds",
    "loads_in_period",
    "next_tier",
    "progress_to_next_tier",
    "resolve_eligibility",
    "resolve_period",
    "salary_snapshot",
    "shift_week",
    "summarize_payroll",
    "top_performer",
    "week_of",
    "week_start",
    "weekly_gross_breakdown",
]
