"""
Automatic bonus reconciliation.

Keeps the stored automatic bonuses of one calendar week in line with what
the loads say drivers have earned:
- one automatic bonus per eligible driver, at the current tier amount
- none for drivers who are not eligible
- manual bonuses and other weeks are never read or written
"""

import threading
from collections.abc import Callable, Iterable, Sequence
from datetime import date, datetime, timedelta
from time import time
from typing import Optional

import structlog
from pydantic import BaseModel, Field

from dispatch_payroll.core.errors import PersistenceError
from dispatch_payroll.data.models import Bonus, BonusType, Driver, Load
from dispatch_payroll.data.repository import DispatchRepository, new_record_id
from dispatch_payroll.payroll.periods import WeekRange, week_start
from dispatch_payroll.payroll.revenue import DriverPerformance, driver_performance


class ReconciliationFailure(BaseModel):
    """A single store operation that failed during a pass."""

    driver_id: Optional[str]
    operation: str  # "create", "update" or "delete"
    bonus_id: Optional[str] = None
    error: str


class ReconciliationResult(BaseModel):
    """Outcome of one reconciliation pass."""

    week_start: date
    # Driver ids, except ``deleted`` which holds bonus ids.
    created: list[str] = Field(default_factory=list)
    updated: list[str] = Field(default_factory=list)
    deleted: list[str] = Field(default_factory=list)
    unchanged: list[str] = Field(default_factory=list)
    failures: list[ReconciliationFailure] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=datetime.now)
    execution_time_seconds: float = 0.0

    @property
    def changed(self) -> bool:
        return bool(self.created or self.updated or self.deleted)


def automatic_bonus_note(performance: DriverPerformance) -> str:
    """Note stored on an automatic bonus."""
    return f"Auto: ${performance.total_gross:,.2f} gross ({performance.driver_type.label})"


class AutomaticBonusReconciler:
    """
    Synchronizes automatic bonus records with current eligibility.

    Eligibility is always computed over the Monday-Sunday week that contains
    the start of the active period, even when the dashboard shows a custom
    range. Callers must pass the post-mutation load list; the reconciler
    holds no cached loads of its own.

    Passes are serialized through a lock so two rapid load edits cannot
    interleave their create/update/delete sequences.
    """

    def __init__(
        self,
        repository: DispatchRepository,
        logger: Optional[structlog.BoundLogger] = None,
        clock: Optional[Callable[[], date]] = None,
    ) -> None:
        """
        Initialize the reconciler.

        Args:
            repository: Store holding the bonus records
            logger: Optional structured logger
            clock: Returns "today"; used as the record date of new bonuses
        """
        self.repository = repository
        self.logger = logger or structlog.get_logger(component="bonus_reconciler")
        self.clock = clock or date.today
        self._lock = threading.Lock()

    def reconcile(
        self,
        loads: Sequence[Load],
        drivers: Iterable[Driver],
        period_start: date,
    ) -> ReconciliationResult:
        """
        Run one reconciliation pass.

        Args:
            loads: The full load list *after* the triggering mutation
            drivers: All drivers; only active ones can be eligible
            period_start: Start of the active period; its week is reconciled

        Returns:
            ReconciliationResult listing what changed and what failed

        Raises:
            PersistenceError: If the existing bonuses cannot be fetched
        """
        with self._lock:
            return self._reconcile(list(loads), list(drivers), period_start)

    def _reconcile(
        self,
        loads: list[Load],
        drivers: list[Driver],
        period_start: date,
    ) -> ReconciliationResult:
        start_time = time()

        monday = week_start(period_start)
        week = WeekRange(start=monday, end=monday + timedelta(days=6))
        today = self.clock()
        result = ReconciliationResult(week_start=monday)

        eligible = {
            p.driver_id: p for p in driver_performance(drivers, loads, week) if p.bonus_amount > 0
        }

        try:
            existing = self.repository.list_automatic_bonuses(monday)
        except PersistenceError as e:
            self.logger.error("automatic_bonus_fetch_failed", week_start=monday.isoformat(), error=str(e))
            raise

        self.logger.info(
            "reconciliation_started",
            week_start=monday.isoformat(),
            loads=len(loads),
            eligible_drivers=len(eligible),
            existing_automatic=len(existing),
        )

        by_driver: dict[Optional[str], Bonus] = {}
        for bonus in sorted(existing, key=lambda b: b.created_at):
            if bonus.bonus_type is not BonusType.AUTOMATIC or bonus.week_start != monday:
                continue
            if bonus.driver_id in eligible and bonus.driver_id not in by_driver:
                by_driver[bonus.driver_id] = bonus
            else:
                # Not eligible, or a second row for the same driver and week.
                self._delete(bonus, result)

        for driver_id, performance in eligible.items():
            current = by_driver.get(driver_id)
            if current is None:
                self._create(performance, monday, today, result)
            elif current.amount != performance.bonus_amount:
                self._update(current, performance, result)
            else:
                result.unchanged.append(driver_id)

        result.execution_time_seconds = time() - start_time
        self.logger.info(
            "reconciliation_completed",
            week_start=monday.isoformat(),
            created=len(result.created),
            updated=len(result.updated),
            deleted=len(result.deleted),
            unchanged=len(result.unchanged),
            failures=len(result.failures),
            execution_time=result.execution_time_seconds,
        )
        return result

    def _create(
        self,
        performance: DriverPerformance,
        monday: date,
        today: date,
        result: ReconciliationResult,
    ) -> None:
        bonus = Bonus(
            bonus_id=new_record_id(),
            driver_id=performance.driver_id,
            bonus_type=BonusType.AUTOMATIC,
            amount=performance.bonus_amount,
            week_start=monday,
            date=today,
            note=automatic_bonus_note(performance),
        )
        try:
            self.repository.insert_bonus(bonus)
        except PersistenceError as e:
            self._failed(result, performance.driver_id, "create", None, e)
            return
        result.created.append(performance.driver_id)
        self.logger.info(
            "automatic_bonus_created",
            driver_id=performance.driver_id,
            bonus_id=bonus.bonus_id,
            amount=str(bonus.amount),
            week_start=monday.isoformat(),
        )

    def _update(
        self,
        current: Bonus,
        performance: DriverPerformance,
        result: ReconciliationResult,
    ) -> None:
        try:
            self.repository.update_bonus(
                current.bonus_id,
                {"amount": performance.bonus_amount, "note": automatic_bonus_note(performance)},
            )
        except PersistenceError as e:
            self._failed(result, performance.driver_id, "update", current.bonus_id, e)
            return
        result.updated.append(performance.driver_id)
        self.logger.info(
            "automatic_bonus_updated",
            driver_id=performance.driver_id,
            bonus_id=current.bonus_id,
            old_amount=str(current.amount),
            new_amount=str(performance.bonus_amount),
        )

    def _delete(self, bonus: Bonus, result: ReconciliationResult) -> None:
        try:
            self.repository.delete_bonus(bonus.bonus_id)
        except PersistenceError as e:
            self._failed(result, bonus.driver_id, "delete", bonus.bonus_id, e)
            return
        result.deleted.append(bonus.bonus_id)
        self.logger.info(
            "automatic_bonus_deleted",
            driver_id=bonus.driver_id,
            bonus_id=bonus.bonus_id,
            amount=str(bonus.amount),
        )

    def _failed(
        self,
        result: ReconciliationResult,
        driver_id: Optional[str],
        operation: str,
        bonus_id: Optional[str],
        error: PersistenceError,
    ) -> None:
        result.failures.append(
            ReconciliationFailure(
                driver_id=driver_id,
                operation=operation,
                bonus_id=bonus_id,
                error=str(error),
            )
        )
        self.logger.error(
            "automatic_bonus_sync_failed",
            driver_id=driver_id,
            operation=operation,
            bonus_id=bonus_id,
            error=str(error),
        )
