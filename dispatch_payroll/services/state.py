"""
Dispatcher state container.

Holds the process-local mirrors of the store (drivers, loads, bonuses) and
the dashboard's period selection, and is the only place allowed to mutate
them. Every write goes to the store first; the mirror changes only after the
store call succeeds.
"""

from collections.abc import Callable
from datetime import date
from decimal import Decimal
from typing import Any, Optional

import structlog

from dispatch_payroll.core.errors import (
    DuplicateLoadIdError,
    InvalidParentLoadError,
    MissingParentLoadError,
    NotFoundError,
    ParentLoadInUseError,
    PersistenceError,
    ValidationError,
)
from dispatch_payroll.data.models import Bonus, BonusType, Driver, Load, LoadType
from dispatch_payroll.data.repository import DispatchRepository, new_record_id
from dispatch_payroll.payroll.periods import (
    ActivePeriod,
    DateRange,
    WeekRange,
    current_week,
    resolve_period,
    shift_week,
    week_start,
)
from dispatch_payroll.payroll.reconciler import AutomaticBonusReconciler, ReconciliationResult
from dispatch_payroll.payroll.revenue import (
    DriverPerformance,
    DriverWeeklyGross,
    RevenueSummary,
    aggregate_revenue,
    driver_performance,
    loads_in_period,
    top_performer,
    weekly_gross_breakdown,
)
from dispatch_payroll.payroll.summary import (
    PayrollMetrics,
    SalarySnapshot,
    bonuses_in_period,
    salary_snapshot,
    summarize_payroll,
)


class DispatcherState:
    """
    Process-wide state for one signed-in dispatcher.

    Lifecycle: ``refresh()`` after sign-in populates the mirrors, ``clear()``
    on sign-out drops them. Load mutations trigger automatic bonus
    reconciliation with the post-mutation load list.
    """

    def __init__(
        self,
        repository: DispatchRepository,
        reconciler: Optional[AutomaticBonusReconciler] = None,
        logger: Optional[structlog.BoundLogger] = None,
        clock: Optional[Callable[[], date]] = None,
    ) -> None:
        """
        Initialize the state container.

        Args:
            repository: Backing store
            reconciler: Optional reconciler (defaults to one over ``repository``)
            logger: Optional structured logger
            clock: Returns "today"; defaults to date.today
        """
        self.repository = repository
        self.clock = clock or date.today
        self.logger = logger or structlog.get_logger(component="dispatcher_state")
        self.reconciler = reconciler or AutomaticBonusReconciler(
            repository, logger=self.logger, clock=self.clock
        )

        self.drivers: list[Driver] = []
        self.loads: list[Load] = []
        self.bonuses: list[Bonus] = []
        self.last_reconciliation: Optional[ReconciliationResult] = None

        self.selected_week: WeekRange = current_week(self.clock())
        self.custom_range: Optional[DateRange] = None
        self.use_custom_range: bool = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def refresh(self) -> None:
        """Populate the mirrors from the store."""
        self.drivers = self.repository.list_drivers()
        self.loads = self.repository.list_loads()
        self.bonuses = self.repository.list_bonuses()
        self.logger.info(
            "state_refreshed",
            drivers=len(self.drivers),
            loads=len(self.loads),
            bonuses=len(self.bonuses),
        )

    def clear(self) -> None:
        """Drop every mirror and reset the period selection."""
        self.drivers = []
        self.loads = []
        self.bonuses = []
        self.last_reconciliation = None
        self.selected_week = current_week(self.clock())
        self.custom_range = None
        self.use_custom_range = False
        self.logger.info("state_cleared")

    # ------------------------------------------------------------------
    # Period selection
    # ------------------------------------------------------------------

    @property
    def active_period(self) -> ActivePeriod:
        return resolve_period(self.selected_week, self.custom_range, self.use_custom_range)

    def select_week(self, week: WeekRange) -> None:
        """Pick a week; picking a week switches the custom range off."""
        self.selected_week = week
        self.use_custom_range = False

    def previous_week(self) -> None:
        self.select_week(shift_week(self.selected_week, -1))

    def next_week(self) -> None:
        self.select_week(shift_week(self.selected_week, 1))

    def go_to_current_week(self) -> None:
        self.select_week(current_week(self.clock()))

    def set_custom_range(self, custom_range: Optional[DateRange], active: bool = True) -> None:
        self.custom_range = custom_range
        self.use_custom_range = active

    # ------------------------------------------------------------------
    # Loads
    # ------------------------------------------------------------------

    def load_id_exists(self, load_id: str, exclude: Optional[str] = None) -> bool:
        """Case-sensitive exact match against every known load."""
        return any(l.load_id == load_id and l.load_id != exclude for l in self.loads)

    def full_loads(self) -> list[Load]:
        """FULL loads, the candidates a PARTIAL load may be linked to."""
        return [l for l in self.loads if l.load_type is LoadType.FULL]

    def get_load(self, load_id: str) -> Optional[Load]:
        return next((l for l in self.loads if l.load_id == load_id), None)

    def partial_loads_of(self, load_id: str) -> list[Load]:
        """PARTIAL loads split off ``load_id``."""
        return [l for l in self.loads if l.parent_load_id == load_id]

    def _validate_parent(self, load: Load) -> None:
        if load.load_type is LoadType.FULL:
            if load.parent_load_id:
                raise InvalidParentLoadError(
                    load.load_id, load.parent_load_id, "FULL loads cannot have a parent"
                )
            return

        if not load.parent_load_id:
            raise MissingParentLoadError(load.load_id)
        if load.parent_load_id == load.load_id:
            raise InvalidParentLoadError(load.load_id, load.parent_load_id, "load cannot be its own parent")

        parent = self.get_load(load.parent_load_id)
        if parent is None:
            raise InvalidParentLoadError(load.load_id, load.parent_load_id, "parent load not found")
        if parent.load_type is not LoadType.FULL:
            raise InvalidParentLoadError(load.load_id, load.parent_load_id, "parent must be a FULL load")

    def add_load(self, load: Load) -> Load:
        """
        Create a load, then reconcile automatic bonuses.

        Args:
            load: New load

        Returns:
            The stored load

        Raises:
            ValidationError: Duplicate id or bad parent; nothing was written
            PersistenceError: The store rejected the insert; state unchanged
        """
        if self.load_id_exists(load.load_id):
            raise DuplicateLoadIdError(load.load_id)
        self._validate_parent(load)

        try:
            stored = self.repository.insert_load(load)
        except PersistenceError as e:
            self.logger.error("load_create_failed", load_id=load.load_id, error=str(e))
            raise

        loads = [*self.loads, stored]
        self.loads = loads
        self.logger.info("load_created", load_id=stored.load_id, rate=str(stored.rate))
        self._reconcile(loads)
        return stored

    def update_load(self, load_id: str, updates: dict[str, Any]) -> Load:
        """
        Apply a partial update to a load, then reconcile automatic bonuses.

        ``updates`` may include a new ``load_id`` (rename). Renaming a FULL
        load carries its PARTIAL loads along to the new id. The parent link
        is only re-checked when ``parent_load_id`` or ``load_type`` changes.

        Raises:
            NotFoundError: No such load in the mirror
            ValidationError: Duplicate id, bad parent, or a FULL load with
                PARTIAL loads being switched to PARTIAL; nothing was written
            PersistenceError: The store rejected the update; state unchanged
        """
        current = self.get_load(load_id)
        if current is None:
            raise NotFoundError("update", "load", load_id)

        new_id = updates.get("load_id", load_id)
        if new_id != load_id and self.load_id_exists(new_id, exclude=load_id):
            raise DuplicateLoadIdError(new_id)

        data = current.model_dump(exclude=set(Load.model_computed_fields))
        data.update(updates)
        try:
            if LoadType(data["load_type"]) is LoadType.FULL and data.get("parent_load_id"):
                raise InvalidParentLoadError(new_id, data["parent_load_id"], "FULL loads cannot have a parent")
            updated = Load.model_validate(data)
        except ValueError as e:
            raise ValidationError(f"Invalid load {load_id}: {e}") from e

        children = self.partial_loads_of(load_id)
        if children and updated.load_type is not LoadType.FULL:
            raise ParentLoadInUseError(load_id, [l.load_id for l in children])
        if {"parent_load_id", "load_type"} & updates.keys():
            self._validate_parent(updated)

        try:
            self.repository.update_load(load_id, updates)
        except PersistenceError as e:
            self.logger.error("load_update_failed", load_id=load_id, error=str(e))
            raise

        loads = []
        for l in self.loads:
            if l.load_id == load_id:
                l = updated
            elif l.parent_load_id == load_id and new_id != load_id:
                l = l.model_copy(update={"parent_load_id": new_id})
            loads.append(l)
        self.loads = loads
        self.logger.info("load_updated", load_id=load_id, fields=sorted(updates))
        self._reconcile(loads)
        return updated

    def delete_load(self, load_id: str) -> None:
        """
        Delete a load, then reconcile automatic bonuses.

        Raises:
            ParentLoadInUseError: PARTIAL loads still reference it; nothing
                was written
            PersistenceError: The store rejected the delete; state unchanged
        """
        children = self.partial_loads_of(load_id)
        if children:
            raise ParentLoadInUseError(load_id, [l.load_id for l in children])

        try:
            self.repository.delete_load(load_id)
        except PersistenceError as e:
            self.logger.error("load_delete_failed", load_id=load_id, error=str(e))
            raise

        loads = [l for l in self.loads if l.load_id != load_id]
        self.loads = loads
        self.logger.info("load_deleted", load_id=load_id)
        self._reconcile(loads)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def reconcile_bonuses(self) -> Optional[ReconciliationResult]:
        """Reconcile against the current mirror, e.g. after a driver edit."""
        return self._reconcile(list(self.loads))

    def _reconcile(self, loads: list[Load]) -> Optional[ReconciliationResult]:
        # ``loads`` is the post-mutation list, passed explicitly.
        try:
            result = self.reconciler.reconcile(loads, self.drivers, self.active_period.start)
        except PersistenceError as e:
            self.logger.error("reconciliation_failed", error=str(e))
            return None

        self.last_reconciliation = result
        if result.changed:
            try:
                self.bonuses = self.repository.list_bonuses()
            except PersistenceError as e:
                self.logger.error("bonus_refresh_failed", error=str(e))
        return result

    # ------------------------------------------------------------------
    # Drivers
    # ------------------------------------------------------------------

    def get_driver(self, driver_id: str) -> Optional[Driver]:
        return next((d for d in self.drivers if d.driver_id == driver_id), None)

    def add_driver(self, driver: Driver) -> Driver:
        try:
            stored = self.repository.insert_driver(driver)
        except PersistenceError as e:
            self.logger.error("driver_create_failed", driver_id=driver.driver_id, error=str(e))
            raise
        self.drivers = [*self.drivers, stored]
        self.logger.info("driver_created", driver_id=stored.driver_id)
        return stored

    def update_driver(self, driver_id: str, updates: dict[str, Any]) -> Driver:
        current = self.get_driver(driver_id)
        if current is None:
            raise NotFoundError("update", "driver", driver_id)
        try:
            updated = Driver.model_validate({**current.model_dump(), **updates})
        except ValueError as e:
            raise ValidationError(f"Invalid driver {driver_id}: {e}") from e

        try:
            self.repository.update_driver(driver_id, updates)
        except PersistenceError as e:
            self.logger.error("driver_update_failed", driver_id=driver_id, error=str(e))
            raise

        self.drivers = [updated if d.driver_id == driver_id else d for d in self.drivers]
        self.logger.info("driver_updated", driver_id=driver_id, fields=sorted(updates))
        return updated

    def delete_driver(self, driver_id: str) -> None:
        """Delete a driver. Their loads and bonuses stay."""
        try:
            self.repository.delete_driver(driver_id)
        except PersistenceError as e:
            self.logger.error("driver_delete_failed", driver_id=driver_id, error=str(e))
            raise
        self.drivers = [d for d in self.drivers if d.driver_id != driver_id]
        self.logger.info("driver_deleted", driver_id=driver_id)

    # ------------------------------------------------------------------
    # Bonuses
    # ------------------------------------------------------------------

    def add_bonus(
        self,
        amount: Decimal,
        note: str = "",
        driver_id: Optional[str] = None,
        on: Optional[date] = None,
    ) -> Bonus:
        """
        Record a manual bonus.

        Args:
            amount: Bonus amount
            note: Free-text note
            driver_id: Driver, or None for a company-wide bonus
            on: Record date (defaults to today); its week becomes week_start
        """
        day = on or self.clock()
        bonus = Bonus(
            bonus_id=new_record_id(),
            driver_id=driver_id,
            bonus_type=BonusType.MANUAL,
            amount=amount,
            week_start=week_start(day),
            date=day,
            note=note,
        )
        try:
            stored = self.repository.insert_bonus(bonus)
        except PersistenceError as e:
            self.logger.error("bonus_create_failed", driver_id=driver_id, error=str(e))
            raise
        self.bonuses = [*self.bonuses, stored]
        self.logger.info("manual_bonus_created", bonus_id=stored.bonus_id, amount=str(amount))
        return stored

    def delete_bonus(self, bonus_id: str) -> None:
        """
        Delete a bonus.

        Deleting an automatic bonus for a driver who is still eligible does
        not suppress it; the next load change brings it back.
        """
        try:
            self.repository.delete_bonus(bonus_id)
        except PersistenceError as e:
            self.logger.error("bonus_delete_failed", bonus_id=bonus_id, error=str(e))
            raise
        self.bonuses = [b for b in self.bonuses if b.bonus_id != bonus_id]
        self.logger.info("bonus_deleted", bonus_id=bonus_id)

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    @property
    def filtered_loads(self) -> list[Load]:
        return loads_in_period(self.loads, self.active_period)

    @property
    def filtered_bonuses(self) -> list[Bonus]:
        return bonuses_in_period(self.bonuses, self.active_period)

    def revenue(self) -> RevenueSummary:
        return aggregate_revenue(self.loads, self.active_period)

    def metrics(self) -> PayrollMetrics:
        period = self.active_period
        return summarize_payroll(aggregate_revenue(self.loads, period), self.bonuses, period)

    def driver_performance(self) -> list[DriverPerformance]:
        return driver_performance(self.drivers, self.loads, self.active_period)

    def top_performer(self) -> Optional[DriverPerformance]:
        return top_performer(self.driver_performance())

    def weekly_gross(self) -> list[DriverWeeklyGross]:
        """Per-day gross table for the selected week (ignores custom range)."""
        return weekly_gross_breakdown(self.drivers, self.loads, self.selected_week)

    def snapshot(self) -> SalarySnapshot:
        return salary_snapshot(self.metrics(), self.active_period)
