"""
Store contract for drivers, loads and bonuses.

The payroll engine never talks to a database directly; it goes through a
DispatchRepository. Every mutating call either applies fully or raises
PersistenceError.
"""

import threading
import uuid
from abc import ABC, abstractmethod
from datetime import date
from typing import Any

from dispatch_payroll.core.errors import NotFoundError, PersistenceError
from dispatch_payroll.data.models import Bonus, BonusType, Driver, Load


def new_record_id() -> str:
    """Generate an opaque identifier for a store-owned record."""
    return uuid.uuid4().hex


class DispatchRepository(ABC):
    """
    Abstract store for the dispatcher's records.

    Loads are keyed by their user supplied ``load_id``; drivers and bonuses
    by opaque identifiers.
    """

    # Loads
    @abstractmethod
    def list_loads(self) -> list[Load]:
        """Return every load."""

    @abstractmethod
    def insert_load(self, load: Load) -> Load:
        """Persist a new load and return the stored copy."""

    @abstractmethod
    def update_load(self, load_id: str, fields: dict[str, Any]) -> None:
        """
        Apply a partial update; ``fields`` may rename the load.

        A rename also repoints PARTIAL loads whose parent is the old id.
        """

    @abstractmethod
    def delete_load(self, load_id: str) -> None:
        """Remove a load."""

    # Drivers
    @abstractmethod
    def list_drivers(self) -> list[Driver]:
        """Return every driver."""

    @abstractmethod
    def insert_driver(self, driver: Driver) -> Driver:
        """Persist a new driver and return the stored copy."""

    @abstractmethod
    def update_driver(self, driver_id: str, fields: dict[str, Any]) -> None:
        """Apply a partial update to a driver."""

    @abstractmethod
    def delete_driver(self, driver_id: str) -> None:
        """Remove a driver. Loads and bonuses referencing it are kept."""

    # Bonuses
    @abstractmethod
    def list_bonuses(self) -> list[Bonus]:
        """Return every bonus, manual and automatic."""

    @abstractmethod
    def insert_bonus(self, bonus: Bonus) -> Bonus:
        """Persist a new bonus and return the stored copy."""

    @abstractmethod
    def update_bonus(self, bonus_id: str, fields: dict[str, Any]) -> None:
        """Apply a partial update to a bonus."""

    @abstractmethod
    def delete_bonus(self, bonus_id: str) -> None:
        """Remove a bonus."""

    def list_automatic_bonuses(self, week_start: date) -> list[Bonus]:
        """
        Return automatic bonuses recorded for the given week.

        Stores that can filter server-side should override this.

        Args:
            week_start: Monday of the week (exact match)
        """
        return [
            b
            for b in self.list_bonuses()
            if b.bonus_type is BonusType.AUTOMATIC and b.week_start == week_start
        ]


class InMemoryRepository(DispatchRepository):
    """
    Process-local store.

    Hands out copies so callers cannot mutate stored records in place, the
    same way a remote store would behave. Automatic bonuses are unique per
    (driver, week) like the SQL store's partial unique index.
    """

    def __init__(
        self,
        drivers: list[Driver] | None = None,
        loads: list[Load] | None = None,
        bonuses: list[Bonus] | None = None,
    ) -> None:
        self._lock = threading.RLock()
        self._drivers: dict[str, Driver] = {d.driver_id: d.model_copy() for d in drivers or []}
        self._loads: dict[str, Load] = {l.load_id: l.model_copy() for l in loads or []}
        self._bonuses: dict[str, Bonus] = {b.bonus_id: b.model_copy() for b in bonuses or []}

    # Loads
    def list_loads(self) -> list[Load]:
        with self._lock:
            return [l.model_copy() for l in self._loads.values()]

    def insert_load(self, load: Load) -> Load:
        with self._lock:
            if load.load_id in self._loads:
                raise PersistenceError("insert", "load", f"duplicate load_id {load.load_id!r}")
            self._loads[load.load_id] = load.model_copy()
            return load.model_copy()

    def update_load(self, load_id: str, fields: dict[str, Any]) -> None:
        with self._lock:
            current = self._loads.get(load_id)
            if current is None:
                raise NotFoundError("update", "load", load_id)
            updated = _apply(Load, current, fields, "load")
            if updated.load_id != load_id and updated.load_id in self._loads:
                raise PersistenceError("update", "load", f"duplicate load_id {updated.load_id!r}")
            del self._loads[load_id]
            self._loads[updated.load_id] = updated
            if updated.load_id != load_id:
                for child_id, child in self._loads.items():
                    if child.parent_load_id == load_id:
                        self._loads[child_id] = child.model_copy(
                            update={"parent_load_id": updated.load_id}
                        )

    def delete_load(self, load_id: str) -> None:
        with self._lock:
            if self._loads.pop(load_id, None) is None:
                raise NotFoundError("delete", "load", load_id)

    # Drivers
    def list_drivers(self) -> list[Driver]:
        with self._lock:
            return [d.model_copy() for d in self._drivers.values()]

    def insert_driver(self, driver: Driver) -> Driver:
        with self._lock:
            if driver.driver_id in self._drivers:
                raise PersistenceError("insert", "driver", f"duplicate id {driver.driver_id!r}")
            self._drivers[driver.driver_id] = driver.model_copy()
            return driver.model_copy()

    def update_driver(self, driver_id: str, fields: dict[str, Any]) -> None:
        with self._lock:
            current = self._drivers.get(driver_id)
            if current is None:
                raise NotFoundError("update", "driver", driver_id)
            self._drivers[driver_id] = _apply(Driver, current, fields, "driver")

    def delete_driver(self, driver_id: str) -> None:
        with self._lock:
            if self._drivers.pop(driver_id, None) is None:
                raise NotFoundError("delete", "driver", driver_id)

    # Bonuses
    def list_bonuses(self) -> list[Bonus]:
        with self._lock:
            return [b.model_copy() for b in self._bonuses.values()]

    def insert_bonus(self, bonus: Bonus) -> Bonus:
        with self._lock:
            if bonus.bonus_id in self._bonuses:
                raise PersistenceError("insert", "bonus", f"duplicate id {bonus.bonus_id!r}")
            if bonus.is_automatic and any(
                b.is_automatic
                and b.driver_id == bonus.driver_id
                and b.week_start == bonus.week_start
                for b in self._bonuses.values()
            ):
                raise PersistenceError(
                    "insert",
                    "bonus",
                    f"automatic bonus already exists for driver {bonus.driver_id!r} "
                    f"week {bonus.week_start.isoformat()}",
                )
            self._bonuses[bonus.bonus_id] = bonus.model_copy()
            return bonus.model_copy()

    def update_bonus(self, bonus_id: str, fields: dict[str, Any]) -> None:
        with self._lock:
            current = self._bonuses.get(bonus_id)
            if current is None:
                raise NotFoundError("update", "bonus", bonus_id)
            self._bonuses[bonus_id] = _apply(Bonus, current, fields, "bonus")

    def delete_bonus(self, bonus_id: str) -> None:
        with self._lock:
            if self._bonuses.pop(bonus_id, None) is None:
                raise NotFoundError("delete", "bonus", bonus_id)


def _apply(model: type, current: Any, fields: dict[str, Any], entity: str) -> Any:
    """Validate ``current`` merged with ``fields`` as a new ``model`` instance."""
    data = current.model_dump(exclude=set(type(current).model_computed_fields))
    data.update(fields)
    try:
        return model.model_validate(data)
    except ValueError as e:
        raise PersistenceError("update", entity, str(e)) from e
