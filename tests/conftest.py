"""Shared fixtures for the payroll engine tests."""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest
import structlog

from dispatch_payroll.data.models import Driver, DriverStatus, DriverType, Load, LoadType
from dispatch_payroll.data.repository import InMemoryRepository
from dispatch_payroll.payroll.reconciler import AutomaticBonusReconciler
from dispatch_payroll.services.state import DispatcherState

# Monday
WEEK_START = date(2025, 1, 6)
TODAY = date(2025, 1, 8)


def make_load(
    load_id: str,
    rate,
    driver_id: str | None = "d1",
    pickup: date = WEEK_START,
    load_type: LoadType = LoadType.FULL,
    parent_load_id: str | None = None,
) -> Load:
    return Load(
        load_id=load_id,
        pickup_date=pickup,
        delivery_date=pickup + timedelta(days=1),
        origin="Dallas, TX",
        destination="Houston, TX",
        rate=Decimal(str(rate)),
        load_type=load_type,
        driver_id=driver_id,
        parent_load_id=parent_load_id,
        created_at=datetime(2025, 1, 1, 8, 0),
    )


@pytest.fixture(autouse=True)
def _quiet_logging():
    structlog.configure(
        processors=[structlog.processors.KeyValueRenderer()],
        wrapper_class=structlog.make_filtering_bound_logger(50),
    )
    yield
    structlog.reset_defaults()


@pytest.fixture
def drivers() -> list[Driver]:
    return [
        Driver(driver_id="d1", driver_name="Alex Johnson", driver_type=DriverType.COMPANY_DRIVER, truck_number="102"),
        Driver(driver_id="d2", driver_name="Maria Garcia", driver_type=DriverType.OWNER_OPERATOR, truck_number="101"),
        Driver(driver_id="d3", driver_name="James Wilson", driver_type=DriverType.COMPANY_DRIVER),
        Driver(
            driver_id="d5",
            driver_name="Michael Brown",
            driver_type=DriverType.COMPANY_DRIVER,
            status=DriverStatus.INACTIVE,
        ),
    ]


@pytest.fixture
def repository(drivers) -> InMemoryRepository:
    return InMemoryRepository(drivers=drivers)


@pytest.fixture
def reconciler(repository) -> AutomaticBonusReconciler:
    return AutomaticBonusReconciler(repository, clock=lambda: TODAY)


@pytest.fixture
def state(repository) -> DispatcherState:
    s = DispatcherState(repository, clock=lambda: TODAY)
    s.refresh()
    return s
