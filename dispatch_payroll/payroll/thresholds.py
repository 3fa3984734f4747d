"""Weekly bonus threshold tables, one per driver classification."""

from decimal import Decimal
from types import MappingProxyType

from dispatch_payroll.data.models import BonusTier, DriverType


def _tiers(*pairs: tuple[int, int]) -> tuple[BonusTier, ...]:
    return tuple(BonusTier(threshold=Decimal(t), bonus=Decimal(b)) for t, b in pairs)


# Ascending by threshold.
OWNER_OPERATOR_THRESHOLDS = _tiers(
    (13000, 50),
    (14000, 75),
    (15000, 100),
)

COMPANY_DRIVER_THRESHOLDS = _tiers(
    (10000, 30),
    (11000, 50),
    (12000, 70),
    (13000, 90),
    (14000, 110),
    (15000, 150),
)

THRESHOLD_TABLES = MappingProxyType(
    {
        DriverType.OWNER_OPERATOR: OWNER_OPERATOR_THRESHOLDS,
        DriverType.COMPANY_DRIVER: COMPANY_DRIVER_THRESHOLDS,
    }
)


def get_thresholds(driver_type: DriverType | str) -> tuple[BonusTier, ...]:
    """
    Get the threshold table for a driver classification.

    Args:
        driver_type: DriverType or its string value

    Returns:
        Tiers in ascending threshold order

    Raises:
        ValueError: If the classification is unknown
    """
    return THRESHOLD_TABLES[DriverType(driver_type)]
