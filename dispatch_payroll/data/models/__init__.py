"""
Pydantic data models for the payroll engine.

Core models:
- Driver: Fleet driver and classification
- Load: Freight load with rate and FULL/PARTIAL type
- Bonus: Automatic or manual weekly bonus
- BonusTier: Threshold table entry
"""

from .bonus import Bonus, BonusTier, BonusType
from .driver import Driver, DriverStatus, DriverType
from .load import (
    FULL_LOAD_COMMISSION_RATE,
    PARTIAL_LOAD_COMMISSION_RATE,
    Load,
    LoadType,
)

__all__ = [
    "Bonus",
    "BonusTier",
    "BonusType",
    "Driver",
    "DriverStatus",
    "DriverType",
    "Load",
    "LoadType",
    "FULL_LOAD_COMMISSION_RATE",
    "PARTIAL_LOAD_COMMISSION_RATE",
]
