"""
Load data model - represents a freight movement assigned to a driver.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field, model_validator

FULL_LOAD_COMMISSION_RATE = Decimal("0.01")
PARTIAL_LOAD_COMMISSION_RATE = Decimal("0.02")


class LoadType(str, Enum):
    """Type of load."""

    FULL = "FULL"
    PARTIAL = "PARTIAL"

    @property
    def commission_rate(self) -> Decimal:
        """Fraction of the rate paid out as dispatcher commission."""
        if self is LoadType.PARTIAL:
            return PARTIAL_LOAD_COMMISSION_RATE
        return FULL_LOAD_COMMISSION_RATE


class Load(BaseModel):
    """
    Represents a freight load.

    The identifier is typed in by the dispatcher (it is the broker's load
    number), so uniqueness is checked by the caller before create or rename.
    A PARTIAL load is split off a FULL load and points back to it through
    ``parent_load_id``.
    """

    # Identification
    load_id: str = Field(..., min_length=1, description="User supplied unique load identifier")

    # Timing
    pickup_date: date = Field(..., description="Pickup date; drives all period filtering")
    delivery_date: date = Field(..., description="Delivery date")

    # Locations
    origin: str = Field(..., description="Pickup location (City, ST)")
    destination: str = Field(..., description="Delivery location (City, ST)")

    # Financial
    rate: Decimal = Field(..., ge=0, decimal_places=2, description="Rate paid for the load (USD, cents)")
    load_type: LoadType = Field(LoadType.FULL, description="FULL or PARTIAL")

    # Assignment
    driver_id: Optional[str] = Field(None, description="Assigned driver")
    parent_load_id: Optional[str] = Field(
        None, description="FULL load this PARTIAL load was split from"
    )

    created_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="after")
    def check_no_parent_on_full_load(self) -> "Load":
        if self.load_type is LoadType.FULL and self.parent_load_id:
            raise ValueError("FULL load must not reference a parent load")
        return self

    @computed_field
    @property
    def commission(self) -> Decimal:
        """Dispatcher commission earned on this load."""
        return self.rate * self.load_type.commission_rate
