"""
Driver data model.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class DriverType(str, Enum):
    """Driver classification; selects the bonus threshold table."""

    COMPANY_DRIVER = "company_driver"
    OWNER_OPERATOR = "owner_operator"

    @property
    def label(self) -> str:
        return "Owner-operator" if self is DriverType.OWNER_OPERATOR else "Company driver"


class DriverStatus(str, Enum):
    """Driver activity status."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class Driver(BaseModel):
    """A driver in the fleet."""

    driver_id: str = Field(..., min_length=1, description="Driver identifier")
    driver_name: str = Field(..., min_length=1, description="Display name")
    driver_type: DriverType = Field(DriverType.COMPANY_DRIVER)
    truck_number: Optional[str] = Field(None, description="Truck unit number")
    status: DriverStatus = Field(DriverStatus.ACTIVE)
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def is_active(self) -> bool:
        return self.status is DriverStatus.ACTIVE
