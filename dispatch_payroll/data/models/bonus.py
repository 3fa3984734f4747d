"""
Bonus data models.

Automatic bonuses are derived from weekly gross and rewritten by the
reconciler; manual bonuses are entered by a dispatcher and only ever removed
by an explicit delete.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BonusType(str, Enum):
    """Origin of a bonus record."""

    AUTOMATIC = "automatic"
    MANUAL = "manual"


class BonusTier(BaseModel):
    """A (threshold, bonus) pair from a threshold table."""

    model_config = ConfigDict(frozen=True)

    threshold: Decimal
    bonus: Decimal


class Bonus(BaseModel):
    """A bonus paid for a given week."""

    bonus_id: str = Field(..., description="Bonus identifier")
    driver_id: Optional[str] = Field(None, description="Driver; None for company-wide bonuses")
    bonus_type: BonusType = Field(BonusType.MANUAL)
    amount: Decimal = Field(..., decimal_places=2, description="Bonus amount (USD, cents)")
    week_start: dt.date = Field(..., description="Monday of the week the bonus applies to")
    date: dt.date = Field(..., description="Date the bonus was recorded")
    note: str = Field("", description="Free-text note")
    created_at: dt.datetime = Field(default_factory=dt.datetime.now)

    @property
    def is_automatic(self) -> bool:
        return self.bonus_type is BonusType.AUTOMATIC
