"""
Period resolution.

Turns the dashboard's time selection (a Monday-aligned week, optionally
overridden by a custom date range) into one inclusive date interval.
"""

from datetime import date, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator


class PeriodType(str, Enum):
    """Which selector produced the active period."""

    WEEK = "week"
    CUSTOM_RANGE = "customRange"


class DateRange(BaseModel):
    """Inclusive date interval."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @model_validator(mode="after")
    def check_ordered(self) -> "DateRange":
        if self.end < self.start:
            raise ValueError(f"end {self.end} is before start {self.start}")
        return self

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def days(self) -> list[date]:
        return [self.start + timedelta(days=i) for i in range((self.end - self.start).days + 1)]


class WeekRange(DateRange):
    """A Monday through Sunday week."""

    @model_validator(mode="after")
    def check_monday_aligned(self) -> "WeekRange":
        if self.start.weekday() != 0 or self.end != self.start + timedelta(days=6):
            raise ValueError(f"{self.start}..{self.end} is not a Monday-Sunday week")
        return self

    @property
    def label(self) -> str:
        """Human label, e.g. ``Jan 6 - Jan 12, 2025``."""
        return (
            f"{self.start.strftime('%b')} {self.start.day} - "
            f"{self.end.strftime('%b')} {self.end.day}, {self.end.year}"
        )


class ActivePeriod(DateRange):
    """The interval the dashboard is currently showing."""

    period_type: PeriodType = PeriodType.WEEK


def week_start(day: date) -> date:
    """Monday on or before ``day``."""
    return day - timedelta(days=day.weekday())


def week_of(day: date) -> WeekRange:
    """The Monday-Sunday week containing ``day``."""
    start = week_start(day)
    return WeekRange(start=start, end=start + timedelta(days=6))


def current_week(today: Optional[date] = None) -> WeekRange:
    return week_of(today or date.today())


def shift_week(week: WeekRange, weeks: int) -> WeekRange:
    """Move ``weeks`` forward (negative for back)."""
    return week_of(week.start + timedelta(weeks=weeks))


def resolve_period(
    selected_week: WeekRange,
    custom_range: Optional[DateRange] = None,
    use_custom_range: bool = False,
) -> ActivePeriod:
    """
    Resolve the active period.

    The custom range wins only when the flag is on and a range is set; a
    missing range with the flag on falls back to the selected week.

    Args:
        selected_week: Week chosen in the week picker
        custom_range: Optional explicit range
        use_custom_range: Whether the custom range selector is active

    Returns:
        ActivePeriod with inclusive start/end
    """
    if use_custom_range and custom_range is not None:
        return ActivePeriod(
            start=custom_range.start,
            end=custom_range.end,
            period_type=PeriodType.CUSTOM_RANGE,
        )
    return ActivePeriod(start=selected_week.start, end=selected_week.end)
