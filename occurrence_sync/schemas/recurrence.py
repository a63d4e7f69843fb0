# occurrence_sync/schemas/recurrence.py
from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class DayOfWeek(str, Enum):
    """
    Weekday names as used by Microsoft Graph recurrence patterns.
    """

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @property
    def weekday(self) -> int:
        """Python weekday number (Monday == 0)."""
        return _WEEKDAY_NUMBERS[self]


_WEEKDAY_NUMBERS = {day: number for number, day in enumerate(DayOfWeek)}


class WeekIndex(str, Enum):
    """
    Which matching day of the month a relative pattern selects.
    """

    FIRST = "first"
    SECOND = "second"
    THIRD = "third"
    FOURTH = "fourth"
    LAST = "last"

    @property
    def position(self) -> int:
        """Index into the month's list of matching days (-1 for last)."""
        return _INDEX_POSITIONS[self]


_INDEX_POSITIONS = {
    WeekIndex.FIRST: 0,
    WeekIndex.SECOND: 1,
    WeekIndex.THIRD: 2,
    WeekIndex.FOURTH: 3,
    WeekIndex.LAST: -1,
}


class RangeType(str, Enum):
    END_DATE = "endDate"
    NUMBERED = "numbered"
    NO_END = "noEnd"


class RecurrenceRange(BaseModel):
    """
    Where a series starts and how it terminates.
    """

    type: RangeType = Field(..., description="endDate / numbered / noEnd.")
    start_date: date = Field(..., description="First date the pattern may produce.")
    end_date: date | None = Field(
        None, description="Last date (inclusive) for endDate ranges."
    )
    number_of_occurrences: int | None = Field(
        None, description="Exact number of occurrences for numbered ranges."
    )
    recurrence_time_zone: str | None = Field(
        None,
        description=(
            "IANA zone the range dates and the series' wall-clock time are "
            "expressed in. When unset, the template start's own zone is used."
        ),
    )

    @property
    def has_end(self) -> bool:
        return self.type != RangeType.NO_END


class DailyPattern(BaseModel):
    kind: Literal["daily"] = "daily"
    interval: int = 1


class WeeklyPattern(BaseModel):
    kind: Literal["weekly"] = "weekly"
    interval: int = 1
    days_of_week: list[DayOfWeek] = Field(default_factory=list)
    first_day_of_week: DayOfWeek = DayOfWeek.SUNDAY


class MonthlyPattern(BaseModel):
    """The Nth day of every `interval` months."""

    kind: Literal["absoluteMonthly"] = "absoluteMonthly"
    interval: int = 1
    day_of_month: int


class YearlyPattern(BaseModel):
    kind: Literal["absoluteYearly"] = "absoluteYearly"
    interval: int = 1
    month: int
    day_of_month: int


class RelativeMonthlyPattern(BaseModel):
    """
    The first/second/third/fourth/last matching day of every `interval`
    months. Listing several weekdays selects among all days that fall on
    any of them (Monday..Friday gives "the Nth weekday").
    """

    kind: Literal["relativeMonthly"] = "relativeMonthly"
    interval: int = 1
    days_of_week: list[DayOfWeek] = Field(default_factory=list)
    index: WeekIndex = WeekIndex.FIRST


class RelativeYearlyPattern(BaseModel):
    kind: Literal["relativeYearly"] = "relativeYearly"
    interval: int = 1
    month: int
    days_of_week: list[DayOfWeek] = Field(default_factory=list)
    index: WeekIndex = WeekIndex.FIRST


class UnsupportedPattern(BaseModel):
    """
    Placeholder for pattern kinds the expander does not handle
    (e.g. Hebrew/Hijri calendars or regeneration patterns).
    """

    kind: Literal["unsupported"] = "unsupported"
    source_type: str | None = Field(
        None, description="Pattern type name as reported by the server."
    )


RecurrencePattern = Annotated[
    Union[
        DailyPattern,
        WeeklyPattern,
        MonthlyPattern,
        YearlyPattern,
        RelativeMonthlyPattern,
        RelativeYearlyPattern,
        UnsupportedPattern,
    ],
    Field(discriminator="kind"),
]


class Recurrence(BaseModel):
    """
    A repetition rule: cadence (`pattern`) plus termination (`range`).
    """

    pattern: RecurrencePattern
    range: RecurrenceRange

    @property
    def has_end(self) -> bool:
        return self.range.has_end
