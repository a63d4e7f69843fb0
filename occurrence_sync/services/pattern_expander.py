# occurrence_sync/services/pattern_expander.py
"""
Calendar arithmetic for recurring series.

Every pattern kind is turned into an endless, strictly increasing stream of
candidate dates; `_apply_range` then cuts that stream according to the
series' range (start date, end date or occurrence count) and each surviving
date becomes an Occurrence copied from the template.
"""
from __future__ import annotations

import calendar
import logging
from datetime import date, datetime, timedelta, tzinfo
from itertools import count, islice
from typing import Iterable, Iterator, Optional

from dateutil import tz
from dateutil.relativedelta import relativedelta

from occurrence_sync.schemas.occurrence import Occurrence
from occurrence_sync.schemas.recurrence import (
    DailyPattern,
    DayOfWeek,
    MonthlyPattern,
    RangeType,
    Recurrence,
    RecurrenceRange,
    RelativeMonthlyPattern,
    RelativeYearlyPattern,
    UnsupportedPattern,
    WeekIndex,
    WeeklyPattern,
    YearlyPattern,
)

logger = logging.getLogger(__name__)


class InvalidRecurrence(ValueError):
    """
    Raised when pattern or range parameters cannot describe a series
    (non-positive interval, empty weekday set, impossible month, ...).
    """


def expand_pattern(recurrence: Recurrence, template: Occurrence) -> list[Occurrence]:
    """
    Expand `recurrence` into its ordered occurrences.

    Unbounded ranges and unsupported pattern kinds produce an empty list.
    Raises InvalidRecurrence before producing anything if the parameters
    are malformed.
    """
    pattern = recurrence.pattern
    match pattern:
        case DailyPattern():
            return expand_daily(pattern, recurrence.range, template)
        case WeeklyPattern():
            return expand_weekly(pattern, recurrence.range, template)
        case MonthlyPattern():
            return expand_monthly(pattern, recurrence.range, template)
        case YearlyPattern():
            return expand_yearly(pattern, recurrence.range, template)
        case RelativeMonthlyPattern():
            return expand_relative_monthly(pattern, recurrence.range, template)
        case RelativeYearlyPattern():
            return expand_relative_yearly(pattern, recurrence.range, template)
        case UnsupportedPattern():
            logger.warning(
                "Unsupported recurrence pattern %r for series %s; no occurrences produced",
                pattern.source_type,
                template.master_appointment_id,
            )
            return []


def expand_daily(
    pattern: DailyPattern, range_: RecurrenceRange, template: Occurrence
) -> list[Occurrence]:
    _check_interval(pattern.interval)
    _check_range(range_)

    start = range_.start_date
    step = timedelta(days=pattern.interval)
    dates = (start + step * k for k in count())
    return _build(dates, range_, template)


def expand_weekly(
    pattern: WeeklyPattern, range_: RecurrenceRange, template: Occurrence
) -> list[Occurrence]:
    _check_interval(pattern.interval)
    _check_days(pattern.days_of_week)
    _check_range(range_)

    first_weekday = pattern.first_day_of_week.weekday
    # Offsets from the first day of the week, in week order.
    offsets = sorted(
        {(day.weekday - first_weekday) % 7 for day in pattern.days_of_week}
    )

    start = range_.start_date
    week_start = start - timedelta(days=(start.weekday() - first_weekday) % 7)

    def dates() -> Iterator[date]:
        for k in count():
            anchor = week_start + timedelta(weeks=k * pattern.interval)
            for offset in offsets:
                yield anchor + timedelta(days=offset)

    return _build(dates(), range_, template)


def expand_monthly(
    pattern: MonthlyPattern, range_: RecurrenceRange, template: Occurrence
) -> list[Occurrence]:
    _check_interval(pattern.interval)
    _check_day_of_month(pattern.day_of_month)
    _check_range(range_)

    dates = (
        clamp_day(month.year, month.month, pattern.day_of_month)
        for month in _month_starts(range_.start_date, pattern.interval)
    )
    return _build(dates, range_, template)


def expand_yearly(
    pattern: YearlyPattern, range_: RecurrenceRange, template: Occurrence
) -> list[Occurrence]:
    _check_interval(pattern.interval)
    _check_month(pattern.month)
    _check_day_of_month(pattern.day_of_month)
    _check_range(range_)

    first_year = range_.start_date.year
    dates = (
        clamp_day(first_year + k * pattern.interval, pattern.month, pattern.day_of_month)
        for k in count()
    )
    return _build(dates, range_, template)


def expand_relative_monthly(
    pattern: RelativeMonthlyPattern, range_: RecurrenceRange, template: Occurrence
) -> list[Occurrence]:
    _check_interval(pattern.interval)
    _check_days(pattern.days_of_week)
    _check_range(range_)

    dates = (
        nth_day_of_month(month.year, month.month, pattern.days_of_week, pattern.index)
        for month in _month_starts(range_.start_date, pattern.interval)
    )
    return _build(dates, range_, template)


def expand_relative_yearly(
    pattern: RelativeYearlyPattern, range_: RecurrenceRange, template: Occurrence
) -> list[Occurrence]:
    _check_interval(pattern.interval)
    _check_month(pattern.month)
    _check_days(pattern.days_of_week)
    _check_range(range_)

    first_year = range_.start_date.year
    dates = (
        nth_day_of_month(
            first_year + k * pattern.interval,
            pattern.month,
            pattern.days_of_week,
            pattern.index,
        )
        for k in count()
    )
    return _build(dates, range_, template)


# --- calendar helpers -------------------------------------------------------


def clamp_day(year: int, month: int, day: int) -> date:
    """
    `day` of the given month, clamped to the month's last day when the
    month is shorter (31 -> 30 in April, 29/30/31 -> 28 in a common February).
    """
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def nth_day_of_month(
    year: int, month: int, days_of_week: Iterable[DayOfWeek], index: WeekIndex
) -> date:
    """
    The first/second/third/fourth/last day of the month falling on any of
    `days_of_week`.
    """
    weekdays = {day.weekday for day in days_of_week}
    last_day = calendar.monthrange(year, month)[1]
    matching = [
        date(year, month, day)
        for day in range(1, last_day + 1)
        if date(year, month, day).weekday() in weekdays
    ]
    # Every weekday occurs at least four times in any month, so positions
    # 0..3 and -1 always exist.
    return matching[index.position]


def _month_starts(start: date, interval: int) -> Iterator[date]:
    first = start.replace(day=1)
    for k in count():
        yield first + relativedelta(months=k * interval)


# --- range handling ---------------------------------------------------------


def _apply_range(dates: Iterator[date], range_: RecurrenceRange) -> Iterator[date]:
    """
    Cut an increasing stream of candidate dates down to the series range.

    Candidates before the range start date are skipped and do not count
    toward a numbered range.
    """
    in_range = (d for d in dates if d >= range_.start_date)

    if range_.type == RangeType.NUMBERED:
        return islice(in_range, range_.number_of_occurrences)

    if range_.type == RangeType.END_DATE:
        end_date = range_.end_date

        def until_end() -> Iterator[date]:
            for d in in_range:
                if d > end_date:
                    return
                yield d

        return until_end()

    return iter(())


def _build(
    dates: Iterator[date], range_: RecurrenceRange, template: Occurrence
) -> list[Occurrence]:
    zone = series_zone(range_.recurrence_time_zone, template.start)
    duration = template.duration

    occurrences = []
    for day in _apply_range(dates, range_):
        start = scheduled_start(day, template.start, zone)
        occurrences.append(
            template.model_copy(
                update={"start": start, "end": start + duration, "original_start": start}
            )
        )
    return occurrences


# --- time zones -------------------------------------------------------------


def series_zone(time_zone: Optional[str], first_start: datetime) -> Optional[tzinfo]:
    """
    Zone holding the series' wall-clock time: the named recurrence zone,
    or the first start's own zone when no (known) name is given.
    """
    if time_zone:
        zone = tz.gettz(time_zone)
        if zone is not None:
            return zone
        logger.warning(
            "Unknown recurrence time zone %r; expanding in %s", time_zone, first_start.tzinfo
        )
    return first_start.tzinfo


def scheduled_start(day: date, first_start: datetime, zone: Optional[tzinfo]) -> datetime:
    """
    Start of the occurrence falling on local `day`.

    The wall-clock time of `first_start` in `zone` is kept on every day
    (so 09:00 New York stays 09:00 across DST changes) and the result is
    expressed in `first_start`'s zone.
    """
    if zone is None or first_start.tzinfo is None:
        return datetime.combine(day, first_start.time(), tzinfo=first_start.tzinfo)
    local_time = first_start.astimezone(zone).time()
    return datetime.combine(day, local_time, tzinfo=zone).astimezone(first_start.tzinfo)

# --- validation -------------------------------------------------------------


def _check_interval(interval: int) -> None:
    if interval < 1:
        raise InvalidRecurrence(f"interval must be a positive integer, got {interval}")


def _check_days(days_of_week: list[DayOfWeek]) -> None:
    if not days_of_week:
        raise InvalidRecurrence("days_of_week must name at least one weekday")


def _check_day_of_month(day_of_month: int) -> None:
    if not 1 <= day_of_month <= 31:
        raise InvalidRecurrence(f"day_of_month must be within 1..31, got {day_of_month}")


def _check_month(month: int) -> None:
    if not 1 <= month <= 12:
        raise InvalidRecurrence(f"month must be within 1..12, got {month}")


def _check_range(range_: RecurrenceRange) -> None:
    if range_.type == RangeType.NUMBERED and (
        range_.number_of_occurrences is None or range_.number_of_occurrences < 1
    ):
        raise InvalidRecurrence(
            "numbered range requires a positive number_of_occurrences, "
            f"got {range_.number_of_occurrences}"
        )
    if range_.type == RangeType.END_DATE and range_.end_date is None:
        raise InvalidRecurrence("endDate range requires an end_date")
