import bisect
import datetime
import itertools
import logging
from collections.abc import Iterator, Mapping

from dateutil import rrule

from reservations.constants import DEFAULT_MAX_OCCURRENCES, RecurrenceType, RecurrenceWeekday
from reservations.exceptions import PatternEmptyError
from reservations.recurrence import RecurrencePattern


logger = logging.getLogger(__name__)

RRULE_WEEKDAYS = {
    RecurrenceWeekday.MONDAY: rrule.MO,
    RecurrenceWeekday.TUESDAY: rrule.TU,
    RecurrenceWeekday.WEDNESDAY: rrule.WE,
    RecurrenceWeekday.THURSDAY: rrule.TH,
    RecurrenceWeekday.FRIDAY: rrule.FR,
    RecurrenceWeekday.SATURDAY: rrule.SA,
    RecurrenceWeekday.SUNDAY: rrule.SU,
}


class DateListGenerator:
    """
    Expands a RecurrencePattern into the ascending list of dates it yields.

    The expansion follows the same rule subset emitted for the external calendar
    (weeks start on Sunday), so the local occurrences and the external ones agree.
    """

    def __init__(self, max_occurrences: int = DEFAULT_MAX_OCCURRENCES):
        if max_occurrences < 1:
            raise ValueError("max_occurrences must be at least 1")
        self.max_occurrences = max_occurrences

    def build_rule(
        self,
        pattern: RecurrencePattern,
        start_date: datetime.date | None = None,
        count: int | None = None,
        until: datetime.date | None = None,
    ) -> rrule.rrule:
        kwargs: dict = {
            "dtstart": datetime.datetime.combine(
                start_date or pattern.start_date, datetime.time.min
            ),
            "interval": pattern.interval,
            "wkst": rrule.SU,
        }
        if count is not None:
            kwargs["count"] = count
        elif until is not None:
            kwargs["until"] = datetime.datetime.combine(until, datetime.time.min)

        weekdays = [RRULE_WEEKDAYS[weekday] for weekday in pattern.weekday_selectors]

        match pattern.recurrence_type:
            case RecurrenceType.DAILY:
                return rrule.rrule(rrule.DAILY, **kwargs)
            case RecurrenceType.WEEKLY:
                return rrule.rrule(rrule.WEEKLY, byweekday=weekdays, **kwargs)
            case RecurrenceType.MONTHLY_BY_DATE:
                return rrule.rrule(rrule.MONTHLY, bymonthday=pattern.day_of_month, **kwargs)
            case RecurrenceType.MONTHLY_BY_WEEKDAY:
                return rrule.rrule(
                    rrule.MONTHLY, byweekday=weekdays, bysetpos=pattern.set_position, **kwargs
                )
            case RecurrenceType.YEARLY_BY_DATE:
                return rrule.rrule(
                    rrule.YEARLY,
                    bymonth=pattern.month,
                    bymonthday=pattern.day_of_month,
                    **kwargs,
                )
            case RecurrenceType.YEARLY_BY_WEEKDAY:
                return rrule.rrule(
                    rrule.YEARLY,
                    bymonth=pattern.month,
                    byweekday=weekdays,
                    bysetpos=pattern.set_position,
                    **kwargs,
                )
        raise ValueError(f"Unsupported recurrence type {pattern.recurrence_type}")

    def iter_dates(
        self,
        pattern: RecurrencePattern,
        start_date: datetime.date | None = None,
        end_date: datetime.date | None = None,
        max_count: int | None = None,
    ) -> Iterator[datetime.date]:
        count = pattern.number_of_occurrences
        if max_count is not None:
            count = max_count if count is None else min(count, max_count)

        until_candidates = [date for date in (pattern.end_date, end_date) if date is not None]
        until = min(until_candidates) if until_candidates else None

        dates: Iterator[datetime.date] = (
            occurrence.date() for occurrence in self.build_rule(pattern, start_date, count, until)
        )
        if until is not None and count is not None:
            # COUNT and UNTIL are never combined in one rule, the earliest bound wins
            dates = itertools.takewhile(lambda date: date <= until, dates)
        return dates

    def generate(
        self,
        pattern: RecurrencePattern,
        start_date: datetime.date | None = None,
        end_date: datetime.date | None = None,
        max_count: int | None = None,
    ) -> list[datetime.date]:
        """
        Return the dates yielded by ``pattern``, starting at its start date or at
        ``start_date``, bounded by the pattern and by ``end_date``/``max_count``.

        The list is capped at ``max_occurrences``: longer series are cropped to
        their chronological prefix. Raises PatternEmptyError when no date results.
        """
        dates = list(
            itertools.islice(
                self.iter_dates(pattern, start_date, end_date, max_count),
                self.max_occurrences + 1,
            )
        )
        if len(dates) > self.max_occurrences:
            logger.warning(
                "Recurrence starting on %s yields more than %s occurrences, cropping",
                start_date or pattern.start_date,
                self.max_occurrences,
            )
            dates = dates[: self.max_occurrences]

        if not dates:
            raise PatternEmptyError()
        return dates

    def occurrence_index_of(self, pattern: RecurrencePattern, on_date: datetime.date) -> int:
        """1-based index of the first occurrence on or after ``on_date``."""
        dates = self.generate(pattern)
        return bisect.bisect_left(dates, on_date) + 1

    def generate_aligned(
        self, pattern: RecurrencePattern, fixed_dates: Mapping[int, datetime.date]
    ) -> list[datetime.date]:
        """
        Generate the dates of ``pattern`` after moving its start by whole intervals
        until the date generated at a fixed occurrence index matches the date that
        occurrence actually has.

        ``fixed_dates`` maps 1-based occurrence indexes to dates that must not move.
        Only the lowest index is used.
        """
        dates = self.generate(pattern)
        if not fixed_dates:
            return dates

        index = min(fixed_dates)
        fixed_date = fixed_dates[index]
        position = index - 1
        if position >= len(dates):
            logger.debug("Fixed occurrence %s lies beyond the generated dates", index)
            return dates

        attempts = 0
        while dates[position] > fixed_date and attempts < self.max_occurrences:
            pattern = pattern.shifted(-pattern.interval_delta)
            dates = self.generate(pattern)
            attempts += 1

        if dates[position] < fixed_date:
            shift = next(
                (
                    offset
                    for offset in range(1, len(dates) - position)
                    if dates[position + offset] >= fixed_date
                ),
                None,
            )
            if shift is not None:
                pattern = pattern.with_start(dates[shift])
                dates = self.generate(pattern)

        return dates
