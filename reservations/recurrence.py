"""Recurrence pattern value object.

``RecurrencePattern`` is a tagged variant: ``recurrence_type`` selects which of
the selector fields are meaningful. Patterns are validated on construction and
are immutable; the ``with_*`` helpers return adjusted copies.
"""

import dataclasses
import datetime
from dataclasses import dataclass
from typing import Any

from dateutil.relativedelta import relativedelta

from reservations.constants import (
    SPECIAL_DAY_WEEKDAYS,
    RecurrenceType,
    RecurrenceWeekday,
    SpecialDay,
    WeekOfMonth,
)
from reservations.exceptions import InvalidRecurrenceError


WEEKDAY_ORDER = tuple(RecurrenceWeekday)

BY_WEEKDAY_TYPES = (RecurrenceType.MONTHLY_BY_WEEKDAY, RecurrenceType.YEARLY_BY_WEEKDAY)
YEARLY_TYPES = (RecurrenceType.YEARLY_BY_DATE, RecurrenceType.YEARLY_BY_WEEKDAY)


def _parse_weekday_selector(value: str) -> RecurrenceWeekday | SpecialDay:
    if value in RecurrenceWeekday.values:
        return RecurrenceWeekday(value)
    if value in SpecialDay.values:
        return SpecialDay(value)
    raise InvalidRecurrenceError(f"Unknown day of the week '{value}'.")


@dataclass(frozen=True)
class RecurrencePattern:
    recurrence_type: RecurrenceType
    start_date: datetime.date
    interval: int = 1
    end_date: datetime.date | None = None
    number_of_occurrences: int | None = None
    days_of_week: tuple[RecurrenceWeekday, ...] = ()
    day_of_month: int | None = None
    week_of_month: int | None = None
    day_of_the_week: RecurrenceWeekday | SpecialDay | None = None
    month: int | None = None

    def __post_init__(self):
        try:
            recurrence_type = RecurrenceType(self.recurrence_type)
            days_of_week = {RecurrenceWeekday(day) for day in self.days_of_week}
        except ValueError as e:
            raise InvalidRecurrenceError(str(e)) from e

        object.__setattr__(self, "recurrence_type", recurrence_type)
        object.__setattr__(
            self, "days_of_week", tuple(day for day in WEEKDAY_ORDER if day in days_of_week)
        )
        if self.day_of_the_week is not None:
            object.__setattr__(
                self, "day_of_the_week", _parse_weekday_selector(self.day_of_the_week)
            )
        self._validate()

    def _validate(self) -> None:
        if self.interval is None or self.interval < 1:
            raise InvalidRecurrenceError("The recurrence interval must be at least 1.")
        if self.end_date is not None and self.end_date < self.start_date:
            raise InvalidRecurrenceError("The recurrence ends before it starts.")
        if self.number_of_occurrences is not None and self.number_of_occurrences < 1:
            raise InvalidRecurrenceError("The number of occurrences must be at least 1.")

        match self.recurrence_type:
            case RecurrenceType.DAILY:
                pass
            case RecurrenceType.WEEKLY:
                if not self.days_of_week:
                    raise InvalidRecurrenceError("A weekly recurrence needs at least one day.")
            case RecurrenceType.MONTHLY_BY_DATE | RecurrenceType.YEARLY_BY_DATE:
                if self.day_of_month is None or not 1 <= self.day_of_month <= 31:
                    raise InvalidRecurrenceError("The day of the month must be between 1 and 31.")
            case RecurrenceType.MONTHLY_BY_WEEKDAY | RecurrenceType.YEARLY_BY_WEEKDAY:
                if self.week_of_month not in WeekOfMonth.values:
                    raise InvalidRecurrenceError("The week of the month must be between 1 and 5.")
                if self.day_of_the_week is None:
                    raise InvalidRecurrenceError("The day of the week is required.")
            case _:
                raise InvalidRecurrenceError(f"Unsupported recurrence {self.recurrence_type}.")

        if self.recurrence_type in YEARLY_TYPES and (
            self.month is None or not 1 <= self.month <= 12
        ):
            raise InvalidRecurrenceError("The month must be between 1 and 12.")

    @property
    def interval_delta(self) -> relativedelta:
        """One whole pattern interval, used to move the start date."""
        match self.recurrence_type:
            case RecurrenceType.DAILY:
                return relativedelta(days=self.interval)
            case RecurrenceType.WEEKLY:
                return relativedelta(weeks=self.interval)
            case RecurrenceType.MONTHLY_BY_DATE | RecurrenceType.MONTHLY_BY_WEEKDAY:
                return relativedelta(months=self.interval)
            case RecurrenceType.YEARLY_BY_DATE | RecurrenceType.YEARLY_BY_WEEKDAY:
                return relativedelta(years=self.interval)
        raise InvalidRecurrenceError(f"Unsupported recurrence {self.recurrence_type}.")

    @property
    def weekday_selectors(self) -> tuple[RecurrenceWeekday, ...]:
        if self.recurrence_type == RecurrenceType.WEEKLY:
            return self.days_of_week
        if self.recurrence_type in BY_WEEKDAY_TYPES:
            if isinstance(self.day_of_the_week, SpecialDay):
                return SPECIAL_DAY_WEEKDAYS[self.day_of_the_week]
            return (RecurrenceWeekday(self.day_of_the_week),)
        return ()

    @property
    def set_position(self) -> int | None:
        """BYSETPOS value for Nth-weekday patterns; the 5th week means the last one."""
        if self.recurrence_type not in BY_WEEKDAY_TYPES:
            return None
        if self.week_of_month == WeekOfMonth.LAST:
            return -1
        return self.week_of_month

    def shifted(self, delta: relativedelta) -> "RecurrencePattern":
        return self.with_start(self.start_date + delta)

    def with_start(self, start_date: datetime.date) -> "RecurrencePattern":
        end_date = self.end_date
        if end_date is not None and end_date < start_date:
            end_date = start_date
        return dataclasses.replace(self, start_date=start_date, end_date=end_date)

    def with_occurrence_count(self, number_of_occurrences: int) -> "RecurrencePattern":
        return dataclasses.replace(
            self, number_of_occurrences=number_of_occurrences, end_date=None
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "recurrence_type": str(self.recurrence_type),
            "start_date": self.start_date.isoformat(),
            "interval": self.interval,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "number_of_occurrences": self.number_of_occurrences,
            "days_of_week": [str(day) for day in self.days_of_week],
            "day_of_month": self.day_of_month,
            "week_of_month": self.week_of_month,
            "day_of_the_week": str(self.day_of_the_week) if self.day_of_the_week else None,
            "month": self.month,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RecurrencePattern":
        try:
            end_date = data.get("end_date")
            return cls(
                recurrence_type=data["recurrence_type"],
                start_date=datetime.date.fromisoformat(data["start_date"]),
                interval=data.get("interval") or 1,
                end_date=datetime.date.fromisoformat(end_date) if end_date else None,
                number_of_occurrences=data.get("number_of_occurrences"),
                days_of_week=tuple(data.get("days_of_week") or ()),
                day_of_month=data.get("day_of_month"),
                week_of_month=data.get("week_of_month"),
                day_of_the_week=data.get("day_of_the_week"),
                month=data.get("month"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidRecurrenceError(f"Invalid stored recurrence pattern: {e}") from e
