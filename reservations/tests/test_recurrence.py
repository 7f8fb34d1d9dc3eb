import datetime

import pytest
from dateutil.relativedelta import relativedelta

from reservations.constants import RecurrenceType, RecurrenceWeekday, SpecialDay, WeekOfMonth
from reservations.exceptions import InvalidRecurrenceError
from reservations.recurrence import RecurrencePattern


def test_days_of_week_are_normalized():
    pattern = RecurrencePattern(
        recurrence_type="weekly",
        start_date=datetime.date(2024, 1, 1),
        days_of_week=("WE", "MO", "WE"),
    )

    assert pattern.recurrence_type == RecurrenceType.WEEKLY
    assert pattern.days_of_week == (RecurrenceWeekday.MONDAY, RecurrenceWeekday.WEDNESDAY)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"recurrence_type": RecurrenceType.DAILY, "interval": 0},
        {"recurrence_type": RecurrenceType.DAILY, "end_date": datetime.date(2023, 12, 31)},
        {"recurrence_type": RecurrenceType.DAILY, "number_of_occurrences": 0},
        {"recurrence_type": RecurrenceType.WEEKLY},
        {"recurrence_type": RecurrenceType.MONTHLY_BY_DATE, "day_of_month": 32},
        {
            "recurrence_type": RecurrenceType.MONTHLY_BY_WEEKDAY,
            "week_of_month": 6,
            "day_of_the_week": RecurrenceWeekday.MONDAY,
        },
        {"recurrence_type": RecurrenceType.MONTHLY_BY_WEEKDAY, "week_of_month": 1},
        {"recurrence_type": RecurrenceType.YEARLY_BY_DATE, "day_of_month": 1, "month": 13},
        {"recurrence_type": "hourly"},
        {"recurrence_type": RecurrenceType.WEEKLY, "days_of_week": ("XX",)},
    ],
)
def test_invalid_patterns_are_rejected(kwargs):
    with pytest.raises(InvalidRecurrenceError):
        RecurrencePattern(start_date=datetime.date(2024, 1, 1), **kwargs)


def test_special_day_selectors():
    pattern = RecurrencePattern(
        recurrence_type=RecurrenceType.MONTHLY_BY_WEEKDAY,
        start_date=datetime.date(2024, 1, 1),
        week_of_month=WeekOfMonth.LAST,
        day_of_the_week="weekendday",
    )

    assert pattern.day_of_the_week == SpecialDay.WEEKEND_DAY
    assert pattern.weekday_selectors == (RecurrenceWeekday.SATURDAY, RecurrenceWeekday.SUNDAY)
    assert pattern.set_position == -1


def test_with_start_keeps_end_date_after_start(weekly_pattern):
    pattern = RecurrencePattern(
        recurrence_type=RecurrenceType.DAILY,
        start_date=datetime.date(2024, 1, 1),
        end_date=datetime.date(2024, 1, 5),
    )

    assert pattern.with_start(datetime.date(2024, 1, 10)).end_date == datetime.date(2024, 1, 10)
    assert weekly_pattern.shifted(relativedelta(weeks=1)).start_date == datetime.date(2024, 1, 8)


def test_with_occurrence_count_clears_end_date():
    pattern = RecurrencePattern(
        recurrence_type=RecurrenceType.DAILY,
        start_date=datetime.date(2024, 1, 1),
        end_date=datetime.date(2024, 1, 5),
    ).with_occurrence_count(2)

    assert pattern.end_date is None
    assert pattern.number_of_occurrences == 2


def test_to_dict_and_from_dict(weekly_pattern):
    data = weekly_pattern.to_dict()

    assert data["recurrence_type"] == "weekly"
    assert data["days_of_week"] == ["MO"]
    assert RecurrencePattern.from_dict(data) == weekly_pattern


def test_from_dict_with_missing_keys():
    with pytest.raises(InvalidRecurrenceError):
        RecurrencePattern.from_dict({"recurrence_type": "daily"})
