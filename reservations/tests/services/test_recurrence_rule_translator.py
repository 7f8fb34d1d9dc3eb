import datetime

import pytest
from dateutil.rrule import rrulestr

from reservations.constants import (
    RecurrenceType,
    RecurrenceWeekday,
    SpecialDay,
    WeekOfMonth,
)
from reservations.exceptions import InvalidRecurrenceError
from reservations.recurrence import RecurrencePattern
from reservations.services.dataclasses import TimePeriod
from reservations.services.recurrence_rule_translator import RecurrenceRuleTranslator


# Helpers
def _d(year, month, day):
    return datetime.date(year, month, day)


def _period(start_date=_d(2024, 1, 1), timezone="UTC"):
    return TimePeriod(
        start_date=start_date,
        start_time=datetime.time(9, 0),
        end_date=start_date,
        end_time=datetime.time(10, 0),
        timezone=timezone,
    )


@pytest.fixture
def translator(date_list_generator):
    return RecurrenceRuleTranslator(date_list_generator)


def test_weekly_rule(translator):
    pattern = RecurrencePattern(
        recurrence_type=RecurrenceType.WEEKLY,
        start_date=_d(2024, 1, 1),
        number_of_occurrences=3,
        days_of_week=(RecurrenceWeekday.MONDAY, RecurrenceWeekday.WEDNESDAY),
    )

    assert translator.to_rule(pattern, _period()) == (
        "FREQ=WEEKLY;UNTIL=20240108T100000Z;INTERVAL=1;WKST=SU;BYDAY=MO,WE"
    )


def test_until_is_the_local_end_converted_to_utc(translator):
    pattern = RecurrencePattern(
        recurrence_type=RecurrenceType.DAILY,
        start_date=_d(2024, 1, 1),
        end_date=_d(2024, 1, 31),
    )

    rule = translator.to_rule(pattern, _period(timezone="America/New_York"))

    assert rule == "FREQ=DAILY;UNTIL=20240131T150000Z;INTERVAL=1;WKST=SU"


def test_monthly_rule_on_the_last_weekday(translator):
    pattern = RecurrencePattern(
        recurrence_type=RecurrenceType.MONTHLY_BY_WEEKDAY,
        start_date=_d(2024, 1, 1),
        end_date=_d(2024, 6, 30),
        week_of_month=WeekOfMonth.LAST,
        day_of_the_week=SpecialDay.WEEKDAY,
    )

    assert translator.to_rule(pattern, _period()) == (
        "FREQ=MONTHLY;UNTIL=20240630T100000Z;INTERVAL=1;WKST=SU;"
        "BYDAY=MO,TU,WE,TH,FR;BYSETPOS=-1"
    )


def test_yearly_rule_by_date(translator):
    pattern = RecurrencePattern(
        recurrence_type=RecurrenceType.YEARLY_BY_DATE,
        start_date=_d(2024, 1, 1),
        number_of_occurrences=2,
        month=3,
        day_of_month=15,
    )

    assert translator.to_rule(pattern, _period()) == (
        "FREQ=YEARLY;UNTIL=20250315T100000Z;INTERVAL=1;WKST=SU;BYMONTH=3;BYMONTHDAY=15"
    )


@pytest.mark.parametrize(
    "pattern",
    [
        RecurrencePattern(
            recurrence_type=RecurrenceType.WEEKLY,
            start_date=_d(2024, 1, 1),
            interval=2,
            number_of_occurrences=6,
            days_of_week=(RecurrenceWeekday.MONDAY, RecurrenceWeekday.SUNDAY),
        ),
        RecurrencePattern(
            recurrence_type=RecurrenceType.MONTHLY_BY_DATE,
            start_date=_d(2024, 1, 1),
            number_of_occurrences=4,
            day_of_month=31,
        ),
        RecurrencePattern(
            recurrence_type=RecurrenceType.MONTHLY_BY_WEEKDAY,
            start_date=_d(2024, 1, 1),
            number_of_occurrences=5,
            week_of_month=WeekOfMonth.FIRST,
            day_of_the_week=SpecialDay.WEEKEND_DAY,
        ),
        RecurrencePattern(
            recurrence_type=RecurrenceType.YEARLY_BY_WEEKDAY,
            start_date=_d(2024, 1, 1),
            number_of_occurrences=3,
            week_of_month=WeekOfMonth.SECOND,
            day_of_the_week=RecurrenceWeekday.TUESDAY,
            month=11,
        ),
    ],
)
def test_calendar_expands_the_rule_to_the_same_dates(translator, date_list_generator, pattern):
    period = _period()
    rule = translator.to_rule(pattern, period)

    expanded = rrulestr(rule, dtstart=period.start_datetime)

    assert [occurrence.date() for occurrence in expanded] == date_list_generator.generate(pattern)


def test_from_rule_weekly(translator):
    pattern = translator.from_rule(
        "RRULE:FREQ=WEEKLY;INTERVAL=2;BYDAY=WE,MO;COUNT=4", _d(2024, 1, 1)
    )

    assert pattern.recurrence_type == RecurrenceType.WEEKLY
    assert pattern.interval == 2
    assert pattern.days_of_week == (RecurrenceWeekday.MONDAY, RecurrenceWeekday.WEDNESDAY)
    assert pattern.number_of_occurrences == 4
    assert pattern.end_date is None


def test_from_rule_weekly_defaults_to_the_start_weekday(translator):
    pattern = translator.from_rule("FREQ=WEEKLY", _d(2024, 1, 3))

    assert pattern.days_of_week == (RecurrenceWeekday.WEDNESDAY,)


def test_from_rule_with_ordinal_weekday(translator):
    pattern = translator.from_rule("FREQ=MONTHLY;BYDAY=2TU", _d(2024, 1, 1))

    assert pattern.recurrence_type == RecurrenceType.MONTHLY_BY_WEEKDAY
    assert pattern.week_of_month == WeekOfMonth.SECOND
    assert pattern.day_of_the_week == RecurrenceWeekday.TUESDAY


def test_from_rule_maps_special_days(translator):
    pattern = translator.from_rule("FREQ=MONTHLY;BYDAY=SA,SU;BYSETPOS=-1", _d(2024, 1, 1))

    assert pattern.day_of_the_week == SpecialDay.WEEKEND_DAY
    assert pattern.week_of_month == WeekOfMonth.LAST


def test_from_rule_converts_utc_until_to_local_date(translator):
    pattern = translator.from_rule(
        "FREQ=DAILY;UNTIL=20240201T030000Z", _d(2024, 1, 1), timezone="America/New_York"
    )

    assert pattern.end_date == _d(2024, 1, 31)


def test_round_trip(translator, date_list_generator):
    pattern = RecurrencePattern(
        recurrence_type=RecurrenceType.WEEKLY,
        start_date=_d(2024, 1, 1),
        number_of_occurrences=3,
        days_of_week=(RecurrenceWeekday.MONDAY, RecurrenceWeekday.WEDNESDAY),
    )

    parsed = translator.from_rule(translator.to_rule(pattern, _period()), pattern.start_date)

    assert parsed.end_date == _d(2024, 1, 8)
    assert date_list_generator.generate(parsed) == date_list_generator.generate(pattern)


@pytest.mark.parametrize(
    "rule",
    [
        "FREQ=HOURLY",
        "FREQ=DAILY;BYHOUR=9",
        "FREQ=WEEKLY;BYDAY=MO;WKST=MO",
        "INTERVAL=2",
        "FREQ=MONTHLY;BYDAY=MO,TU",
        "FREQ=DAILY;COUNT=many",
        "FREQ=WEEKLY;BYDAY=XX",
    ],
)
def test_unsupported_rules(translator, rule):
    with pytest.raises(InvalidRecurrenceError):
        translator.from_rule(rule, _d(2024, 1, 1))
