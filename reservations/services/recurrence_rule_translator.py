import datetime
import re
import zoneinfo

from reservations.constants import (
    SPECIAL_DAY_WEEKDAYS,
    RecurrenceFrequency,
    RecurrenceType,
    RecurrenceWeekday,
    WeekOfMonth,
)
from reservations.exceptions import InvalidRecurrenceError
from reservations.recurrence import BY_WEEKDAY_TYPES, RecurrencePattern
from reservations.services.dataclasses import TimePeriod
from reservations.services.date_list_generator import DateListGenerator


UNTIL_FORMAT = "%Y%m%dT%H%M%SZ"

FREQUENCIES = {
    RecurrenceType.DAILY: RecurrenceFrequency.DAILY,
    RecurrenceType.WEEKLY: RecurrenceFrequency.WEEKLY,
    RecurrenceType.MONTHLY_BY_DATE: RecurrenceFrequency.MONTHLY,
    RecurrenceType.MONTHLY_BY_WEEKDAY: RecurrenceFrequency.MONTHLY,
    RecurrenceType.YEARLY_BY_DATE: RecurrenceFrequency.YEARLY,
    RecurrenceType.YEARLY_BY_WEEKDAY: RecurrenceFrequency.YEARLY,
}
SPECIAL_DAYS_BY_WEEKDAYS = {
    frozenset(weekdays): special_day for special_day, weekdays in SPECIAL_DAY_WEEKDAYS.items()
}
SUPPORTED_RULE_PARTS = frozenset(
    {"FREQ", "UNTIL", "COUNT", "INTERVAL", "WKST", "BYDAY", "BYMONTHDAY", "BYSETPOS", "BYMONTH"}
)
BYDAY_RE = re.compile(r"^(?P<position>[+-]?\d)?(?P<weekday>MO|TU|WE|TH|FR|SA|SU)$")


class RecurrenceRuleTranslator:
    """
    Translates recurrence patterns to and from the RRULE subset understood by
    the external calendar.
    """

    def __init__(self, date_list_generator: DateListGenerator):
        self.date_list_generator = date_list_generator

    def until(self, pattern: RecurrencePattern, time_period: TimePeriod) -> datetime.datetime:
        """
        End of the last occurrence, in UTC. Count-bounded and unbounded patterns
        end at their last generated date.
        """
        if pattern.end_date is not None and pattern.number_of_occurrences is None:
            last_date = pattern.end_date
        else:
            last_date = self.date_list_generator.generate(pattern)[-1]
        last_end_date = last_date + (time_period.end_date - time_period.start_date)
        local_end = datetime.datetime.combine(
            last_end_date, time_period.end_time, tzinfo=time_period.tzinfo
        )
        return local_end.astimezone(datetime.UTC)

    def to_rule(self, pattern: RecurrencePattern, time_period: TimePeriod) -> str:
        parts = [
            f"FREQ={FREQUENCIES[pattern.recurrence_type]}",
            f"UNTIL={self.until(pattern, time_period).strftime(UNTIL_FORMAT)}",
            f"INTERVAL={pattern.interval}",
            "WKST=SU",
        ]
        weekdays = ",".join(str(weekday) for weekday in pattern.weekday_selectors)

        match pattern.recurrence_type:
            case RecurrenceType.DAILY:
                pass
            case RecurrenceType.WEEKLY:
                parts.append(f"BYDAY={weekdays}")
            case RecurrenceType.MONTHLY_BY_DATE:
                parts.append(f"BYMONTHDAY={pattern.day_of_month}")
            case RecurrenceType.MONTHLY_BY_WEEKDAY:
                parts.extend([f"BYDAY={weekdays}", f"BYSETPOS={pattern.set_position}"])
            case RecurrenceType.YEARLY_BY_DATE:
                parts.extend([f"BYMONTH={pattern.month}", f"BYMONTHDAY={pattern.day_of_month}"])
            case RecurrenceType.YEARLY_BY_WEEKDAY:
                parts.extend(
                    [
                        f"BYDAY={weekdays}",
                        f"BYSETPOS={pattern.set_position}",
                        f"BYMONTH={pattern.month}",
                    ]
                )
            case _:
                raise InvalidRecurrenceError(f"Unsupported recurrence {pattern.recurrence_type}.")
        return ";".join(parts)

    @staticmethod
    def _parse_parts(rule: str) -> dict[str, str]:
        rule = rule.strip()
        if rule.upper().startswith("RRULE:"):
            rule = rule[len("RRULE:") :]
        parts = {}
        for part in filter(None, rule.split(";")):
            key, separator, value = part.partition("=")
            key = key.strip().upper()
            if not separator or key not in SUPPORTED_RULE_PARTS:
                raise InvalidRecurrenceError(f"Unsupported recurrence rule part '{part}'.")
            parts[key] = value.strip().upper()
        if "FREQ" not in parts:
            raise InvalidRecurrenceError("The recurrence rule has no frequency.")
        if parts.get("WKST", "SU") != "SU":
            raise InvalidRecurrenceError("Only weeks starting on Sunday are supported.")
        return parts

    @staticmethod
    def _parse_until(value: str, timezone: str) -> datetime.date:
        try:
            if "T" not in value:
                return datetime.datetime.strptime(value, "%Y%m%d").date()
            until = datetime.datetime.strptime(value.rstrip("Z"), "%Y%m%dT%H%M%S")
        except ValueError as e:
            raise InvalidRecurrenceError(f"Invalid UNTIL value '{value}'.") from e
        if value.endswith("Z"):
            until = until.replace(tzinfo=datetime.UTC).astimezone(zoneinfo.ZoneInfo(timezone))
        return until.date()

    @staticmethod
    def _parse_int(parts: dict[str, str], key: str) -> int | None:
        if key not in parts:
            return None
        try:
            return int(parts[key])
        except ValueError as e:
            raise InvalidRecurrenceError(f"Invalid {key} value '{parts[key]}'.") from e

    def from_rule(
        self, rule: str, start_date: datetime.date, timezone: str = "UTC"
    ) -> RecurrencePattern:
        """
        Build a pattern from a rule produced by ``to_rule`` (or an equivalent
        one). ``timezone`` is used to bring a UTC UNTIL back to a local date.
        """
        parts = self._parse_parts(rule)
        try:
            frequency = RecurrenceFrequency(parts["FREQ"])
        except ValueError as e:
            raise InvalidRecurrenceError(f"Unsupported frequency '{parts['FREQ']}'.") from e

        set_position = self._parse_int(parts, "BYSETPOS")
        weekdays = []
        for value in filter(None, parts.get("BYDAY", "").split(",")):
            match = BYDAY_RE.match(value)
            if match is None:
                raise InvalidRecurrenceError(f"Invalid BYDAY value '{value}'.")
            if match["position"] is not None:
                if set_position is not None and set_position != int(match["position"]):
                    raise InvalidRecurrenceError("Conflicting weekday positions.")
                set_position = int(match["position"])
            weekdays.append(RecurrenceWeekday(match["weekday"]))

        kwargs = {
            "start_date": start_date,
            "interval": self._parse_int(parts, "INTERVAL") or 1,
            "number_of_occurrences": self._parse_int(parts, "COUNT"),
            "end_date": (
                self._parse_until(parts["UNTIL"], timezone) if "UNTIL" in parts else None
            ),
        }
        day_of_month = self._parse_int(parts, "BYMONTHDAY")
        month = self._parse_int(parts, "BYMONTH")

        match frequency:
            case RecurrenceFrequency.DAILY:
                if weekdays or day_of_month or month or set_position:
                    raise InvalidRecurrenceError("Daily rules don't support selectors.")
                return RecurrencePattern(recurrence_type=RecurrenceType.DAILY, **kwargs)
            case RecurrenceFrequency.WEEKLY:
                if not weekdays:
                    weekdays = [tuple(RecurrenceWeekday)[start_date.weekday()]]
                return RecurrencePattern(
                    recurrence_type=RecurrenceType.WEEKLY,
                    days_of_week=tuple(weekdays),
                    **kwargs,
                )
            case RecurrenceFrequency.MONTHLY:
                recurrence_type = (
                    RecurrenceType.MONTHLY_BY_WEEKDAY
                    if weekdays
                    else RecurrenceType.MONTHLY_BY_DATE
                )
            case RecurrenceFrequency.YEARLY:
                recurrence_type = (
                    RecurrenceType.YEARLY_BY_WEEKDAY if weekdays else RecurrenceType.YEARLY_BY_DATE
                )
                kwargs["month"] = month or start_date.month

        if recurrence_type in BY_WEEKDAY_TYPES:
            return RecurrencePattern(
                recurrence_type=recurrence_type,
                week_of_month=self._week_of_month(set_position),
                day_of_the_week=self._day_of_the_week(weekdays),
                **kwargs,
            )
        return RecurrencePattern(
            recurrence_type=recurrence_type,
            day_of_month=day_of_month or start_date.day,
            **kwargs,
        )

    @staticmethod
    def _week_of_month(set_position: int | None) -> int:
        if set_position == -1:
            return WeekOfMonth.LAST
        if set_position is None or set_position not in WeekOfMonth.values:
            raise InvalidRecurrenceError(f"Unsupported weekday position {set_position}.")
        return set_position

    @staticmethod
    def _day_of_the_week(weekdays: list[RecurrenceWeekday]):
        if len(weekdays) == 1:
            return weekdays[0]
        special_day = SPECIAL_DAYS_BY_WEEKDAYS.get(frozenset(weekdays))
        if special_day is None:
            raise InvalidRecurrenceError(
                "Only a single weekday, weekdays or weekend days can be combined with a position."
            )
        return special_day
