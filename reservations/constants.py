from django.db.models import IntegerChoices, TextChoices


DEFAULT_MAX_OCCURRENCES = 500


class ReservationStatus(TextChoices):
    CONFIRMED = "confirmed", "Confirmed"
    CONFLICT = "conflict", "Room Conflict"
    CANCELLED = "cancelled", "Cancelled"
    REJECTED = "rejected", "Rejected"


ACTIVE_RESERVATION_STATUSES = (ReservationStatus.CONFIRMED, ReservationStatus.CONFLICT)


class ReservableType(TextChoices):
    ROOM = "room", "Room"
    RESOURCE = "resource", "Resource"


class RecurrenceType(TextChoices):
    DAILY = "daily", "Daily"
    WEEKLY = "weekly", "Weekly"
    MONTHLY_BY_DATE = "monthly_by_date", "Monthly on a day of the month"
    MONTHLY_BY_WEEKDAY = "monthly_by_weekday", "Monthly on a weekday"
    YEARLY_BY_DATE = "yearly_by_date", "Yearly on a date"
    YEARLY_BY_WEEKDAY = "yearly_by_weekday", "Yearly on a weekday"


class RecurrenceFrequency(TextChoices):
    DAILY = "DAILY", "Daily"
    WEEKLY = "WEEKLY", "Weekly"
    MONTHLY = "MONTHLY", "Monthly"
    YEARLY = "YEARLY", "Yearly"


class RecurrenceWeekday(TextChoices):
    MONDAY = "MO", "Monday"
    TUESDAY = "TU", "Tuesday"
    WEDNESDAY = "WE", "Wednesday"
    THURSDAY = "TH", "Thursday"
    FRIDAY = "FR", "Friday"
    SATURDAY = "SA", "Saturday"
    SUNDAY = "SU", "Sunday"


class SpecialDay(TextChoices):
    DAY = "day", "Day"
    WEEKDAY = "weekday", "Weekday"
    WEEKEND_DAY = "weekendday", "Weekend day"


# weekdays expanded by each special day, used together with BYSETPOS
SPECIAL_DAY_WEEKDAYS = {
    SpecialDay.DAY: tuple(RecurrenceWeekday),
    SpecialDay.WEEKDAY: (
        RecurrenceWeekday.MONDAY,
        RecurrenceWeekday.TUESDAY,
        RecurrenceWeekday.WEDNESDAY,
        RecurrenceWeekday.THURSDAY,
        RecurrenceWeekday.FRIDAY,
    ),
    SpecialDay.WEEKEND_DAY: (RecurrenceWeekday.SATURDAY, RecurrenceWeekday.SUNDAY),
}


class WeekOfMonth(IntegerChoices):
    FIRST = 1, "First"
    SECOND = 2, "Second"
    THIRD = 3, "Third"
    FOURTH = 4, "Fourth"
    LAST = 5, "Last"


class RoomConflictsMode(TextChoices):
    SHOW_ALL = "show_all", "Show rooms available for at least one occurrence"
    SHOW_FILTERED = "show_filtered", "Show rooms available for at least 50% of the occurrences"
    SHOW_ALL_IF_ONLY_CONFLICTS = (
        "show_all_if_only_conflicts",
        "Show rooms available for all occurrences, otherwise for at least one",
    )
    SHOW_FILTERED_IF_ONLY_CONFLICTS = (
        "show_filtered_if_only_conflicts",
        "Show rooms available for all occurrences, otherwise for at least 50%",
    )
    SHOW_NONE = "show_none", "Show only rooms available for all occurrences"
    SHOW_FIRST = "show_first", "Show rooms available for the first occurrence"
    SHOW_FIRST_FILTERED = (
        "show_first_filtered",
        "Show rooms available for the first occurrence and at least 50% of the occurrences",
    )
    SHOW_FIRST_IF_ONLY_CONFLICTS = (
        "show_first_if_only_conflicts",
        "Show rooms available for all occurrences, otherwise for the first occurrence",
    )
    SHOW_FIRST_FILTERED_IF_ONLY_CONFLICTS = (
        "show_first_filtered_if_only_conflicts",
        "Show rooms available for all occurrences, otherwise for the first and at least 50%",
    )


class CalendarLinkState(TextChoices):
    NOT_LINKED = "not_linked", "Not linked"
    LINKED = "linked", "Linked"


class CalendarMethod(TextChoices):
    REQUEST = "REQUEST", "Request"
    CANCEL = "CANCEL", "Cancel"


ROOM_CONFLICT_IN_CONFERENCE_CALL = "RoomConflictInConferenceCall"
