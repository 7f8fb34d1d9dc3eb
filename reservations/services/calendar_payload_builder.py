import datetime
import re
from collections.abc import Sequence

from django.utils import timezone
from icalendar import Calendar, Event, vCalAddress, vRecur

from reservations.constants import CalendarMethod
from reservations.recurrence import RecurrencePattern
from reservations.services.dataclasses import CalendarAttachment, ReservationOccurrence
from reservations.services.date_list_generator import DateListGenerator
from reservations.services.recurrence_rule_translator import RecurrenceRuleTranslator


PRODID = "-//Room Reservations//Reservation Calendar//EN"
CRLF_RE = re.compile(r"[\r\n]")


def sanitize_crlf(value: str | None) -> str:
    """Strip CR/LF from text placed in filenames and subjects."""
    return CRLF_RE.sub("", value or "")


class ReservationEquivalenceChecker:
    """
    Tells whether an occurrence still looks like the series template: same
    times and timezone, name, attendees, comments and location.
    """

    @staticmethod
    def is_equivalent(template: ReservationOccurrence, occurrence: ReservationOccurrence) -> bool:
        template_period, period = template.time_period, occurrence.time_period
        return (
            template_period.start_time == period.start_time
            and template_period.end_time == period.end_time
            and (template_period.end_date - template_period.start_date)
            == (period.end_date - period.start_date)
            and template_period.timezone == period.timezone
            and template.name == occurrence.name
            and sorted(template.attendees) == sorted(occurrence.attendees)
            and template.comments == occurrence.comments
            and template.room_id == occurrence.room_id
            and template.location_summary == occurrence.location_summary
        )


class CalendarPayloadBuilder:
    def __init__(
        self,
        translator: RecurrenceRuleTranslator,
        date_list_generator: DateListGenerator,
        organizer_email: str = "",
        equivalence_checker: ReservationEquivalenceChecker | None = None,
    ):
        self.translator = translator
        self.date_list_generator = date_list_generator
        self.organizer_email = organizer_email
        self.equivalence_checker = equivalence_checker or ReservationEquivalenceChecker()

    @staticmethod
    def uid_for(occurrence: ReservationOccurrence, *, individually_addressed: bool = False) -> str:
        """
        Conference calls share one appointment, then series, then single reservations.
        A date-shifted occurrence addressed on its own gets its index appended.
        """
        if occurrence.unique_id:
            uid = occurrence.unique_id
        elif occurrence.conference_id is not None:
            uid = f"reservation-conference-{occurrence.conference_id}"
        elif occurrence.is_recurring:
            uid = f"reservation-series-{occurrence.series_id}"
        else:
            uid = f"reservation-{occurrence.id}"
        if individually_addressed and occurrence.is_date_modified:
            uid = f"{uid}.{occurrence.occurrence_index}"
        return uid

    @staticmethod
    def location_text(occurrence: ReservationOccurrence) -> str:
        if occurrence.location_summary:
            return occurrence.location_summary
        allocation = occurrence.room_allocation
        if allocation is None:
            return ""
        return allocation.comments or f"Room {allocation.room_id}"

    @staticmethod
    def recurrence_id_for(occurrence: ReservationOccurrence) -> datetime.datetime:
        period = occurrence.time_period
        return datetime.datetime.combine(
            occurrence.original_date or period.start_date, period.start_time, tzinfo=period.tzinfo
        )

    def _calendar(self, method: CalendarMethod) -> Calendar:
        calendar = Calendar()
        calendar.add("prodid", PRODID)
        calendar.add("version", "2.0")
        calendar.add("method", str(method))
        return calendar

    def _event(
        self,
        occurrence: ReservationOccurrence,
        uid: str,
        *,
        start: datetime.datetime | None = None,
        recurrence_id: datetime.datetime | None = None,
        cancel: bool = False,
        message: str = "",
    ) -> Event:
        period = occurrence.time_period
        start = start or period.start_datetime

        event = Event()
        event.add("uid", uid)
        event.add("sequence", occurrence.sequence)
        event.add("dtstamp", timezone.now())
        event.add("dtstart", start)
        event.add("dtend", start + period.duration)
        event.add("summary", occurrence.name)
        if occurrence.comments or message:
            event.add("description", message or occurrence.comments)
        location = self.location_text(occurrence)
        if location:
            event.add("location", location)
        if recurrence_id is not None:
            event.add("recurrence-id", recurrence_id)
        if self.organizer_email:
            event.add("organizer", vCalAddress(f"MAILTO:{self.organizer_email}"))
        for attendee in occurrence.attendees:
            event.add(
                "attendee",
                vCalAddress(f"MAILTO:{attendee}"),
                parameters={"ROLE": "REQ-PARTICIPANT", "RSVP": "TRUE"},
            )
        event.add("status", "CANCELLED" if cancel else "CONFIRMED")
        return event

    def exception_dates(
        self, pattern: RecurrencePattern, occurrences: Sequence[ReservationOccurrence]
    ) -> list[datetime.date]:
        """Dates yielded by ``pattern`` that no active occurrence stands for."""
        realized = {
            occurrence.original_date or occurrence.time_period.start_date
            for occurrence in occurrences
            if occurrence.is_active
        }
        return [date for date in self.date_list_generator.generate(pattern) if date not in realized]

    def build_request(
        self,
        occurrence: ReservationOccurrence,
        *,
        uid: str | None = None,
        pattern: RecurrencePattern | None = None,
        occurrences: Sequence[ReservationOccurrence] = (),
        recurrence_id: datetime.datetime | None = None,
    ) -> Calendar:
        uid = uid or self.uid_for(occurrence)
        calendar = self._calendar(CalendarMethod.REQUEST)
        if pattern is None:
            calendar.add_component(self._event(occurrence, uid, recurrence_id=recurrence_id))
            return calendar

        # the rule is expanded from the first date of the pattern
        first_date = self.date_list_generator.generate(pattern)[0]
        first_period = occurrence.time_period.on_date(first_date)
        event = self._event(occurrence, uid, start=first_period.start_datetime)
        event.add("rrule", vRecur.from_ical(self.translator.to_rule(pattern, first_period)))
        exdates = self.exception_dates(pattern, occurrences) if occurrences else []
        if exdates:
            event.add("exdate", exdates, parameters={"VALUE": "DATE"})
        calendar.add_component(event)
        return calendar

    def build_cancel(
        self,
        occurrence: ReservationOccurrence,
        *,
        uid: str | None = None,
        recurrence_id: datetime.datetime | None = None,
        message: str = "",
    ) -> Calendar:
        uid = uid or self.uid_for(occurrence)
        calendar = self._calendar(CalendarMethod.CANCEL)
        calendar.add_component(
            self._event(occurrence, uid, recurrence_id=recurrence_id, cancel=True, message=message)
        )
        return calendar

    def deviating_occurrences(
        self, template: ReservationOccurrence, occurrences: Sequence[ReservationOccurrence]
    ) -> list[ReservationOccurrence]:
        return [
            occurrence
            for occurrence in occurrences
            if occurrence.is_active
            and (
                occurrence.is_date_modified
                or not self.equivalence_checker.is_equivalent(template, occurrence)
            )
        ]

    def build_deviating_occurrences(
        self,
        template: ReservationOccurrence,
        occurrences: Sequence[ReservationOccurrence],
        pattern: RecurrencePattern,
        *,
        uid: str | None = None,
    ) -> Calendar | None:
        """
        Secondary payload for a series-wide update: one VEVENT, addressed by
        RECURRENCE-ID, for each occurrence that differs from the template.
        Returns None when every occurrence matches.
        """
        deviating = self.deviating_occurrences(template, occurrences)
        if not deviating:
            return None

        uid = uid or self.uid_for(template)
        series_dates = set(self.date_list_generator.generate(pattern))
        calendar = self._calendar(CalendarMethod.REQUEST)
        for occurrence in deviating:
            recurrence_id = self.recurrence_id_for(occurrence)
            if recurrence_id.date() not in series_dates:
                continue
            recurrence_id = recurrence_id.replace(
                hour=template.time_period.start_time.hour,
                minute=template.time_period.start_time.minute,
                second=template.time_period.start_time.second,
            )
            calendar.add_component(self._event(occurrence, uid, recurrence_id=recurrence_id))
        if not calendar.subcomponents:
            return None
        return calendar

    def attachment(
        self,
        calendar: Calendar,
        occurrence: ReservationOccurrence,
        *,
        cancel: bool = False,
        requested_by: str = "",
        suffix: str = "",
    ) -> CalendarAttachment:
        parts = [
            "reservation",
            str(occurrence.id),
            occurrence.time_period.start_date.isoformat(),
        ]
        if cancel:
            parts.append("cancel")
        if requested_by:
            parts.append(requested_by)
        if suffix:
            parts.append(suffix)
        return CalendarAttachment(
            filename=sanitize_crlf("-".join(parts) + ".ics"),
            content=calendar.to_ical(),
        )
