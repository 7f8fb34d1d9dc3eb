import dataclasses
import datetime
import logging
from collections.abc import Sequence

from reservations.constants import CalendarLinkState
from reservations.exceptions import CalendarError, SeriesNotFoundError
from reservations.recurrence import RecurrencePattern
from reservations.services.batch_scope import NotificationBatchScope
from reservations.services.dataclasses import OperationResult, ReservationOccurrence
from reservations.services.date_list_generator import DateListGenerator
from reservations.services.protocols.external_calendar_service import ExternalCalendarService
from reservations.services.protocols.reservation_repository import ReservationRepository


logger = logging.getLogger(__name__)

SINGLE_MEETING_RECREATED_WARNING = (
    "The recurring meeting linked to reservation {id} was not found on the calendar. "
    "The reservation was removed from the recurrence and linked to a new single meeting."
)
SERIES_RECREATED_WARNING = (
    "The recurring meeting linked to reservation {id} was not found on the calendar. "
    "The reservations were linked to a new recurring meeting."
)


def _unique_by_appointment(
    occurrences: Sequence[ReservationOccurrence],
) -> list[ReservationOccurrence]:
    """Members of a conference call share the appointment, keep one per occurrence."""
    seen = set()
    unique = []
    for occurrence in occurrences:
        if occurrence.conference_id is None:
            unique.append(occurrence)
            continue
        key = (occurrence.conference_id, occurrence.occurrence_index)
        if key in seen:
            continue
        seen.add(key)
        unique.append(occurrence)
    return unique


class CalendarSyncAdapter:
    """
    Projects saved and cancelled reservations onto the external calendar.

    Calendar failures never undo a booking: they are logged and returned as
    warnings. A recurring meeting that went missing on the calendar is
    recreated from the occurrences that are still active.
    """

    def __init__(
        self,
        calendar_service: ExternalCalendarService,
        repository: ReservationRepository,
        date_list_generator: DateListGenerator,
    ):
        self.calendar_service = calendar_service
        self.repository = repository
        self.date_list_generator = date_list_generator

    def using_batch(self, batch: NotificationBatchScope | None) -> "CalendarSyncAdapter":
        return CalendarSyncAdapter(
            self.calendar_service.using_batch(batch), self.repository, self.date_list_generator
        )

    @staticmethod
    def link_state(occurrence: ReservationOccurrence) -> CalendarLinkState:
        if occurrence.appointment_ref is not None:
            return CalendarLinkState.LINKED
        return CalendarLinkState.NOT_LINKED

    def _link(
        self, occurrences: Sequence[ReservationOccurrence], unique_id: str
    ) -> list[ReservationOccurrence]:
        linked = []
        for occurrence in occurrences:
            occurrence.unique_id = unique_id
            linked.append(self.repository.save(occurrence))
        for series_id in dict.fromkeys(o.series_id for o in occurrences if o.series_id):
            self.repository.update_series(series_id, unique_id=unique_id)
        return linked

    def _bump_sequence(self, occurrences: Sequence[ReservationOccurrence]) -> None:
        if not occurrences:
            return
        sequence = max(occurrence.sequence for occurrence in occurrences) + 1
        for occurrence in occurrences:
            occurrence.sequence = sequence
            self.repository.save(occurrence)

    def _series_occurrences(
        self, series_id: int, today: datetime.date | None = None
    ) -> list[ReservationOccurrence]:
        return [
            occurrence
            for occurrence in self.repository.get_by_series(series_id)
            if occurrence.is_active
            and (today is None or occurrence.time_period.start_date >= today)
        ]

    def sync_saved(
        self,
        saved: Sequence[ReservationOccurrence],
        *,
        pattern: RecurrencePattern | None = None,
        is_new: bool = False,
        full_series: bool = False,
        today: datetime.date | None = None,
        result: OperationResult | None = None,
    ) -> OperationResult:
        result = result if result is not None else OperationResult()
        active = [occurrence for occurrence in saved if occurrence.is_active]
        if not active:
            return result
        first = active[0]

        if is_new:
            occurrences = (
                [o for o in active if o.series_id == first.series_id] if first.is_recurring else []
            )
            try:
                unique_id = self.calendar_service.create_appointment(
                    first, pattern if first.is_recurring else None, occurrences
                )
            except CalendarError as e:
                self._warn(first, e, result)
                return result
            self._link(active, unique_id)
            return result

        if not first.is_recurring:
            for occurrence in _unique_by_appointment(active):
                self._bump_sequence([occurrence])
                try:
                    self.calendar_service.update_appointment(occurrence)
                except CalendarError as e:
                    self._warn(occurrence, e, result)
            return result

        series_pattern = pattern or self.repository.get_series_pattern(first.series_id)
        series = self._series_occurrences(first.series_id)
        if full_series and series_pattern is not None:
            self._bump_sequence(active)
            try:
                self.calendar_service.update_appointment_series(first, series_pattern, series)
            except SeriesNotFoundError as e:
                self._recover_series(first, series_pattern, e, today, result)
            except CalendarError as e:
                self._warn(first, e, result)
            return result

        for occurrence in _unique_by_appointment(active):
            self._bump_sequence([occurrence])
            try:
                self.calendar_service.update_appointment_occurrence(occurrence, series)
            except SeriesNotFoundError as e:
                # the recreated series already carries the remaining occurrences
                self._recover_series(occurrence, series_pattern, e, today, result)
                break
            except CalendarError as e:
                self._warn(occurrence, e, result)
        return result

    def _recover_series(
        self,
        occurrence: ReservationOccurrence,
        pattern: RecurrencePattern | None,
        error: SeriesNotFoundError,
        today: datetime.date | None,
        result: OperationResult,
    ) -> None:
        logger.warning(
            "Recurring meeting of series %s not found: %s", occurrence.series_id, error
        )
        if pattern is None:
            self._warn(occurrence, error, result)
            return
        self.recreate_series(
            self._series_occurrences(occurrence.series_id, today), pattern, result
        )

    def sync_cancelled(
        self,
        cancelled: Sequence[ReservationOccurrence],
        *,
        message: str = "",
        whole_series: bool = False,
        result: OperationResult | None = None,
    ) -> OperationResult:
        result = result if result is not None else OperationResult()
        series_cancelled = set()
        for occurrence in _unique_by_appointment(cancelled):
            try:
                if not occurrence.is_recurring:
                    self.calendar_service.cancel_appointment(occurrence, message=message)
                elif whole_series:
                    if occurrence.series_id in series_cancelled:
                        continue
                    series_cancelled.add(occurrence.series_id)
                    self.calendar_service.cancel_appointment(occurrence, message=message)
                else:
                    self.calendar_service.cancel_appointment_occurrence(occurrence, message=message)
            except CalendarError as e:
                self._warn(occurrence, e, result)
        return result

    def recreate_series(
        self,
        occurrences: Sequence[ReservationOccurrence],
        pattern: RecurrencePattern,
        result: OperationResult | None = None,
    ) -> OperationResult:
        """
        Link the surviving occurrences of a series that disappeared from the
        calendar to a new appointment. A lone survivor becomes a single meeting;
        otherwise a new series starts at the first survivor and indexes are
        renumbered from 1.
        """
        result = result if result is not None else OperationResult()
        survivors = sorted(
            (occurrence for occurrence in occurrences if occurrence.is_active),
            key=lambda occurrence: occurrence.occurrence_index,
        )
        if not survivors:
            return result
        first = survivors[0]

        if len(survivors) == 1:
            detached = dataclasses.replace(
                first,
                series_id=None,
                occurrence_index=0,
                original_date=None,
                unique_id="",
                sequence=first.sequence + 1,
            )
            detached = self.repository.save(detached)
            result.add_warning(SINGLE_MEETING_RECREATED_WARNING.format(id=first.id))
            try:
                unique_id = self.calendar_service.create_appointment(detached)
            except CalendarError as e:
                self._warn(detached, e, result)
                return result
            self._link([detached], unique_id)
            return result

        first_index = first.occurrence_index
        anchor_date = first.original_date or first.time_period.start_date
        new_pattern = pattern.with_start(anchor_date).with_occurrence_count(
            survivors[-1].occurrence_index - first_index + 1
        )
        for occurrence in survivors:
            occurrence.occurrence_index = occurrence.occurrence_index - first_index + 1

        fixed_dates = {
            occurrence.occurrence_index: (
                occurrence.original_date or occurrence.time_period.start_date
            )
            for occurrence in survivors
            if not occurrence.is_date_modified
        }
        dates = self.date_list_generator.generate_aligned(new_pattern, fixed_dates)
        if dates[0] != new_pattern.start_date:
            new_pattern = new_pattern.with_start(dates[0])

        series_id = self.repository.create_series(new_pattern)
        for occurrence in survivors:
            occurrence.series_id = series_id
            occurrence.unique_id = ""
            occurrence.sequence += 1
            if occurrence.occurrence_index <= len(dates):
                occurrence.original_date = dates[occurrence.occurrence_index - 1]
            self.repository.save(occurrence)
        result.add_warning(SERIES_RECREATED_WARNING.format(id=first.id))
        logger.warning(
            "Recreated recurring meeting of reservation %s as series %s with %s occurrences",
            first.id,
            series_id,
            len(survivors),
        )

        try:
            unique_id = self.calendar_service.create_appointment(survivors[0], new_pattern)
        except CalendarError as e:
            self._warn(first, e, result)
            return result
        self._link(survivors, unique_id)

        # replay what the plain rule can't express
        by_index = {occurrence.occurrence_index: occurrence for occurrence in survivors}
        for index, date in enumerate(dates, start=1):
            occurrence = by_index.get(index)
            try:
                if occurrence is None:
                    missing = dataclasses.replace(
                        first,
                        occurrence_index=index,
                        original_date=date,
                        time_period=first.time_period.on_date(date),
                    )
                    self.calendar_service.cancel_appointment_occurrence(missing)
                elif occurrence.is_date_modified or not self._matches_template(first, occurrence):
                    self.calendar_service.update_appointment_occurrence(occurrence, survivors)
            except CalendarError as e:
                self._warn(first, e, result)
        return result

    @staticmethod
    def _matches_template(
        template: ReservationOccurrence, occurrence: ReservationOccurrence
    ) -> bool:
        return occurrence.time_period == template.time_period.on_date(
            occurrence.time_period.start_date
        )

    @staticmethod
    def _warn(occurrence: ReservationOccurrence, error: Exception, result: OperationResult) -> None:
        logger.warning("Calendar update of reservation %s failed: %s", occurrence.id, error)
        result.add_warning(str(error))
