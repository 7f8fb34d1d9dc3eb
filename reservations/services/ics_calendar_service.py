import copy
import logging
from collections.abc import Sequence

from icalendar import Calendar

from reservations.exceptions import CalendarError, SeriesNotFoundError
from reservations.recurrence import RecurrencePattern
from reservations.services.batch_scope import NotificationBatchScope
from reservations.services.calendar_payload_builder import CalendarPayloadBuilder, sanitize_crlf
from reservations.services.dataclasses import NotificationMessage, ReservationOccurrence
from reservations.services.protocols.notification_dispatcher import NotificationDispatcher


logger = logging.getLogger(__name__)


class IcsCalendarService:
    """
    ExternalCalendarService that keeps attendees' calendars up to date by
    mailing iCalendar invitations and cancellations.

    The appointment is identified by its UID only: a recurring occurrence that
    has no unique id anymore can't be addressed and is reported as a missing
    series.
    """

    def __init__(
        self,
        payload_builder: CalendarPayloadBuilder,
        notification_dispatcher: NotificationDispatcher,
        batch: NotificationBatchScope | None = None,
    ):
        self.payload_builder = payload_builder
        self.notification_dispatcher = notification_dispatcher
        self.batch = batch

    def using_batch(self, batch: NotificationBatchScope | None) -> "IcsCalendarService":
        service = copy.copy(self)
        service.batch = batch
        return service

    @staticmethod
    def _recipients(occurrence: ReservationOccurrence) -> list[str]:
        recipients = [*occurrence.attendees]
        if occurrence.requested_by:
            recipients.append(occurrence.requested_by)
        return list(dict.fromkeys(recipient for recipient in recipients if recipient))

    def _send(
        self,
        occurrence: ReservationOccurrence,
        subject: str,
        calendars: Sequence[tuple[Calendar, bool]],
        body: str = "",
    ) -> None:
        attachments = [
            self.payload_builder.attachment(
                calendar,
                occurrence,
                cancel=cancel,
                requested_by=occurrence.requested_by,
                suffix=str(position) if position else "",
            )
            for position, (calendar, cancel) in enumerate(calendars)
        ]
        message = NotificationMessage(
            subject=sanitize_crlf(f"{subject}: {occurrence.name}"),
            body=body or occurrence.comments,
            recipients=self._recipients(occurrence),
            attachments=attachments,
        )
        try:
            self.notification_dispatcher.dispatch(message, batch=self.batch)
        except Exception as e:
            logger.exception("Could not send the calendar update of reservation %s", occurrence.id)
            raise CalendarError(f"Could not send the calendar update: {e}") from e

    def _ensure_linked(self, occurrence: ReservationOccurrence) -> None:
        if occurrence.is_recurring and not occurrence.unique_id:
            raise SeriesNotFoundError(
                f"The recurring meeting of reservation {occurrence.id} "
                "is not linked to the calendar."
            )

    def create_appointment(
        self,
        occurrence: ReservationOccurrence,
        pattern: RecurrencePattern | None = None,
        occurrences: Sequence[ReservationOccurrence] = (),
    ) -> str:
        uid = self.payload_builder.uid_for(occurrence)
        calendars = [
            (
                self.payload_builder.build_request(
                    occurrence, uid=uid, pattern=pattern, occurrences=occurrences
                ),
                False,
            )
        ]
        if pattern is not None and occurrences:
            deviating = self.payload_builder.build_deviating_occurrences(
                occurrence, occurrences, pattern, uid=uid
            )
            if deviating is not None:
                calendars.append((deviating, False))
        self._send(occurrence, "Reservation confirmed", calendars)
        return uid

    def update_appointment(self, occurrence: ReservationOccurrence) -> None:
        uid = self.payload_builder.uid_for(occurrence)
        self._send(
            occurrence,
            "Reservation updated",
            [(self.payload_builder.build_request(occurrence, uid=uid), False)],
        )

    def update_appointment_occurrence(
        self,
        occurrence: ReservationOccurrence,
        occurrences: Sequence[ReservationOccurrence] = (),
    ) -> None:
        self._ensure_linked(occurrence)
        builder = self.payload_builder
        if not occurrence.is_recurring:
            self.update_appointment(occurrence)
            return

        recurrence_id = builder.recurrence_id_for(occurrence)
        if occurrence.is_date_modified:
            # the moved occurrence leaves the series and is sent on its own
            calendars = [
                (builder.build_cancel(occurrence, recurrence_id=recurrence_id), True),
                (
                    builder.build_request(
                        occurrence, uid=builder.uid_for(occurrence, individually_addressed=True)
                    ),
                    False,
                ),
            ]
        else:
            calendars = [(builder.build_request(occurrence, recurrence_id=recurrence_id), False)]
        self._send(occurrence, "Reservation updated", calendars)

    def update_appointment_series(
        self,
        occurrence: ReservationOccurrence,
        pattern: RecurrencePattern,
        occurrences: Sequence[ReservationOccurrence],
    ) -> None:
        self._ensure_linked(occurrence)
        calendars = [
            (
                self.payload_builder.build_request(
                    occurrence, pattern=pattern, occurrences=occurrences
                ),
                False,
            )
        ]
        deviating = self.payload_builder.build_deviating_occurrences(
            occurrence, occurrences, pattern
        )
        if deviating is not None:
            calendars.append((deviating, False))
        self._send(occurrence, "Recurring reservation updated", calendars)

    def cancel_appointment(self, occurrence: ReservationOccurrence, message: str = "") -> None:
        calendar = self.payload_builder.build_cancel(occurrence, message=message)
        self._send(occurrence, "Reservation cancelled", [(calendar, True)], body=message)

    def cancel_appointment_occurrence(
        self, occurrence: ReservationOccurrence, message: str = ""
    ) -> None:
        if not occurrence.is_recurring:
            self.cancel_appointment(occurrence, message=message)
            return
        if not occurrence.unique_id:
            logger.debug("Occurrence %s was never sent to the calendar", occurrence.id)
            return

        builder = self.payload_builder
        calendars = [
            (
                builder.build_cancel(
                    occurrence,
                    recurrence_id=builder.recurrence_id_for(occurrence),
                    message=message,
                ),
                True,
            )
        ]
        if occurrence.is_date_modified:
            calendars.append(
                (
                    builder.build_cancel(
                        occurrence,
                        uid=builder.uid_for(occurrence, individually_addressed=True),
                        message=message,
                    ),
                    True,
                )
            )
        self._send(occurrence, "Reservation cancelled", calendars, body=message)
