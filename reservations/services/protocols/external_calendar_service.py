from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol

from reservations.recurrence import RecurrencePattern
from reservations.services.dataclasses import ReservationOccurrence


if TYPE_CHECKING:
    from reservations.services.batch_scope import NotificationBatchScope


class ExternalCalendarService(Protocol):
    """
    Projection of reservations onto an external appointment system. Every method
    may raise SeriesNotFoundError or CalendarError.
    """

    def using_batch(self, batch: "NotificationBatchScope | None") -> "ExternalCalendarService":
        """
        Return a copy of the service whose notifications join ``batch``.
        """
        ...

    def create_appointment(
        self,
        occurrence: ReservationOccurrence,
        pattern: RecurrencePattern | None = None,
        occurrences: Sequence[ReservationOccurrence] = (),
    ) -> str:
        """
        Create a single or recurring appointment.
        :return: the unique id of the created appointment.
        """
        ...

    def update_appointment(self, occurrence: ReservationOccurrence) -> None:
        ...

    def update_appointment_occurrence(
        self,
        occurrence: ReservationOccurrence,
        occurrences: Sequence[ReservationOccurrence] = (),
    ) -> None:
        ...

    def update_appointment_series(
        self,
        occurrence: ReservationOccurrence,
        pattern: RecurrencePattern,
        occurrences: Sequence[ReservationOccurrence],
    ) -> None:
        ...

    def cancel_appointment(self, occurrence: ReservationOccurrence, message: str = "") -> None:
        ...

    def cancel_appointment_occurrence(
        self, occurrence: ReservationOccurrence, message: str = ""
    ) -> None:
        ...
