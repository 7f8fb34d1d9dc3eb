import datetime
from collections.abc import Iterable
from typing import Protocol

from reservations.recurrence import RecurrencePattern
from reservations.services.dataclasses import (
    BookedPeriod,
    ReconciliationPlan,
    ReservationOccurrence,
)


class ReservationRepository(Protocol):
    def get(self, reservation_id: int) -> ReservationOccurrence | None:
        """
        Retrieve a reservation occurrence by its id.
        :param reservation_id: id of the reservation.
        :return: the occurrence, or None when it doesn't exist.
        """
        ...

    def save(self, occurrence: ReservationOccurrence) -> ReservationOccurrence:
        """
        Insert or update an occurrence together with its room allocations.
        :return: the occurrence with its id (and allocation ids) assigned.
        """
        ...

    def cancel(self, occurrence: ReservationOccurrence) -> ReservationOccurrence:
        """
        Mark an occurrence as cancelled. Occurrences are never deleted.
        """
        ...

    def get_by_series(
        self,
        series_id: int,
        start_date: datetime.date | None = None,
        end_date: datetime.date | None = None,
        include_inactive: bool = False,
    ) -> list[ReservationOccurrence]:
        """
        Retrieve the occurrences of a series ordered by occurrence index.
        """
        ...

    def get_by_unique_id(
        self, unique_id: str, occurrence_index: int | None = None
    ) -> list[ReservationOccurrence]:
        """
        Retrieve the active occurrences linked to an external unique id.
        """
        ...

    def get_conference_call_members(
        self, conference_id: int, occurrence_index: int | None = None
    ) -> list[ReservationOccurrence]:
        """
        Retrieve the reservations of a conference call, optionally for one occurrence index.
        """
        ...

    def get_booked_periods(
        self,
        room_id: int,
        start: datetime.datetime,
        end: datetime.datetime,
        exclude_ids: Iterable[int] = (),
    ) -> list[BookedPeriod]:
        """
        Retrieve the periods the room is booked for, around [start, end).
        """
        ...

    def get_building_id(self, room_id: int) -> int:
        """
        Resolve the building a room belongs to. Raises RoomReferenceError when unknown.
        """
        ...

    def create_series(self, pattern: RecurrencePattern) -> int:
        ...

    def get_series_pattern(self, series_id: int) -> RecurrencePattern | None:
        ...

    def update_series(
        self,
        series_id: int,
        pattern: RecurrencePattern | None = None,
        unique_id: str | None = None,
    ) -> None:
        ...

    def create_conference_call(self, name: str) -> int:
        ...

    def apply_plan(self, plan: ReconciliationPlan) -> ReconciliationPlan:
        """
        Persist every create/update/cancel of the plan in one transaction.
        """
        ...
