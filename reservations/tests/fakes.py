import copy
import dataclasses
import datetime
import itertools
from collections.abc import Iterable

from reservations.constants import ReservationStatus
from reservations.exceptions import RoomReferenceError
from reservations.recurrence import RecurrencePattern
from reservations.services.dataclasses import (
    BookedPeriod,
    ReconciliationPlan,
    ReservationOccurrence,
)


class InMemoryReservationRepository:
    """ReservationRepository keeping copies of the occurrences in memory."""

    def __init__(self, rooms: dict[int, int] | None = None):
        self.rooms = dict(rooms or {})
        self.reservations: dict[int, ReservationOccurrence] = {}
        self.series: dict[int, dict] = {}
        self.conference_calls: dict[int, str] = {}
        self.applied_plans: list[ReconciliationPlan] = []
        self._reservation_ids = itertools.count(1)
        self._allocation_ids = itertools.count(1)
        self._series_ids = itertools.count(1)
        self._conference_ids = itertools.count(1)

    def get(self, reservation_id):
        occurrence = self.reservations.get(reservation_id)
        return copy.deepcopy(occurrence) if occurrence else None

    def save(self, occurrence):
        if occurrence.id is None:
            occurrence.id = next(self._reservation_ids)
        for allocation in occurrence.room_allocations:
            if allocation.id is None:
                allocation.id = next(self._allocation_ids)
        self.reservations[occurrence.id] = copy.deepcopy(occurrence)
        return occurrence

    def cancel(self, occurrence):
        self.reservations[occurrence.id].status = ReservationStatus.CANCELLED
        return dataclasses.replace(occurrence, status=ReservationStatus.CANCELLED)

    def _sorted(self, occurrences: Iterable[ReservationOccurrence]):
        return [
            copy.deepcopy(occurrence)
            for occurrence in sorted(occurrences, key=lambda o: (o.occurrence_index, o.id))
        ]

    def get_by_series(self, series_id, start_date=None, end_date=None, include_inactive=False):
        return self._sorted(
            occurrence
            for occurrence in self.reservations.values()
            if occurrence.series_id == series_id
            and (include_inactive or occurrence.is_active)
            and (start_date is None or occurrence.time_period.start_date >= start_date)
            and (end_date is None or occurrence.time_period.start_date <= end_date)
        )

    def get_by_unique_id(self, unique_id, occurrence_index=None):
        return [
            copy.deepcopy(occurrence)
            for occurrence in sorted(self.reservations.values(), key=lambda o: o.id)
            if occurrence.unique_id == unique_id
            and occurrence.is_active
            and (occurrence_index is None or occurrence.occurrence_index == occurrence_index)
        ]

    def get_conference_call_members(self, conference_id, occurrence_index=None):
        return self._sorted(
            occurrence
            for occurrence in self.reservations.values()
            if occurrence.conference_id == conference_id
            and (occurrence_index is None or occurrence.occurrence_index == occurrence_index)
        )

    def get_booked_periods(
        self,
        room_id: int,
        start: datetime.datetime,
        end: datetime.datetime,
        exclude_ids: Iterable[int] = (),
    ):
        excluded = set(exclude_ids)
        return [
            BookedPeriod(
                reservation_id=occurrence.id,
                start=occurrence.time_period.start_datetime,
                end=occurrence.time_period.end_datetime,
            )
            for occurrence in self.reservations.values()
            if occurrence.is_active
            and occurrence.id not in excluded
            and occurrence.room_id == room_id
        ]

    def get_building_id(self, room_id):
        if room_id not in self.rooms:
            raise RoomReferenceError(f"Room {room_id} does not exist.")
        return self.rooms[room_id]

    def create_series(self, pattern: RecurrencePattern) -> int:
        series_id = next(self._series_ids)
        self.series[series_id] = {"pattern": pattern, "unique_id": ""}
        return series_id

    def get_series_pattern(self, series_id):
        series = self.series.get(series_id)
        return series["pattern"] if series else None

    def update_series(self, series_id, pattern=None, unique_id=None):
        if pattern is not None:
            self.series[series_id]["pattern"] = pattern
        if unique_id is not None:
            self.series[series_id]["unique_id"] = unique_id

    def create_conference_call(self, name: str) -> int:
        conference_id = next(self._conference_ids)
        self.conference_calls[conference_id] = name
        return conference_id

    def apply_plan(self, plan):
        for occurrence in [*plan.to_create, *plan.to_update]:
            self.save(occurrence)
        plan.to_cancel = [self.cancel(occurrence) for occurrence in plan.to_cancel]
        self.applied_plans.append(plan)
        return plan


class FakeCalendarService:
    """
    ExternalCalendarService recording every call. ``errors`` maps method names to an
    exception raised on every call, or to a list consumed one call at a time (``None`` passes).
    """

    def __init__(self, errors: dict[str, Exception | list] | None = None):
        self.errors = dict(errors or {})
        self.calls: list[tuple[str, ReservationOccurrence, dict]] = []
        self.batch = None
        self._uids = itertools.count(1)

    def using_batch(self, batch):
        self.batch = batch
        return self

    def _record(self, method, occurrence, **kwargs):
        self.calls.append((method, copy.deepcopy(occurrence), kwargs))
        error = self.errors.get(method)
        if isinstance(error, list):
            error = error.pop(0) if error else None
        if error is not None:
            raise error

    def called(self, method):
        return [call for call in self.calls if call[0] == method]

    def create_appointment(self, occurrence, pattern=None, occurrences=()):
        self._record("create_appointment", occurrence, pattern=pattern, occurrences=occurrences)
        return f"uid-{next(self._uids)}"

    def update_appointment(self, occurrence):
        self._record("update_appointment", occurrence)

    def update_appointment_occurrence(self, occurrence, occurrences=()):
        self._record("update_appointment_occurrence", occurrence, occurrences=occurrences)

    def update_appointment_series(self, occurrence, pattern, occurrences):
        self._record(
            "update_appointment_series", occurrence, pattern=pattern, occurrences=occurrences
        )

    def cancel_appointment(self, occurrence, message=""):
        self._record("cancel_appointment", occurrence, message=message)

    def cancel_appointment_occurrence(self, occurrence, message=""):
        self._record("cancel_appointment_occurrence", occurrence, message=message)
