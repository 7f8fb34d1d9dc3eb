import dataclasses
import datetime
from collections.abc import Iterable

from django.db import transaction

from reservations.constants import ReservationStatus
from reservations.exceptions import RoomReferenceError
from reservations.models import (
    ConferenceCall,
    Reservation,
    ReservationSeries,
    Room,
    RoomAllocation,
)
from reservations.recurrence import RecurrencePattern
from reservations.services.dataclasses import (
    BookedPeriod,
    ReconciliationPlan,
    ReservationOccurrence,
    RoomAllocationData,
    TimePeriod,
)


class DjangoReservationRepository:
    """
    ReservationRepository backed by the Django ORM.
    """

    @staticmethod
    def to_occurrence(reservation: Reservation) -> ReservationOccurrence:
        time_period = TimePeriod(
            start_date=reservation.start_date,
            start_time=reservation.start_time,
            end_date=reservation.end_date,
            end_time=reservation.end_time,
            timezone=reservation.timezone,
        )
        return ReservationOccurrence(
            id=reservation.id,
            name=reservation.name,
            time_period=time_period,
            room_allocations=[
                RoomAllocationData(
                    id=allocation.id,
                    room_id=allocation.room_id,
                    building_id=allocation.room.building_id,
                    comments=allocation.comments,
                    time_period=time_period,
                )
                for allocation in reservation.room_allocations.all()
            ],
            reservable_type=reservation.reservable_type,
            status=reservation.status,
            series_id=reservation.series_id,
            occurrence_index=reservation.occurrence_index,
            original_date=reservation.original_date,
            conference_id=reservation.conference_call_id,
            unique_id=reservation.unique_id,
            sequence=reservation.sequence,
            comments=reservation.comments,
            location_summary=reservation.location_summary,
            attendees=list(reservation.attendees or []),
            requested_by=reservation.requested_by,
            building_id=reservation.building_id,
            backup_building_id=reservation.backup_building_id,
        )

    def _queryset(self):
        return Reservation.objects.with_allocations()

    def get(self, reservation_id: int) -> ReservationOccurrence | None:
        reservation = self._queryset().filter(id=reservation_id).first()
        return self.to_occurrence(reservation) if reservation else None

    @transaction.atomic()
    def save(self, occurrence: ReservationOccurrence) -> ReservationOccurrence:
        reservation = (
            Reservation.objects.select_for_update().get(id=occurrence.id)
            if occurrence.id
            else Reservation()
        )
        period = occurrence.time_period
        reservation.name = occurrence.name
        reservation.start_date = period.start_date
        reservation.start_time = period.start_time
        reservation.end_date = period.end_date
        reservation.end_time = period.end_time
        reservation.timezone = period.timezone
        reservation.series_id = occurrence.series_id
        reservation.conference_call_id = occurrence.conference_id
        reservation.occurrence_index = occurrence.occurrence_index
        reservation.original_date = occurrence.original_date
        reservation.status = occurrence.status
        reservation.reservable_type = occurrence.reservable_type
        reservation.comments = occurrence.comments
        reservation.location_summary = occurrence.location_summary
        reservation.attendees = list(occurrence.attendees)
        reservation.requested_by = occurrence.requested_by
        reservation.unique_id = occurrence.unique_id
        reservation.sequence = occurrence.sequence
        reservation.building_id = occurrence.building_id
        reservation.backup_building_id = occurrence.backup_building_id
        reservation.save()
        occurrence.id = reservation.id

        kept_ids = []
        for allocation in occurrence.room_allocations:
            room_allocation, _ = RoomAllocation.objects.update_or_create(
                id=allocation.id,
                reservation=reservation,
                defaults={"room_id": allocation.room_id, "comments": allocation.comments},
            )
            allocation.id = room_allocation.id
            kept_ids.append(room_allocation.id)
        RoomAllocation.objects.filter(reservation=reservation).exclude(id__in=kept_ids).delete()
        return occurrence

    @transaction.atomic()
    def cancel(self, occurrence: ReservationOccurrence) -> ReservationOccurrence:
        reservation = Reservation.objects.select_for_update().get(id=occurrence.id)
        reservation.status = ReservationStatus.CANCELLED
        reservation.save(update_fields=["status", "modified"])
        return dataclasses.replace(occurrence, status=ReservationStatus.CANCELLED)

    def get_by_series(
        self,
        series_id: int,
        start_date: datetime.date | None = None,
        end_date: datetime.date | None = None,
        include_inactive: bool = False,
    ) -> list[ReservationOccurrence]:
        queryset = self._queryset().for_series(series_id, start_date=start_date, end_date=end_date)
        if not include_inactive:
            queryset = queryset.active()
        return [self.to_occurrence(reservation) for reservation in queryset]

    def get_by_unique_id(
        self, unique_id: str, occurrence_index: int | None = None
    ) -> list[ReservationOccurrence]:
        queryset = self._queryset().active().filter(unique_id=unique_id)
        if occurrence_index is not None:
            queryset = queryset.filter(occurrence_index=occurrence_index)
        return [self.to_occurrence(reservation) for reservation in queryset.order_by("id")]

    def get_conference_call_members(
        self, conference_id: int, occurrence_index: int | None = None
    ) -> list[ReservationOccurrence]:
        queryset = self._queryset().for_conference_call(
            conference_id, occurrence_index=occurrence_index
        )
        return [self.to_occurrence(reservation) for reservation in queryset]

    def get_booked_periods(
        self,
        room_id: int,
        start: datetime.datetime,
        end: datetime.datetime,
        exclude_ids: Iterable[int] = (),
    ) -> list[BookedPeriod]:
        # local dates of other reservations may differ by a day from the requested ones
        queryset = Reservation.objects.overlapping_room(
            room_id,
            start.date() - datetime.timedelta(days=1),
            end.date() + datetime.timedelta(days=1),
        ).exclude(id__in=list(exclude_ids))
        return [
            BookedPeriod(
                reservation_id=reservation.id,
                start=reservation.start_datetime,
                end=reservation.end_datetime,
            )
            for reservation in queryset
        ]

    def get_building_id(self, room_id: int) -> int:
        building_id = Room.objects.filter(id=room_id).values_list("building_id", flat=True).first()
        if building_id is None:
            raise RoomReferenceError(f"Room {room_id} does not exist.")
        return building_id

    def create_series(self, pattern: RecurrencePattern) -> int:
        series = ReservationSeries(pattern=pattern.to_dict())
        series.save()
        return series.id

    def get_series_pattern(self, series_id: int) -> RecurrencePattern | None:
        series = ReservationSeries.objects.filter(id=series_id).first()
        return series.get_pattern() if series else None

    def update_series(
        self,
        series_id: int,
        pattern: RecurrencePattern | None = None,
        unique_id: str | None = None,
    ) -> None:
        series = ReservationSeries.objects.get(id=series_id)
        if pattern is not None:
            series.set_pattern(pattern)
        if unique_id is not None:
            series.unique_id = unique_id
        series.save()

    def create_conference_call(self, name: str) -> int:
        return ConferenceCall.objects.create(name=name).id

    @transaction.atomic()
    def apply_plan(self, plan: ReconciliationPlan) -> ReconciliationPlan:
        for occurrence in [*plan.to_create, *plan.to_update]:
            self.save(occurrence)
        plan.to_cancel = [self.cancel(occurrence) for occurrence in plan.to_cancel]
        return plan
