import datetime

from django.db.models import Manager

from reservations.querysets import ReservationQuerySet


class ReservationManager(Manager):
    """
    Custom manager for Reservation model to handle specific queries.
    """

    def get_queryset(self) -> ReservationQuerySet:
        return ReservationQuerySet(self.model, using=self._db)

    def active(self):
        return self.get_queryset().active()

    def for_series(
        self,
        series_id: int,
        start_date: datetime.date | None = None,
        end_date: datetime.date | None = None,
    ):
        return self.get_queryset().for_series(series_id, start_date=start_date, end_date=end_date)

    def for_conference_call(self, conference_call_id: int, occurrence_index: int | None = None):
        return self.get_queryset().for_conference_call(
            conference_call_id, occurrence_index=occurrence_index
        )

    def overlapping_room(self, room_id: int, start_date: datetime.date, end_date: datetime.date):
        return self.get_queryset().overlapping_room(room_id, start_date, end_date)

    def with_allocations(self):
        return self.get_queryset().with_allocations()
