import datetime

from django.db.models import QuerySet

from reservations.constants import ACTIVE_RESERVATION_STATUSES


class ReservationQuerySet(QuerySet):
    """
    Custom QuerySet for Reservation model to handle specific queries.
    """

    def active(self):
        """
        Returns reservations that are confirmed or registered with a room conflict.
        """
        return self.filter(status__in=ACTIVE_RESERVATION_STATUSES)

    def for_series(
        self,
        series_id: int,
        start_date: datetime.date | None = None,
        end_date: datetime.date | None = None,
    ):
        """
        Returns the occurrences of a series ordered by occurrence index, optionally
        restricted to the occurrences starting within [start_date, end_date].
        """
        queryset = self.filter(series_id=series_id)
        if start_date is not None:
            queryset = queryset.filter(start_date__gte=start_date)
        if end_date is not None:
            queryset = queryset.filter(start_date__lte=end_date)
        return queryset.order_by("occurrence_index", "id")

    def for_conference_call(self, conference_call_id: int, occurrence_index: int | None = None):
        queryset = self.filter(conference_call_id=conference_call_id)
        if occurrence_index is not None:
            queryset = queryset.filter(occurrence_index=occurrence_index)
        return queryset.order_by("occurrence_index", "id")

    def overlapping_room(
        self, room_id: int, start_date: datetime.date, end_date: datetime.date
    ):
        """
        Returns active reservations allocating the room on any day touching the range.
        The exact time overlap is checked by the caller, in UTC.
        """
        return (
            self.active()
            .filter(
                room_allocations__room_id=room_id,
                start_date__lte=end_date,
                end_date__gte=start_date,
            )
            .distinct()
        )

    def with_allocations(self):
        return self.prefetch_related("room_allocations__room")
