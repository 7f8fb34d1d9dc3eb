from django.db import models

from common.models import BaseModel, LocalTimePeriodModel
from reservations.constants import ReservableType, ReservationStatus
from reservations.managers import ReservationManager
from reservations.recurrence import RecurrencePattern


class Building(BaseModel):
    code = models.CharField(max_length=32, unique=True)
    name = models.CharField(max_length=255, blank=True)
    timezone = models.CharField(max_length=64, default="UTC", help_text="IANA timezone name")

    def __str__(self):
        return self.name or self.code


class Room(BaseModel):
    building = models.ForeignKey(Building, on_delete=models.CASCADE, related_name="rooms")
    code = models.CharField(max_length=32)
    name = models.CharField(max_length=255, blank=True)
    capacity = models.PositiveIntegerField(default=1)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["building", "code"], name="unique_room_per_building"),
        ]

    def __str__(self):
        return f"{self.building.code}-{self.code}"


class ReservationSeries(BaseModel):
    """
    A recurring series. The pattern is stored in its serialized form and the
    unique id links the series to the appointment on the external calendar.
    """

    pattern = models.JSONField(default=dict)
    unique_id = models.CharField(max_length=255, blank=True, db_index=True)

    def __str__(self):
        return f"Series {self.pk}: {self.pattern.get('recurrence_type', '')}"

    def get_pattern(self) -> RecurrencePattern | None:
        if not self.pattern:
            return None
        return RecurrencePattern.from_dict(self.pattern)

    def set_pattern(self, pattern: RecurrencePattern) -> None:
        self.pattern = pattern.to_dict()


class ConferenceCall(BaseModel):
    name = models.CharField(max_length=255, blank=True)

    def __str__(self):
        return f"Conference call {self.pk}: {self.name}"


class Reservation(BaseModel, LocalTimePeriodModel):
    series = models.ForeignKey(
        ReservationSeries,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reservations",
    )
    conference_call = models.ForeignKey(
        ConferenceCall,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reservations",
    )
    occurrence_index = models.PositiveIntegerField(
        default=0, help_text="1-based index within the series, 0 for single reservations"
    )
    original_date = models.DateField(
        null=True, blank=True, help_text="Date the recurrence pattern assigned to this occurrence"
    )
    status = models.CharField(
        max_length=16,
        choices=ReservationStatus,
        default=ReservationStatus.CONFIRMED,
        db_index=True,
    )
    reservable_type = models.CharField(
        max_length=16, choices=ReservableType, default=ReservableType.ROOM
    )
    name = models.CharField(max_length=255, blank=True)
    comments = models.TextField(blank=True)
    location_summary = models.TextField(blank=True)
    attendees = models.JSONField(default=list, blank=True)
    requested_by = models.EmailField(blank=True)
    unique_id = models.CharField(max_length=255, blank=True, db_index=True)
    sequence = models.PositiveIntegerField(default=0)
    building = models.ForeignKey(
        Building,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reservations",
    )
    backup_building = models.ForeignKey(
        Building,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Building of the requested room when the occurrence could not be allocated",
    )

    objects: ReservationManager = ReservationManager()

    class Meta:
        ordering = ("start_date", "start_time", "id")

    def __str__(self):
        return f"{self.name} ({self.start_date} {self.start_time}-{self.end_time})"


class RoomAllocation(BaseModel):
    reservation = models.ForeignKey(
        Reservation, on_delete=models.CASCADE, related_name="room_allocations"
    )
    room = models.ForeignKey(Room, on_delete=models.PROTECT, related_name="allocations")
    comments = models.TextField(blank=True)

    def __str__(self):
        return f"{self.room} for reservation {self.reservation_id}"
