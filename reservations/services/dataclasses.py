import base64
import datetime
import zoneinfo
from collections.abc import Iterable
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from typing import Any

from reservations.constants import (
    ACTIVE_RESERVATION_STATUSES,
    ReservableType,
    ReservationStatus,
)


@dataclass(frozen=True)
class TimePeriod:
    start_date: datetime.date
    start_time: datetime.time
    end_date: datetime.date
    end_time: datetime.time
    timezone: str  # IANA timezone string (required)

    @property
    def tzinfo(self) -> zoneinfo.ZoneInfo:
        return zoneinfo.ZoneInfo(self.timezone)

    @property
    def start_datetime(self) -> datetime.datetime:
        return datetime.datetime.combine(self.start_date, self.start_time, tzinfo=self.tzinfo)

    @property
    def end_datetime(self) -> datetime.datetime:
        return datetime.datetime.combine(self.end_date, self.end_time, tzinfo=self.tzinfo)

    @property
    def duration(self) -> datetime.timedelta:
        return self.end_datetime - self.start_datetime

    def on_date(self, date: datetime.date) -> "TimePeriod":
        """Same wall-clock times, moved to start on ``date``."""
        return TimePeriod(
            start_date=date,
            start_time=self.start_time,
            end_date=date + (self.end_date - self.start_date),
            end_time=self.end_time,
            timezone=self.timezone,
        )


@dataclass(frozen=True)
class BookedPeriod:
    reservation_id: int
    start: datetime.datetime
    end: datetime.datetime


@dataclass
class RoomAllocationData:
    room_id: int
    building_id: int | None = None
    comments: str = ""
    time_period: TimePeriod | None = None
    id: int | None = None  # noqa: A003


@dataclass
class ReservationOccurrence:
    name: str
    time_period: TimePeriod
    room_allocations: list[RoomAllocationData] = dataclass_field(default_factory=list)
    reservable_type: ReservableType = ReservableType.ROOM
    status: ReservationStatus = ReservationStatus.CONFIRMED
    id: int | None = None  # noqa: A003
    series_id: int | None = None
    occurrence_index: int = 0
    original_date: datetime.date | None = None
    conference_id: int | None = None
    unique_id: str = ""
    sequence: int = 0
    comments: str = ""
    location_summary: str = ""
    attendees: list[str] = dataclass_field(default_factory=list)
    requested_by: str = ""
    building_id: int | None = None
    backup_building_id: int | None = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_RESERVATION_STATUSES

    @property
    def is_recurring(self) -> bool:
        return self.series_id is not None and self.occurrence_index > 0

    @property
    def is_date_modified(self) -> bool:
        return (
            self.original_date is not None and self.time_period.start_date != self.original_date
        )

    @property
    def appointment_ref(self) -> "ExternalAppointmentRef | None":
        """Reference to the calendar appointment, None until linked."""
        if not self.unique_id:
            return None
        return ExternalAppointmentRef(
            unique_id=self.unique_id,
            sequence=self.sequence,
            recurrence_id=(self.original_date or self.time_period.start_date)
            if self.is_recurring
            else None,
        )

    @property
    def room_allocation(self) -> RoomAllocationData | None:
        return self.room_allocations[0] if self.room_allocations else None

    @property
    def room_id(self) -> int | None:
        allocation = self.room_allocation
        return allocation.room_id if allocation else None


@dataclass
class ConferenceCallGroup:
    conference_id: int
    occurrence_index: int
    members: list[ReservationOccurrence] = dataclass_field(default_factory=list)

    @property
    def active_members(self) -> list[ReservationOccurrence]:
        return [member for member in self.members if member.is_active]

    @property
    def primary(self) -> ReservationOccurrence | None:
        """The surviving member with the lowest id."""
        candidates = [member for member in self.active_members if member.id is not None]
        if not candidates:
            return None
        return min(candidates, key=lambda member: member.id)

    @property
    def has_room_conflict(self) -> bool:
        return any(not member.room_allocations for member in self.active_members)

    @property
    def time_period(self) -> TimePeriod | None:
        primary = self.primary
        return primary.time_period if primary else None


@dataclass(frozen=True)
class ExternalAppointmentRef:
    unique_id: str
    sequence: int = 0
    recurrence_id: datetime.date | None = None


@dataclass
class ReconciliationPlan:
    anchor_index: int = 1
    dates: list[datetime.date] = dataclass_field(default_factory=list)
    to_create: list[ReservationOccurrence] = dataclass_field(default_factory=list)
    to_update: list[ReservationOccurrence] = dataclass_field(default_factory=list)
    to_cancel: list[ReservationOccurrence] = dataclass_field(default_factory=list)
    unchanged: list[ReservationOccurrence] = dataclass_field(default_factory=list)
    warnings: list[str] = dataclass_field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.to_create or self.to_update or self.to_cancel)

    @property
    def saved(self) -> list[ReservationOccurrence]:
        return sorted(
            [*self.to_create, *self.to_update], key=lambda occurrence: occurrence.occurrence_index
        )

    @property
    def number_of_conflicts(self) -> int:
        return sum(
            1 for occurrence in self.saved if occurrence.status == ReservationStatus.CONFLICT
        )


@dataclass
class OperationResult:
    saved: list[ReservationOccurrence] = dataclass_field(default_factory=list)
    cancelled: list[ReservationOccurrence] = dataclass_field(default_factory=list)
    warnings: list[str] = dataclass_field(default_factory=list)
    conference_conflicts: list[int] = dataclass_field(default_factory=list)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    def add_warning(self, message: str) -> None:
        if message not in self.warnings:
            self.warnings.append(message)

    def add_saved(self, occurrences: Iterable[ReservationOccurrence]) -> None:
        self.saved.extend(occurrences)

    def add_cancelled(self, occurrences: Iterable[ReservationOccurrence]) -> None:
        self.cancelled.extend(occurrences)


@dataclass(frozen=True)
class CalendarAttachment:
    filename: str
    content: bytes
    mimetype: str = "text/calendar"


@dataclass
class NotificationMessage:
    subject: str
    body: str
    recipients: list[str]
    attachments: list[CalendarAttachment] = dataclass_field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        """JSON-serializable form, used as celery task argument."""
        return {
            "subject": self.subject,
            "body": self.body,
            "recipients": list(self.recipients),
            "attachments": [
                {
                    "filename": attachment.filename,
                    "content": base64.b64encode(attachment.content).decode("ascii"),
                    "mimetype": attachment.mimetype,
                }
                for attachment in self.attachments
            ],
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "NotificationMessage":
        return cls(
            subject=payload["subject"],
            body=payload["body"],
            recipients=list(payload["recipients"]),
            attachments=[
                CalendarAttachment(
                    filename=attachment["filename"],
                    content=base64.b64decode(attachment["content"]),
                    mimetype=attachment.get("mimetype", "text/calendar"),
                )
                for attachment in payload.get("attachments", [])
            ],
        )
