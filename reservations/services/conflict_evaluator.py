import datetime
import logging
from collections.abc import Iterable

from reservations.constants import ReservationStatus, RoomConflictsMode
from reservations.exceptions import ReservableUnavailableError, TooManyConflictsError
from reservations.services.dataclasses import BookedPeriod, TimePeriod


logger = logging.getLogger(__name__)

FIRST_OCCURRENCE_CONFLICT_MODES = frozenset(
    {
        RoomConflictsMode.SHOW_ALL,
        RoomConflictsMode.SHOW_FILTERED,
        RoomConflictsMode.SHOW_ALL_IF_ONLY_CONFLICTS,
        RoomConflictsMode.SHOW_FILTERED_IF_ONLY_CONFLICTS,
    }
)
AVAILABLE_ONCE_MODES = frozenset(
    {
        RoomConflictsMode.SHOW_ALL,
        RoomConflictsMode.SHOW_ALL_IF_ONLY_CONFLICTS,
        RoomConflictsMode.SHOW_FIRST,
        RoomConflictsMode.SHOW_FIRST_IF_ONLY_CONFLICTS,
    }
)
AVAILABLE_HALF_MODES = frozenset(
    {
        RoomConflictsMode.SHOW_FILTERED,
        RoomConflictsMode.SHOW_FILTERED_IF_ONLY_CONFLICTS,
        RoomConflictsMode.SHOW_FIRST_FILTERED,
        RoomConflictsMode.SHOW_FIRST_FILTERED_IF_ONLY_CONFLICTS,
    }
)


class ConflictEvaluator:
    """
    Decides whether a room can be booked for a period and how many room
    conflicts a recurring reservation may register, according to the
    configured RoomConflictsMode.
    """

    def __init__(
        self,
        conflicts_mode: RoomConflictsMode | str = RoomConflictsMode.SHOW_FILTERED_IF_ONLY_CONFLICTS,
    ):
        self.conflicts_mode = RoomConflictsMode(conflicts_mode)

    @staticmethod
    def overlaps(
        start_a: datetime.datetime,
        end_a: datetime.datetime,
        start_b: datetime.datetime,
        end_b: datetime.datetime,
    ) -> bool:
        """Half-open overlap test: [start_a, end_a) and [start_b, end_b)."""
        return start_a < end_b and start_b < end_a

    def is_available(self, candidate: TimePeriod, booked: Iterable[BookedPeriod]) -> bool:
        start, end = candidate.start_datetime, candidate.end_datetime
        return not any(self.overlaps(start, end, period.start, period.end) for period in booked)

    def ensure_available(
        self, room_id: int, candidate: TimePeriod, booked: Iterable[BookedPeriod]
    ) -> None:
        if not self.is_available(candidate, booked):
            logger.debug("Room %s is not available on %s", room_id, candidate.start_date)
            raise ReservableUnavailableError(
                room_id,
                f"The room {room_id} is not available on {candidate.start_date.isoformat()}.",
            )

    def allows_conflict_on_first_occurrence(
        self,
        *,
        existing_first_status: ReservationStatus | str | None = None,
        in_conference_call: bool = False,
    ) -> bool:
        """
        A new series may register a conflict on its first occurrence when the
        mode allows it, unless it belongs to a conference call. An existing
        series may only keep a conflict its first occurrence already had.
        """
        if self.conflicts_mode not in FIRST_OCCURRENCE_CONFLICT_MODES:
            return False
        if existing_first_status is not None:
            return existing_first_status == ReservationStatus.CONFLICT
        return not in_conference_call

    def max_conflicts_allowed(self, number_of_occurrences: int) -> int:
        if self.conflicts_mode in AVAILABLE_ONCE_MODES:
            return number_of_occurrences - 1
        if self.conflicts_mode in AVAILABLE_HALF_MODES:
            return number_of_occurrences // 2
        return 0

    def check_number_of_conflicts(self, number_of_conflicts: int, number_ok: int) -> None:
        total = number_of_conflicts + number_ok
        if number_of_conflicts > self.max_conflicts_allowed(total):
            raise TooManyConflictsError(number_of_conflicts, total)
