from django.core.exceptions import ImproperlyConfigured


class ReservationServiceNotInjectedError(ImproperlyConfigured):
    pass


class ReservationError(Exception):
    """Base exception for reservation errors"""

    default_message = ""

    def __init__(self, message: str | None = None):
        if message is None:
            message = self.default_message
        super().__init__(message)


class InvalidRecurrenceError(ReservationError):
    default_message = "The recurrence pattern is not valid."


class PatternEmptyError(ReservationError):
    default_message = (
        "The recurrence pattern does not yield any occurrences. "
        "Please verify the start and end date of the recurrence."
    )


class CreationTimeoutError(ReservationError):
    default_message = "Reservation creation has timed out."


class RoomReferenceError(ReservationError):
    default_message = "Room reservation has no room allocated."


class ReservableUnavailableError(ReservationError):
    """Raised when a room is already booked for (part of) the requested period"""

    def __init__(self, room_id: int | None = None, message: str | None = None):
        self.room_id = room_id
        super().__init__(message or f"The room {room_id} is not available.")


class TooManyConflictsError(ReservationError):
    def __init__(self, number_of_conflicts: int, number_of_occurrences: int):
        self.number_of_conflicts = number_of_conflicts
        self.number_of_occurrences = number_of_occurrences
        super().__init__(
            "Too many conflicts occurred while creating the reservations: the room is not "
            f"available for {number_of_conflicts} of the {number_of_occurrences} occurrences. "
            "Please select a different room."
        )


class InvalidConferenceCallError(ReservationError):
    default_message = "A conference call requires at least two locations."


class BatchScopeError(ReservationError):
    default_message = "A notification batch is already active."


class CalendarError(ReservationError):
    """Base class for errors reported while updating the external calendar"""

    default_message = "An error occurred while updating the calendar."


class SeriesNotFoundError(CalendarError):
    default_message = "The recurring meeting was not found on the calendar."


class ReservationNotFoundError(ReservationError):
    default_message = "The reservation was not found."
