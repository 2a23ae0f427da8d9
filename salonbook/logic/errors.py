"""Typed failures raised by the scheduling and payroll core.

The HTTP layer maps these onto status codes in ``salonbook.main``.
"""

from typing import Iterable, Optional


class SchedulingError(Exception):
    code = "SCHEDULING_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class InvalidRequest(SchedulingError):
    code = "INVALID_REQUEST"


class NotFound(SchedulingError):
    code = "NOT_FOUND"


class InvalidTransition(SchedulingError):
    code = "INVALID_TRANSITION"


class BookingConflict(SchedulingError):
    code = "CONFLICT"

    def __init__(self, booking_numbers: Iterable[str], message: str = "Time slot is not available"):
        super().__init__(message)
        self.booking_numbers = list(booking_numbers)

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["conflicts"] = self.booking_numbers
        return body


class SlotUnavailable(SchedulingError):
    code = "SLOT_UNAVAILABLE"

    def __init__(self, message: str = "This time slot is no longer available"):
        super().__init__(message)


class AvailabilityConflict(SchedulingError):
    """A window overlaps another window of the same team member."""

    code = "CONFLICT"


class HasBookings(SchedulingError):
    code = "HAS_BOOKINGS"
