"""Error taxonomy for booking operations.

Pricing and geo helpers never raise. Everything here originates at the
orchestration or store boundary and is surfaced to the caller.
"""

from skylift.shared.types import BookingStatus


class SkyliftError(Exception):
    """Base class for all SkyLift domain errors."""


class ValidationError(SkyliftError):
    """Pickup, destination, or tier missing or malformed before quoting."""


class PersistenceError(SkyliftError):
    """Booking store read or write failed."""


class NotAuthenticated(SkyliftError):
    """Booking attempted without a user identity."""


class BookingNotFound(SkyliftError):
    """No booking exists with the requested id."""

    def __init__(self, booking_id: str) -> None:
        super().__init__(f"Booking {booking_id} not found")
        self.booking_id = booking_id


class InvalidTransition(SkyliftError):
    """State machine guard violation.

    Attributes:
        current: Status the booking is in.
        target: Status that was requested.
    """

    def __init__(self, current: BookingStatus, target: BookingStatus) -> None:
        super().__init__(
            f"Invalid transition from {current.value} to {target.value}"
        )
        self.current = current
        self.target = target
