"""Booking lifecycle state machine.

pending -> confirmed -> in_transit -> completed, with cancelled reachable
from pending or confirmed only. completed and cancelled are terminal.
"""

from skylift.shared.errors import InvalidTransition
from skylift.shared.types import BookingStatus

VALID_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.IN_TRANSIT, BookingStatus.CANCELLED}),
    BookingStatus.IN_TRANSIT: frozenset({BookingStatus.COMPLETED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})


def is_terminal(status: BookingStatus) -> bool:
    """Return True if no further transition is possible from status."""
    return status in TERMINAL_STATUSES


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    """Check whether current -> target is an allowed edge.

    Args:
        current: Status the booking is in.
        target: Requested status.

    Returns:
        True if the transition is allowed.
    """
    return target in VALID_TRANSITIONS[current]


def transition(current: BookingStatus, target: BookingStatus) -> BookingStatus:
    """Validate a status change.

    Args:
        current: Status the booking is in.
        target: Requested status.

    Returns:
        The target status.

    Raises:
        InvalidTransition: If the edge is not allowed. The caller's
            status is left unchanged.
    """
    if not can_transition(current, target):
        raise InvalidTransition(current, target)
    return target
