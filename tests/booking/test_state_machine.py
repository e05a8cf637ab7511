"""Tests for the booking lifecycle state machine."""

import pytest

from skylift.booking.state_machine import (
    TERMINAL_STATUSES,
    VALID_TRANSITIONS,
    can_transition,
    is_terminal,
    transition,
)
from skylift.shared.errors import InvalidTransition
from skylift.shared.types import BookingStatus

ALLOWED = [
    (BookingStatus.PENDING, BookingStatus.CONFIRMED),
    (BookingStatus.PENDING, BookingStatus.CANCELLED),
    (BookingStatus.CONFIRMED, BookingStatus.IN_TRANSIT),
    (BookingStatus.CONFIRMED, BookingStatus.CANCELLED),
    (BookingStatus.IN_TRANSIT, BookingStatus.COMPLETED),
]


class TestTransition:
    """Allowed and rejected status changes."""

    @pytest.mark.parametrize(("current", "target"), ALLOWED)
    def test_allowed_edges(self, current: BookingStatus, target: BookingStatus) -> None:
        """Every lifecycle edge returns the target."""
        assert transition(current, target) == target
        assert can_transition(current, target)

    def test_edge_table_is_complete(self) -> None:
        """No edges exist beyond the documented lifecycle."""
        edges = {(c, t) for c, targets in VALID_TRANSITIONS.items() for t in targets}
        assert edges == set(ALLOWED)

    @pytest.mark.parametrize(
        "current", [BookingStatus.IN_TRANSIT, BookingStatus.COMPLETED, BookingStatus.CANCELLED]
    )
    def test_cannot_cancel_after_departure(self, current: BookingStatus) -> None:
        """Cancellation is rejected once in transit or terminal."""
        with pytest.raises(InvalidTransition) as exc_info:
            transition(current, BookingStatus.CANCELLED)
        assert exc_info.value.current == current
        assert exc_info.value.target == BookingStatus.CANCELLED

    def test_cannot_skip_to_in_transit(self) -> None:
        """Pending bookings must be confirmed before flying."""
        with pytest.raises(InvalidTransition):
            transition(BookingStatus.PENDING, BookingStatus.IN_TRANSIT)

    def test_cannot_reopen_completed(self) -> None:
        """Completed bookings never move again."""
        for target in BookingStatus:
            assert not can_transition(BookingStatus.COMPLETED, target)


class TestTerminal:
    """Terminal status detection."""

    def test_terminal_statuses(self) -> None:
        """Completed and cancelled are terminal."""
        assert TERMINAL_STATUSES == {BookingStatus.COMPLETED, BookingStatus.CANCELLED}
        assert is_terminal(BookingStatus.COMPLETED)
        assert is_terminal(BookingStatus.CANCELLED)

    @pytest.mark.parametrize(
        "status", [BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.IN_TRANSIT]
    )
    def test_active_statuses(self, status: BookingStatus) -> None:
        """Statuses with outgoing edges are not terminal."""
        assert not is_terminal(status)
