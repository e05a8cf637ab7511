"""Tests for shared domain models and enums."""

import pydantic
import pytest

from skylift.shared.errors import BookingNotFound, InvalidTransition
from skylift.shared.models import Location
from skylift.shared.types import TIER_DISPLAY_NAMES, BookingStatus, ServiceTier


class TestLocation:
    """Location validation."""

    def test_rejects_out_of_range_latitude(self) -> None:
        """Latitude beyond 90 degrees is invalid."""
        with pytest.raises(pydantic.ValidationError):
            Location(lat=91.0, lng=0.0)

    def test_rejects_out_of_range_longitude(self) -> None:
        """Longitude beyond 180 degrees is invalid."""
        with pytest.raises(pydantic.ValidationError):
            Location(lat=0.0, lng=-181.0)

    def test_is_immutable(self, mg_road: Location) -> None:
        """Locations cannot be mutated after creation."""
        with pytest.raises(pydantic.ValidationError):
            mg_road.lat = 0.0


class TestEnums:
    """Enum values match stored strings."""

    def test_status_values(self) -> None:
        """Statuses serialize as lowercase strings."""
        assert [s.value for s in BookingStatus] == [
            "pending",
            "confirmed",
            "in_transit",
            "completed",
            "cancelled",
        ]

    def test_every_tier_has_display_name(self) -> None:
        """Each tier has a marketing name."""
        assert set(TIER_DISPLAY_NAMES) == set(ServiceTier)


class TestErrors:
    """Domain error payloads."""

    def test_invalid_transition_carries_states(self) -> None:
        """InvalidTransition exposes current and target."""
        exc = InvalidTransition(BookingStatus.COMPLETED, BookingStatus.CANCELLED)
        assert exc.current == BookingStatus.COMPLETED
        assert exc.target == BookingStatus.CANCELLED
        assert "completed" in str(exc)

    def test_booking_not_found_carries_id(self) -> None:
        """BookingNotFound exposes the missing id."""
        assert BookingNotFound("abc").booking_id == "abc"
