"""Shared test fixtures for SkyLift test suite."""

from datetime import UTC, datetime

import pytest

from skylift.config.settings import Settings
from skylift.db.memory import InMemoryBookingStore
from skylift.pricing.engine import quote
from skylift.shared.identity import UserIdentity
from skylift.shared.models import Booking, Location
from skylift.shared.types import BookingStatus, ServiceTier
from skylift.simulation.trip_simulator import SimulatorConfig


@pytest.fixture
def settings() -> Settings:
    """Provide test settings with safe defaults.

    Returns:
        Settings using the in-memory store and instant ticks.
    """
    return Settings(
        store_backend="memory",
        db_password="test-password",
        db_name="skylift_test",
        sim_tick_interval_seconds=0.0,
    )


@pytest.fixture
def mg_road() -> Location:
    """Pickup at the MG Road skyport."""
    return Location(lat=12.9716, lng=77.5946, address="MG Road")


@pytest.fixture
def koramangala() -> Location:
    """Destination at the Koramangala skyport."""
    return Location(lat=12.9352, lng=77.6146, address="Koramangala")


@pytest.fixture
def rider() -> UserIdentity:
    """An authenticated rider."""
    return UserIdentity(user_id="rider-1", email="rider@example.com")


@pytest.fixture
def store() -> InMemoryBookingStore:
    """Fresh in-memory booking store."""
    return InMemoryBookingStore()


@pytest.fixture
def instant_ticks() -> SimulatorConfig:
    """Simulator config that ticks without waiting."""
    return SimulatorConfig(tick_interval_seconds=0.0)


@pytest.fixture
def booking(mg_road: Location, koramangala: Location) -> Booking:
    """A confirmed economy booking owned by rider-1."""
    pricing = quote(
        mg_road, koramangala, ServiceTier.ECONOMY, datetime(2026, 3, 16, 14, 0, tzinfo=UTC)
    )
    return Booking(
        user_id="rider-1",
        pickup=mg_road,
        destination=koramangala,
        tier=ServiceTier.ECONOMY,
        quote=pricing,
        status=BookingStatus.CONFIRMED,
        estimated_duration_min=pricing.estimated_duration_min,
    )
