"""Pydantic domain models shared by pricing, booking and the API."""

import uuid
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from skylift.shared.types import BookingStatus, ServiceTier, SkyportType


class Location(BaseModel):
    """A fixed point a trip starts or ends at.

    Attributes:
        lat: Latitude in degrees.
        lng: Longitude in degrees.
        address: Human-readable label.
    """

    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)
    address: str = ""


class PricingQuote(BaseModel):
    """A priced, time-stamped fare estimate.

    Never mutated; a changed pickup, destination, or tier produces a new quote.
    """

    model_config = ConfigDict(frozen=True)

    tier: ServiceTier
    profile: str
    base_distance_km: float = Field(ge=0)
    route_complexity: float
    surge_multiplier: float
    base_fare: float = Field(ge=0)
    final_price: float = Field(ge=0)
    estimated_duration_min: float = Field(ge=0)
    quoted_at: datetime


class Booking(BaseModel):
    """A booked trip.

    The orchestrator owns it from creation until a terminal status; the
    persisted copy belongs to the booking store. Updates replace the
    whole record.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    pickup: Location
    destination: Location
    tier: ServiceTier
    quote: PricingQuote
    status: BookingStatus = BookingStatus.PENDING
    estimated_duration_min: float
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class Skyport(BaseModel):
    """A fixed pickup or drop-off site."""

    id: str
    name: str
    address: str | None = None
    lat: float
    lng: float
    capacity: int = 1
    type: SkyportType = SkyportType.VERTIPORT

    def to_location(self) -> Location:
        """Return the skyport as a bookable Location."""
        return Location(lat=self.lat, lng=self.lng, address=self.address or self.name)
