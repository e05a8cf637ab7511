"""Shared types, enums, and constants used across the application."""

import enum


class ServiceTier(str, enum.Enum):
    """Service class selected by the rider."""

    ECONOMY = "economy"
    PREMIUM = "premium"


TIER_DISPLAY_NAMES: dict[ServiceTier, str] = {
    ServiceTier.ECONOMY: "SkyPod Economy",
    ServiceTier.PREMIUM: "AeroLuxe Premium",
}


class BookingStatus(str, enum.Enum):
    """Booking lifecycle state."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_TRANSIT = "in_transit"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TripEventType(str, enum.Enum):
    """Realtime event pushed to tracking clients."""

    VEHICLE_MOVED = "vehicle_moved"
    TRIP_COMPLETED = "trip_completed"
    STATUS_CHANGED = "status_changed"


class SkyportType(str, enum.Enum):
    """Kind of landing site."""

    VERTIPORT = "vertiport"
    ROOFTOP = "rooftop"
    HELIPAD = "helipad"
