"""SQLAlchemy ORM models for the SkyLift operational database."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from skylift.shared.types import BookingStatus, SkyportType


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class BookingRecord(Base):
    """Persisted trip booking.

    Attributes:
        booking_id: Primary key UUID.
        status: Booking lifecycle state.
    """

    __tablename__ = "bookings"

    booking_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[str] = mapped_column(String(128), index=True)
    pickup_location: Mapped[dict] = mapped_column(JSONB)
    destination: Mapped[dict] = mapped_column(JSONB)
    vehicle_tier: Mapped[str] = mapped_column(String(20))
    pricing_profile: Mapped[str] = mapped_column(String(20))
    base_distance: Mapped[float] = mapped_column(Float)
    route_complexity: Mapped[float] = mapped_column(Float)
    surge_multiplier: Mapped[float] = mapped_column(Float)
    base_fare: Mapped[float] = mapped_column(Float, default=0.0)
    final_price: Mapped[float] = mapped_column(Float)
    quoted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    status: Mapped[str] = mapped_column(String(20), default=BookingStatus.PENDING.value)
    estimated_duration: Mapped[float] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("ix_bookings_user_created", "user_id", "created_at"),
    )


class SkyportRecord(Base):
    """Fixed pickup / drop-off site.

    Attributes:
        skyport_id: Primary key slug.
        name: Display name.
    """

    __tablename__ = "skyports"

    skyport_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    address: Mapped[str | None] = mapped_column(String(300))
    lat: Mapped[float] = mapped_column(Float)
    lng: Mapped[float] = mapped_column(Float)
    capacity: Mapped[int] = mapped_column(Integer, default=1)
    type: Mapped[str] = mapped_column(String(20), default=SkyportType.VERTIPORT.value)
