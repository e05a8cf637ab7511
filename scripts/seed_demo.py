"""Seed the database with demo data for an end-to-end demo.

Creates the Bengaluru skyport catalog and a short booking history for
the demo rider, so the booking list and tracking screens have data.

Usage:
    python -m scripts.seed_demo

All data is synthetic.
"""

import asyncio
import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from skylift.config.settings import get_settings
from skylift.db.models import Base, BookingRecord, SkyportRecord
from skylift.db.postgres import booking_to_record
from skylift.db.skyports import DEFAULT_SKYPORTS
from skylift.pricing.engine import get_profile, quote
from skylift.shared.models import Booking
from skylift.shared.types import BookingStatus, ServiceTier

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_USER_ID = "demo-rider-001"

# (pickup skyport, dropoff skyport, tier, status, days ago)
DEMO_TRIPS: list[tuple[str, str, ServiceTier, BookingStatus, int]] = [
    ("mg-road", "koramangala", ServiceTier.ECONOMY, BookingStatus.COMPLETED, 6),
    ("whitefield", "blr-airport", ServiceTier.PREMIUM, BookingStatus.COMPLETED, 3),
    ("hebbal", "electronic-city", ServiceTier.ECONOMY, BookingStatus.CANCELLED, 1),
]


async def _seed_skyports(session: AsyncSession) -> int:
    """Insert any catalog skyports missing from the table.

    Args:
        session: Active database session.

    Returns:
        Number of skyports created.
    """
    result = await session.execute(select(SkyportRecord.skyport_id))
    existing = set(result.scalars().all())
    created = 0
    for skyport in DEFAULT_SKYPORTS:
        if skyport.id in existing:
            logger.info("skyport already exists: %s", skyport.id)
            continue
        session.add(
            SkyportRecord(
                skyport_id=skyport.id,
                name=skyport.name,
                address=skyport.address,
                lat=skyport.lat,
                lng=skyport.lng,
                capacity=skyport.capacity,
                type=skyport.type.value,
            )
        )
        created += 1
    await session.flush()
    logger.info("created %d skyports", created)
    return created


def build_demo_bookings(now: datetime) -> list[Booking]:
    """Price and build the demo rider's booking history.

    Args:
        now: Reference time; trips are placed days before it.

    Returns:
        Bookings ready to insert.
    """
    ports = {s.id: s for s in DEFAULT_SKYPORTS}
    profile = get_profile(get_settings().pricing_profile)
    bookings = []
    for pickup_id, dropoff_id, tier, status, days_ago in DEMO_TRIPS:
        booked_at = now - timedelta(days=days_ago)
        pickup = ports[pickup_id].to_location()
        destination = ports[dropoff_id].to_location()
        pricing = quote(pickup, destination, tier, booked_at, profile)
        bookings.append(
            Booking(
                user_id=DEMO_USER_ID,
                pickup=pickup,
                destination=destination,
                tier=tier,
                quote=pricing,
                status=status,
                estimated_duration_min=pricing.estimated_duration_min,
                created_at=booked_at,
                updated_at=booked_at,
            )
        )
    return bookings


async def _seed_bookings(session: AsyncSession) -> int:
    """Insert the demo booking history unless the rider already has one.

    Args:
        session: Active database session.

    Returns:
        Number of bookings created.
    """
    result = await session.execute(
        select(BookingRecord.booking_id).where(BookingRecord.user_id == DEMO_USER_ID)
    )
    if result.first() is not None:
        logger.info("demo bookings already exist for %s", DEMO_USER_ID)
        return 0
    bookings = build_demo_bookings(datetime.now(UTC))
    for booking in bookings:
        session.add(booking_to_record(booking))
    await session.flush()
    logger.info("created %d demo bookings", len(bookings))
    return len(bookings)


async def seed_all(session: AsyncSession) -> dict:
    """Seed skyports and demo bookings.

    Args:
        session: Active database session.

    Returns:
        Summary counts.
    """
    skyports = await _seed_skyports(session)
    bookings = await _seed_bookings(session)
    logger.info("=== DEMO SEED COMPLETE ===")
    logger.info("Demo rider (X-User-Id): %s", DEMO_USER_ID)
    return {"skyports": skyports, "bookings": bookings, "demo_user_id": DEMO_USER_ID}


async def main() -> None:
    """Run the seed script against the configured database."""
    settings = get_settings()
    engine = create_async_engine(settings.database_url, echo=False)

    # Create tables if they don't exist
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with factory() as session:
        result = await seed_all(session)
        await session.commit()
        logger.info("Seed result: %s", result)

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
