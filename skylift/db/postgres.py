"""Postgres-backed booking store using SQLAlchemy async sessions."""

import logging
import uuid
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from skylift.db.models import BookingRecord
from skylift.db.session import session_scope
from skylift.db.store import ChangeFeed, Subscription
from skylift.shared.errors import BookingNotFound, InvalidTransition, PersistenceError
from skylift.shared.identity import UserIdentity, get_current_user
from skylift.shared.models import Booking, Location, PricingQuote
from skylift.shared.types import BookingStatus, ServiceTier

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

_UPDATABLE_COLUMNS: dict[str, str] = {
    "status": "status",
    "estimated_duration_min": "estimated_duration",
}


def _parse_id(booking_id: str) -> uuid.UUID:
    """Convert a booking id string to UUID.

    Raises:
        BookingNotFound: If the id is not a UUID, so it cannot exist.
    """
    try:
        return uuid.UUID(booking_id)
    except (TypeError, ValueError):
        raise BookingNotFound(booking_id) from None


def booking_to_record(booking: Booking) -> BookingRecord:
    """Convert a Booking to its ORM row.

    Args:
        booking: Domain booking.

    Returns:
        Unsaved BookingRecord.
    """
    quote = booking.quote
    return BookingRecord(
        booking_id=_parse_id(booking.id),
        user_id=booking.user_id,
        pickup_location=booking.pickup.model_dump(),
        destination=booking.destination.model_dump(),
        vehicle_tier=booking.tier.value,
        pricing_profile=quote.profile,
        base_distance=quote.base_distance_km,
        route_complexity=quote.route_complexity,
        surge_multiplier=quote.surge_multiplier,
        base_fare=quote.base_fare,
        final_price=quote.final_price,
        quoted_at=quote.quoted_at,
        status=booking.status.value,
        estimated_duration=booking.estimated_duration_min,
        created_at=booking.created_at,
        updated_at=booking.updated_at,
    )


def record_to_booking(record: BookingRecord) -> Booking:
    """Convert an ORM row to a Booking.

    Args:
        record: Loaded BookingRecord.

    Returns:
        Domain booking.
    """
    tier = ServiceTier(record.vehicle_tier)
    return Booking(
        id=str(record.booking_id),
        user_id=record.user_id,
        pickup=Location(**record.pickup_location),
        destination=Location(**record.destination),
        tier=tier,
        quote=PricingQuote(
            tier=tier,
            profile=record.pricing_profile,
            base_distance_km=record.base_distance,
            route_complexity=record.route_complexity,
            surge_multiplier=record.surge_multiplier,
            base_fare=record.base_fare,
            final_price=record.final_price,
            estimated_duration_min=record.estimated_duration,
            quoted_at=record.quoted_at,
        ),
        status=BookingStatus(record.status),
        estimated_duration_min=record.estimated_duration,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class PostgresBookingStore:
    """BookingStore over the ``bookings`` table.

    Each operation runs in its own session. Change events are published
    only after the transaction commits.
    """

    def __init__(
        self,
        session_factory: SessionFactory = session_scope,
        feed: ChangeFeed | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.feed = feed or ChangeFeed()

    async def insert(self, booking: Booking) -> str:
        """Persist a new booking.

        Raises:
            PersistenceError: If the insert fails; nothing is committed.
        """
        try:
            async with self._session_factory() as session:
                session.add(booking_to_record(booking))
                await session.flush()
        except SQLAlchemyError as exc:
            logger.exception("booking_insert_failed", extra={"booking_id": booking.id})
            raise PersistenceError(f"Could not save booking {booking.id}") from exc
        self.feed.publish(booking)
        return booking.id

    async def update(
        self,
        booking_id: str,
        *,
        expected_status: BookingStatus | None = None,
        **fields: object,
    ) -> Booking:
        """Apply a partial update in a single conditional UPDATE.

        Args:
            booking_id: Booking to update.
            expected_status: If given, the row is only written while its
                status still equals it.
            **fields: status and/or estimated_duration_min.

        Returns:
            The full updated record.

        Raises:
            ValueError: If a field is not updatable.
            BookingNotFound: If the id is unknown.
            InvalidTransition: If the stored status no longer matches
                expected_status.
            PersistenceError: If the write fails.
        """
        unknown = set(fields) - set(_UPDATABLE_COLUMNS)
        if unknown:
            raise ValueError(f"Fields not updatable: {sorted(unknown)}")
        key = _parse_id(booking_id)
        values: dict[str, object] = {"updated_at": datetime.now(UTC)}
        for name, value in fields.items():
            if isinstance(value, BookingStatus):
                value = value.value
            values[_UPDATABLE_COLUMNS[name]] = value

        stmt = update(BookingRecord).where(BookingRecord.booking_id == key)
        if expected_status is not None:
            stmt = stmt.where(BookingRecord.status == expected_status.value)
        stmt = stmt.values(**values).returning(BookingRecord)

        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                record = result.scalar_one_or_none()
                if record is None:
                    current = await self._load(session, key)
                    if current is None:
                        raise BookingNotFound(booking_id)
                    raise InvalidTransition(
                        BookingStatus(current.status),
                        fields.get("status", expected_status),
                    )
                updated = record_to_booking(record)
        except SQLAlchemyError as exc:
            logger.exception("booking_update_failed", extra={"booking_id": booking_id})
            raise PersistenceError(f"Could not update booking {booking_id}") from exc
        self.feed.publish(updated)
        return updated

    async def get(self, booking_id: str) -> Booking:
        """Read a booking.

        Raises:
            BookingNotFound: If the id is unknown.
            PersistenceError: If the read fails.
        """
        key = _parse_id(booking_id)
        try:
            async with self._session_factory() as session:
                record = await self._load(session, key)
        except SQLAlchemyError as exc:
            logger.exception("booking_read_failed", extra={"booking_id": booking_id})
            raise PersistenceError(f"Could not read booking {booking_id}") from exc
        if record is None:
            raise BookingNotFound(booking_id)
        return record_to_booking(record)

    async def list_by_user(self, user_id: str) -> list[Booking]:
        """Return a user's bookings, newest first.

        Raises:
            PersistenceError: If the read fails.
        """
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(BookingRecord)
                    .where(BookingRecord.user_id == user_id)
                    .order_by(BookingRecord.created_at.desc())
                )
                records = list(result.scalars().all())
        except SQLAlchemyError as exc:
            logger.exception("booking_list_failed", extra={"user_id": user_id})
            raise PersistenceError(f"Could not list bookings for {user_id}") from exc
        return [record_to_booking(r) for r in records]

    def subscribe(self, booking_id: str) -> Subscription:
        """Open a change channel for one booking."""
        return self.feed.subscribe(booking_id)

    def current_user(self) -> UserIdentity | None:
        """Return the identity bound to the running context."""
        return get_current_user()

    @staticmethod
    async def _load(session: AsyncSession, key: uuid.UUID) -> BookingRecord | None:
        result = await session.execute(
            select(BookingRecord).where(BookingRecord.booking_id == key)
        )
        return result.scalar_one_or_none()
