"""In-memory booking store for local runs, demos and tests."""

import logging
from datetime import UTC, datetime

from skylift.db.store import ChangeFeed, Subscription
from skylift.shared.errors import BookingNotFound, InvalidTransition, PersistenceError
from skylift.shared.identity import UserIdentity, get_current_user
from skylift.shared.models import Booking
from skylift.shared.types import BookingStatus

logger = logging.getLogger(__name__)


class InMemoryBookingStore:
    """Dict-backed BookingStore.

    Records are copied on the way in and out so callers never share
    state with the store. Every successful write is published to the
    change feed.
    """

    def __init__(self, feed: ChangeFeed | None = None) -> None:
        self._records: dict[str, Booking] = {}
        self.feed = feed or ChangeFeed()

    async def insert(self, booking: Booking) -> str:
        """Persist a new booking.

        Args:
            booking: Booking to store.

        Returns:
            The booking id.

        Raises:
            PersistenceError: If the id already exists.
        """
        if booking.id in self._records:
            raise PersistenceError(f"Booking {booking.id} already exists")
        record = booking.model_copy(deep=True)
        self._records[record.id] = record
        logger.info("booking_inserted", extra={"booking_id": record.id})
        self.feed.publish(record)
        return record.id

    async def update(
        self,
        booking_id: str,
        *,
        expected_status: BookingStatus | None = None,
        **fields: object,
    ) -> Booking:
        """Apply a partial update.

        Args:
            booking_id: Booking to update.
            expected_status: If given, the write only applies while the
                stored status still equals it.
            **fields: Booking fields to replace.

        Returns:
            The full updated record.

        Raises:
            BookingNotFound: If the id is unknown.
            InvalidTransition: If the stored status no longer matches
                expected_status.
        """
        current = self._records.get(booking_id)
        if current is None:
            raise BookingNotFound(booking_id)
        if expected_status is not None and current.status != expected_status:
            raise InvalidTransition(current.status, fields.get("status", expected_status))
        updated = current.model_copy(
            update={**fields, "updated_at": datetime.now(UTC)}, deep=True
        )
        self._records[booking_id] = updated
        logger.info(
            "booking_updated",
            extra={"booking_id": booking_id, "fields": sorted(fields)},
        )
        self.feed.publish(updated)
        return updated.model_copy(deep=True)

    async def get(self, booking_id: str) -> Booking:
        """Read a booking.

        Raises:
            BookingNotFound: If the id is unknown.
        """
        record = self._records.get(booking_id)
        if record is None:
            raise BookingNotFound(booking_id)
        return record.model_copy(deep=True)

    async def list_by_user(self, user_id: str) -> list[Booking]:
        """Return a user's bookings, newest first."""
        records = [r for r in self._records.values() if r.user_id == user_id]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return [r.model_copy(deep=True) for r in records]

    def subscribe(self, booking_id: str) -> Subscription:
        """Open a change channel for one booking."""
        return self.feed.subscribe(booking_id)

    def current_user(self) -> UserIdentity | None:
        """Return the identity bound to the running context."""
        return get_current_user()
