"""Booking store contract and in-process change feed.

The orchestrator talks to persistence only through BookingStore. Change
notifications are delivered as full booking records over per-booking
queues, so a redelivered record is harmless: it simply replaces the
previous one.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from skylift.shared.identity import UserIdentity
    from skylift.shared.models import Booking
    from skylift.shared.types import BookingStatus

logger = logging.getLogger(__name__)


class Subscription:
    """Channel of change events for one booking.

    Iterate with ``async for``; iteration ends once close() is called.
    close() is idempotent and removes the channel from its feed at once.
    """

    def __init__(self, booking_id: str, feed: ChangeFeed) -> None:
        self.booking_id = booking_id
        self._feed = feed
        self._queue: asyncio.Queue[Booking | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        """True once the channel has been released."""
        return self._closed

    def deliver(self, booking: Booking) -> None:
        """Enqueue a changed record. Dropped if the channel is closed."""
        if not self._closed:
            self._queue.put_nowait(booking)

    async def get(self) -> Booking | None:
        """Wait for the next record.

        Returns:
            The next changed booking, or None once closed.
        """
        if self._closed and self._queue.empty():
            return None
        return await self._queue.get()

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> Booking:
        record = await self.get()
        if record is None:
            raise StopAsyncIteration
        return record

    def close(self) -> None:
        """Release the channel."""
        if self._closed:
            return
        self._closed = True
        self._feed.unsubscribe(self)
        self._queue.put_nowait(None)


class ChangeFeed:
    """Fan-out of booking changes to per-booking subscriptions."""

    def __init__(self) -> None:
        self._subscribers: dict[str, set[Subscription]] = {}

    def subscribe(self, booking_id: str) -> Subscription:
        """Open a channel for one booking.

        Args:
            booking_id: Booking to watch.

        Returns:
            A new Subscription.
        """
        subscription = Subscription(booking_id, self)
        self._subscribers.setdefault(booking_id, set()).add(subscription)
        logger.debug(
            "change_feed_subscribed",
            extra={"booking_id": booking_id, "total": len(self._subscribers[booking_id])},
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a channel. Prefer Subscription.close()."""
        subscribers = self._subscribers.get(subscription.booking_id)
        if subscribers is None:
            return
        subscribers.discard(subscription)
        if not subscribers:
            del self._subscribers[subscription.booking_id]

    def subscriber_count(self, booking_id: str) -> int:
        """Return the number of open channels for a booking."""
        return len(self._subscribers.get(booking_id, ()))

    def publish(self, booking: Booking) -> int:
        """Push a changed record to every channel watching it.

        Args:
            booking: Full updated record.

        Returns:
            Number of channels the record was delivered to.
        """
        subscribers = list(self._subscribers.get(booking.id, ()))
        for subscription in subscribers:
            subscription.deliver(booking.model_copy(deep=True))
        return len(subscribers)


class BookingStore(Protocol):
    """CRUD + subscribe contract the orchestrator depends on.

    Write and read failures raise PersistenceError; get() raises
    BookingNotFound for an unknown id.
    """

    async def insert(self, booking: Booking) -> str:
        """Persist a new booking and return its id."""
        ...

    async def update(
        self,
        booking_id: str,
        *,
        expected_status: BookingStatus | None = None,
        **fields: object,
    ) -> Booking:
        """Apply a partial update and return the full new record.

        With expected_status the write is conditional: it raises
        InvalidTransition if the stored status has moved on.
        """
        ...

    async def get(self, booking_id: str) -> Booking:
        """Read the current persisted record."""
        ...

    async def list_by_user(self, user_id: str) -> list[Booking]:
        """Return a user's bookings, newest first."""
        ...

    def subscribe(self, booking_id: str) -> Subscription:
        """Open a change channel for one booking."""
        ...

    def current_user(self) -> UserIdentity | None:
        """Return the identity of the caller, if authenticated."""
        ...
