"""Tests for the Postgres booking store with a mocked session."""

import uuid
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from skylift.db.models import BookingRecord
from skylift.db.postgres import PostgresBookingStore, booking_to_record, record_to_booking
from skylift.shared.errors import BookingNotFound, InvalidTransition, PersistenceError
from skylift.shared.models import Booking
from skylift.shared.types import BookingStatus


def _session_returning(record: BookingRecord | None) -> AsyncMock:
    """Build a mock AsyncSession whose execute() yields one record."""
    session = AsyncMock()
    session.add = MagicMock()
    result = MagicMock()
    result.scalar_one_or_none.return_value = record
    result.scalars.return_value.all.return_value = [record] if record else []
    session.execute.return_value = result
    return session


def _factory(session: AsyncMock):
    @asynccontextmanager
    async def factory():
        yield session

    return factory


class TestRecordConversion:
    """Domain <-> ORM mapping."""

    def test_round_trip(self, booking: Booking) -> None:
        """A booking survives conversion to a row and back."""
        assert record_to_booking(booking_to_record(booking)) == booking

    def test_row_columns(self, booking: Booking) -> None:
        """Enum values and quote fields land in their columns."""
        record = booking_to_record(booking)
        assert record.booking_id == uuid.UUID(booking.id)
        assert record.status == "confirmed"
        assert record.vehicle_tier == "economy"
        assert record.pricing_profile == "standard"
        assert record.pickup_location["lat"] == booking.pickup.lat
        assert record.final_price == booking.quote.final_price


class TestPostgresInsert:
    """Insert path."""

    async def test_insert_adds_and_publishes(self, booking: Booking) -> None:
        """Row is added, flushed, and the change is published."""
        session = _session_returning(None)
        store = PostgresBookingStore(_factory(session))
        sub = store.subscribe(booking.id)

        assert await store.insert(booking) == booking.id

        session.add.assert_called_once()
        session.flush.assert_awaited_once()
        assert await sub.get() == booking
        sub.close()

    async def test_insert_failure_becomes_persistence_error(self, booking: Booking) -> None:
        """Database errors surface as PersistenceError with nothing published."""
        session = _session_returning(None)
        session.flush.side_effect = OperationalError("INSERT", {}, Exception("down"))
        store = PostgresBookingStore(_factory(session))

        with (
            patch.object(store.feed, "publish") as publish,
            pytest.raises(PersistenceError),
        ):
            await store.insert(booking)
        publish.assert_not_called()


class TestPostgresGet:
    """Read path."""

    async def test_get_existing(self, booking: Booking) -> None:
        """Stored row converts back to the booking."""
        session = _session_returning(booking_to_record(booking))
        store = PostgresBookingStore(_factory(session))
        assert await store.get(booking.id) == booking

    async def test_get_missing(self) -> None:
        """No row means BookingNotFound."""
        store = PostgresBookingStore(_factory(_session_returning(None)))
        with pytest.raises(BookingNotFound):
            await store.get(str(uuid.uuid4()))

    async def test_non_uuid_id_is_not_found(self) -> None:
        """Malformed ids fail before touching the database."""
        session = _session_returning(None)
        store = PostgresBookingStore(_factory(session))
        with pytest.raises(BookingNotFound):
            await store.get("not-a-uuid")
        session.execute.assert_not_awaited()

    async def test_read_failure(self) -> None:
        """Database errors on read surface as PersistenceError."""
        session = _session_returning(None)
        session.execute.side_effect = SQLAlchemyError("boom")
        store = PostgresBookingStore(_factory(session))
        with pytest.raises(PersistenceError):
            await store.get(str(uuid.uuid4()))

    async def test_list_by_user(self, booking: Booking) -> None:
        """Rows for the user are converted in query order."""
        session = _session_returning(booking_to_record(booking))
        store = PostgresBookingStore(_factory(session))
        assert await store.list_by_user("rider-1") == [booking]


class TestPostgresUpdate:
    """Partial update path."""

    async def test_update_status(self, booking: Booking) -> None:
        """The returned row is converted and published."""
        flying = booking.model_copy(update={"status": BookingStatus.IN_TRANSIT})
        session = _session_returning(booking_to_record(flying))
        store = PostgresBookingStore(_factory(session))
        sub = store.subscribe(booking.id)

        updated = await store.update(booking.id, status=BookingStatus.IN_TRANSIT)

        assert updated.status == BookingStatus.IN_TRANSIT
        assert (await sub.get()).status == BookingStatus.IN_TRANSIT
        session.execute.assert_awaited_once()
        sub.close()

    async def test_expected_status_guards_the_write(self, booking: Booking) -> None:
        """With expected_status the UPDATE filters on the stored status."""
        flying = booking.model_copy(update={"status": BookingStatus.IN_TRANSIT})
        session = _session_returning(booking_to_record(flying))
        store = PostgresBookingStore(_factory(session))

        await store.update(
            booking.id,
            expected_status=BookingStatus.CONFIRMED,
            status=BookingStatus.IN_TRANSIT,
        )

        statement = session.execute.await_args.args[0]
        assert "bookings.status" in str(statement.whereclause)

    async def test_stale_status_is_rejected(self, booking: Booking) -> None:
        """A row whose status moved on raises InvalidTransition, unpublished."""
        cancelled = booking.model_copy(update={"status": BookingStatus.CANCELLED})
        session = _session_returning(None)
        no_row = session.execute.return_value
        current = MagicMock()
        current.scalar_one_or_none.return_value = booking_to_record(cancelled)
        session.execute.side_effect = [no_row, current]
        store = PostgresBookingStore(_factory(session))

        with (
            patch.object(store.feed, "publish") as publish,
            pytest.raises(InvalidTransition) as excinfo,
        ):
            await store.update(
                booking.id,
                expected_status=BookingStatus.CONFIRMED,
                status=BookingStatus.IN_TRANSIT,
            )
        assert excinfo.value.current == BookingStatus.CANCELLED
        publish.assert_not_called()

    async def test_update_rejects_unknown_field(self, booking: Booking) -> None:
        """Only status and duration are writable."""
        store = PostgresBookingStore(_factory(_session_returning(None)))
        with pytest.raises(ValueError, match="user_id"):
            await store.update(booking.id, user_id="someone-else")

    async def test_update_missing(self) -> None:
        """Updating a missing row raises BookingNotFound."""
        store = PostgresBookingStore(_factory(_session_returning(None)))
        with pytest.raises(BookingNotFound):
            await store.update(str(uuid.uuid4()), status=BookingStatus.CANCELLED)
