"""Booking orchestrator: quoting, persistence and live tracking of trips.

Coordinates the pricing engine, the booking state machine, the booking
store and one TripSimulator per active booking. All mutation of a
booking's simulated state happens on the event loop; the store's
status is authoritative, and a terminal status pushed by the store
stops the local simulator.

Dependency direction: services -> pricing / booking / simulation -> db -> shared.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from zoneinfo import ZoneInfo

from skylift.booking.state_machine import is_terminal, transition
from skylift.config.settings import get_settings
from skylift.db.store import BookingStore, Subscription
from skylift.pricing.engine import PricingProfile, get_profile, quote
from skylift.shared.errors import (
    InvalidTransition,
    NotAuthenticated,
    PersistenceError,
    ValidationError,
)
from skylift.shared.models import Booking, Location, PricingQuote
from skylift.shared.types import BookingStatus, ServiceTier
from skylift.simulation.trip_simulator import (
    SimulatedVehicle,
    SimulatorConfig,
    TickCallback,
    TickResult,
    TripSimulator,
    cancel_requested,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
ArrivalCallback = Callable[[Booking], Awaitable[None]]


def local_clock(timezone_name: str) -> Clock:
    """Build a wall-clock source in the given timezone.

    Args:
        timezone_name: IANA timezone, e.g. Asia/Kolkata.

    Returns:
        Zero-argument callable returning the current local time.
    """
    zone = ZoneInfo(timezone_name)
    return lambda: datetime.now(zone)


class SimulatorHandle:
    """Exclusive owner of one booking's simulator and change channel.

    Releasing the handle stops the timer and closes the channel; no
    tick is applied afterwards.
    """

    def __init__(
        self,
        simulator: TripSimulator,
        subscription: Subscription,
        on_change: Callable[[Booking], Awaitable[None]],
    ) -> None:
        self.simulator = simulator
        self.subscription = subscription
        self._on_change = on_change
        self._listener: asyncio.Task[None] | None = None
        self._released = False

    @property
    def booking_id(self) -> str:
        """Booking this handle is bound to."""
        return self.simulator.booking_id

    @property
    def vehicle(self) -> SimulatedVehicle:
        """The simulated vehicle."""
        return self.simulator.vehicle

    @property
    def active(self) -> bool:
        """True until released."""
        return not self._released

    def start(self) -> None:
        """Start the simulator timer and the change listener."""
        self._listener = asyncio.create_task(
            self._listen(), name=f"booking-listener-{self.booking_id}"
        )
        self.simulator.start()

    async def _listen(self) -> None:
        async for record in self.subscription:
            await self._on_change(record)

    def release(self) -> None:
        """Stop ticking and close the change channel. Idempotent."""
        if self._released:
            return
        self._released = True
        self.simulator.stop()
        self.subscription.close()
        if self._listener is not None and self._listener is not asyncio.current_task():
            self._listener.cancel()

    async def wait(self) -> TickResult | None:
        """Wait for the simulator to finish.

        Returns:
            Final snapshot on arrival, or None if released first.
        """
        return await self.simulator.wait()

    async def aclose(self) -> None:
        """Release and wait for both background tasks to unwind."""
        self.release()
        await self.simulator.wait()
        if self._listener is not None and self._listener is not asyncio.current_task():
            try:
                await self._listener
            except asyncio.CancelledError:
                if cancel_requested():
                    raise


class BookingOrchestrator:
    """Top-level coordinator for quoting, booking and live tracking."""

    def __init__(
        self,
        store: BookingStore,
        *,
        clock: Clock | None = None,
        profile: PricingProfile | None = None,
        simulator_config: SimulatorConfig | None = None,
        on_tick: TickCallback | None = None,
        on_arrival: ArrivalCallback | None = None,
    ) -> None:
        if clock is None or profile is None or simulator_config is None:
            settings = get_settings()
            clock = clock or local_clock(settings.surge_timezone)
            profile = profile or get_profile(settings.pricing_profile)
            simulator_config = simulator_config or SimulatorConfig.from_settings(settings)
        self._store = store
        self._clock = clock
        self._profile = profile
        self._simulator_config = simulator_config
        self._on_tick = on_tick
        self._on_arrival = on_arrival
        self._handles: dict[str, SimulatorHandle] = {}

    @property
    def store(self) -> BookingStore:
        """The booking store in use."""
        return self._store

    @property
    def profile(self) -> PricingProfile:
        """The pricing profile applied to new quotes."""
        return self._profile

    def active_handle(self, booking_id: str) -> SimulatorHandle | None:
        """Return the live simulator handle for a booking, if any."""
        return self._handles.get(booking_id)

    def get_quote(
        self,
        pickup: Location | None,
        destination: Location | None,
        tier: ServiceTier | str | None,
    ) -> PricingQuote:
        """Validate inputs and price a trip at the current local time.

        Raises:
            ValidationError: If pickup, destination, or tier is missing.
        """
        pickup, destination, tier = _validate_trip(pickup, destination, tier)
        return quote(pickup, destination, tier, self._clock(), self._profile)

    async def create_booking(
        self,
        pickup: Location | None,
        destination: Location | None,
        tier: ServiceTier | str | None,
    ) -> Booking:
        """Quote and persist a new booking as confirmed.

        Nothing is written unless the caller is authenticated and the
        inputs are valid. A failed insert leaves no booking behind.

        Args:
            pickup: Trip start.
            destination: Trip end.
            tier: Service tier.

        Returns:
            The confirmed booking.

        Raises:
            NotAuthenticated: If the store reports no current user.
            ValidationError: If an input is missing or malformed.
            PersistenceError: If the store write fails.
        """
        user = self._store.current_user()
        if user is None:
            logger.info("booking_rejected_unauthenticated")
            raise NotAuthenticated("Sign in to book a trip")
        pickup, destination, tier = _validate_trip(pickup, destination, tier)
        pricing = quote(pickup, destination, tier, self._clock(), self._profile)

        booking = Booking(
            user_id=user.user_id,
            pickup=pickup,
            destination=destination,
            tier=tier,
            quote=pricing,
            status=BookingStatus.PENDING,
            estimated_duration_min=pricing.estimated_duration_min,
        )
        confirmed = booking.model_copy(
            update={"status": transition(booking.status, BookingStatus.CONFIRMED)}
        )
        await self._store.insert(confirmed)

        logger.info(
            "booking_created",
            extra={
                "booking_id": confirmed.id,
                "tier": tier.value,
                "final_price": pricing.final_price,
            },
        )
        return confirmed

    async def cancel_booking(self, booking_id: str) -> Booking:
        """Cancel a booking that has not started flying.

        Args:
            booking_id: Booking to cancel.

        Returns:
            The cancelled booking.

        Raises:
            BookingNotFound: If the id is unknown.
            InvalidTransition: If the booking is in transit or terminal, or
                its status changed since it was read.
            PersistenceError: If the store write fails.
        """
        booking = await self._store.get(booking_id)
        target = transition(booking.status, BookingStatus.CANCELLED)
        cancelled = await self._store.update(
            booking_id, expected_status=booking.status, status=target
        )
        self.detach_simulator(booking_id)
        logger.info("booking_cancelled", extra={"booking_id": booking_id})
        return cancelled

    async def attach_simulator(self, booking: Booking | str) -> SimulatorHandle:
        """Start live tracking for a booking.

        Any earlier simulator for the same booking is cancelled first.
        A confirmed booking moves to in_transit; an in_transit booking
        resumes from its pickup.

        Args:
            booking: Booking or booking id.

        Returns:
            Handle owning the new simulator.

        Raises:
            BookingNotFound: If the id is unknown.
            InvalidTransition: If the booking cannot be in transit, or its
                status changed since it was read.
            PersistenceError: If the store read or write fails.
        """
        booking_id = booking if isinstance(booking, str) else booking.id
        self.detach_simulator(booking_id)

        current = await self._store.get(booking_id)
        if current.status != BookingStatus.IN_TRANSIT:
            target = transition(current.status, BookingStatus.IN_TRANSIT)
            current = await self._store.update(
                booking_id, expected_status=current.status, status=target
            )

        simulator = TripSimulator(
            booking_id,
            current.pickup,
            current.destination,
            current.estimated_duration_min,
            self._simulator_config,
            on_tick=self._on_tick,
            on_arrival=self._complete_trip,
        )
        handle = SimulatorHandle(simulator, self._store.subscribe(booking_id), self.reconcile)

        # Another attach may have run while awaiting the store.
        self.detach_simulator(booking_id)
        self._handles[booking_id] = handle
        handle.start()
        return handle

    def detach_simulator(self, booking_id: str) -> bool:
        """Stop tracking a booking.

        Args:
            booking_id: Booking whose simulator should stop.

        Returns:
            True if a simulator was running.
        """
        handle = self._handles.pop(booking_id, None)
        if handle is None:
            return False
        handle.release()
        return True

    async def reconcile(self, record: Booking) -> None:
        """Align local simulated state with a record pushed by the store.

        The store wins: a terminal status stops the local simulator even
        mid-flight.

        Args:
            record: Full booking record from the change channel.
        """
        handle = self._handles.get(record.id)
        if handle is None:
            return
        if not is_terminal(record.status) or handle.simulator.arrived:
            return
        logger.info(
            "simulator_reconciled_to_store",
            extra={"booking_id": record.id, "status": record.status.value},
        )
        self.detach_simulator(record.id)

    async def _complete_trip(self, result: TickResult) -> None:
        """Arrival callback: persist completion and notify.

        A store failure is logged and leaves the booking as it was; the
        vehicle stays frozen at its last position.
        """
        booking_id = result.booking_id
        try:
            booking = await self._store.get(booking_id)
            if not is_terminal(booking.status):
                target = transition(booking.status, BookingStatus.COMPLETED)
                booking = await self._store.update(
                    booking_id, expected_status=booking.status, status=target
                )
        except (PersistenceError, InvalidTransition):
            logger.exception("trip_completion_not_persisted", extra={"booking_id": booking_id})
            return
        finally:
            handle = self._handles.get(booking_id)
            if handle is not None and handle.simulator.arrived:
                self.detach_simulator(booking_id)

        logger.info(
            "trip_completed",
            extra={"booking_id": booking_id, "status": booking.status.value},
        )
        if self._on_arrival is not None and booking.status == BookingStatus.COMPLETED:
            await self._on_arrival(booking)

    async def shutdown(self) -> None:
        """Detach every active simulator and wait for them to stop."""
        handles = list(self._handles.values())
        self._handles.clear()
        for handle in handles:
            await handle.aclose()
        logger.info("booking_orchestrator_shutdown", extra={"released": len(handles)})


def _validate_trip(
    pickup: Location | None,
    destination: Location | None,
    tier: ServiceTier | str | None,
) -> tuple[Location, Location, ServiceTier]:
    """Reject missing or malformed trip inputs before pricing.

    Raises:
        ValidationError: Naming the first bad input.
    """
    if pickup is None:
        raise ValidationError("Pickup location is required")
    if destination is None:
        raise ValidationError("Destination is required")
    if tier is None:
        raise ValidationError("Service tier is required")
    try:
        tier = ServiceTier(tier)
    except ValueError:
        valid = ", ".join(t.value for t in ServiceTier)
        raise ValidationError(f"Unknown service tier '{tier}'. Must be one of: {valid}") from None
    return pickup, destination, tier
