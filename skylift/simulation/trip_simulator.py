"""Trip simulator: synthetic vehicle motion toward a destination.

Each tick moves the vehicle a fixed fraction of the remaining lat/lng
delta and decrements the ETA. The approach is exponential, so arrival
is an epsilon test on the pre-move delta rather than equality. A trip
whose start already lies within epsilon of the destination arrives
before any timer is scheduled.

The async runner advances only on a periodic asyncio timer. stop()
cancels it; no tick is applied after stop() returns.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from skylift.config.settings import Settings
from skylift.shared.models import Location

logger = logging.getLogger(__name__)


@dataclass
class SimulatedVehicle:
    """Interpolated position standing in for real telemetry.

    Attributes:
        booking_id: Bound booking (non-owning reference).
        lat: Current latitude in degrees.
        lng: Current longitude in degrees.
        eta_min: Remaining minutes shown to the rider.
    """

    booking_id: str
    lat: float
    lng: float
    eta_min: float


@dataclass(frozen=True)
class SimulatorConfig:
    """Tick timing and motion constants.

    Attributes:
        tick_interval_seconds: Wall-clock seconds between ticks.
        step_fraction: Share of the remaining delta covered per tick.
        eta_step_min: Minutes removed from the ETA per tick.
        arrival_epsilon_deg: Per-axis arrival threshold in degrees.
    """

    tick_interval_seconds: float = 3.0
    step_fraction: float = 0.1
    eta_step_min: float = 0.5
    arrival_epsilon_deg: float = 0.001

    def __post_init__(self) -> None:
        """Reject values for which the vehicle never converges.

        Raises:
            ValueError: If any constant is out of range.
        """
        if not 0 < self.step_fraction <= 1:
            raise ValueError(f"step_fraction must be in (0, 1], got {self.step_fraction}")
        if not self.arrival_epsilon_deg > 0:
            raise ValueError(
                f"arrival_epsilon_deg must be positive, got {self.arrival_epsilon_deg}"
            )
        if not self.tick_interval_seconds >= 0:
            raise ValueError(
                f"tick_interval_seconds must be >= 0, got {self.tick_interval_seconds}"
            )
        if not self.eta_step_min >= 0:
            raise ValueError(f"eta_step_min must be >= 0, got {self.eta_step_min}")

    @classmethod
    def from_settings(cls, settings: Settings) -> "SimulatorConfig":
        """Build a config from application settings."""
        return cls(
            tick_interval_seconds=settings.sim_tick_interval_seconds,
            step_fraction=settings.sim_step_fraction,
            eta_step_min=settings.sim_eta_step_min,
            arrival_epsilon_deg=settings.sim_arrival_epsilon_deg,
        )


@dataclass(frozen=True)
class TickResult:
    """Snapshot emitted after each tick.

    Attributes:
        booking_id: Bound booking.
        tick: Number of movement ticks applied so far.
        lat: Vehicle latitude.
        lng: Vehicle longitude.
        eta_min: Remaining ETA in minutes.
        arrived: True once the vehicle is within epsilon of the destination.
    """

    booking_id: str
    tick: int
    lat: float
    lng: float
    eta_min: float
    arrived: bool


TickCallback = Callable[[TickResult], Awaitable[None]]


class TripSimulator:
    """Simulates one vehicle flying from start to destination.

    Holds exclusive ownership of its SimulatedVehicle. The pure step()
    is usable without an event loop; start() runs it on a timer.
    """

    def __init__(
        self,
        booking_id: str,
        start: Location,
        destination: Location,
        eta_min: float,
        config: SimulatorConfig | None = None,
        *,
        on_tick: TickCallback | None = None,
        on_arrival: TickCallback | None = None,
    ) -> None:
        self._config = config or SimulatorConfig()
        self._destination = destination
        self._vehicle = SimulatedVehicle(
            booking_id=booking_id,
            lat=start.lat,
            lng=start.lng,
            eta_min=max(0.0, eta_min),
        )
        self._on_tick = on_tick
        self._on_arrival = on_arrival
        self._ticks = 0
        self._arrived = False
        self._stopped = False
        self._task: asyncio.Task[TickResult | None] | None = None

    @property
    def booking_id(self) -> str:
        """Booking this simulator is bound to."""
        return self._vehicle.booking_id

    @property
    def vehicle(self) -> SimulatedVehicle:
        """The simulated vehicle (live object; do not mutate)."""
        return self._vehicle

    @property
    def ticks(self) -> int:
        """Movement ticks applied so far."""
        return self._ticks

    @property
    def arrived(self) -> bool:
        """True once arrival has been detected."""
        return self._arrived

    @property
    def running(self) -> bool:
        """True while the timer task is scheduled and not finished."""
        return self._task is not None and not self._task.done()

    def remaining_delta(self) -> tuple[float, float]:
        """Return (lat_delta, lng_delta) from vehicle to destination."""
        return (
            self._destination.lat - self._vehicle.lat,
            self._destination.lng - self._vehicle.lng,
        )

    def _within_epsilon(self, lat_delta: float, lng_delta: float) -> bool:
        epsilon = self._config.arrival_epsilon_deg
        return abs(lat_delta) < epsilon and abs(lng_delta) < epsilon

    def _snapshot(self) -> TickResult:
        return TickResult(
            booking_id=self._vehicle.booking_id,
            tick=self._ticks,
            lat=self._vehicle.lat,
            lng=self._vehicle.lng,
            eta_min=self._vehicle.eta_min,
            arrived=self._arrived,
        )

    def check_arrival(self) -> TickResult:
        """Run the arrival test without moving the vehicle.

        Returns:
            Current snapshot; arrived is set if within epsilon.
        """
        if not self._arrived and self._within_epsilon(*self.remaining_delta()):
            self._arrived = True
        return self._snapshot()

    def step(self) -> TickResult:
        """Apply one tick.

        If the pre-move delta is already within epsilon the vehicle is
        marked arrived and does not move. Otherwise it covers
        step_fraction of the delta and the ETA drops by eta_step_min.

        The web tracking screen moves and decrements the ETA on the
        arrival tick as well. Here the arrival tick is a no-move tick,
        so a vehicle already at its destination finishes in zero
        movement ticks and the ETA shown at arrival is the last moved
        value.

        Returns:
            Snapshot after the tick.
        """
        if self._arrived:
            return self._snapshot()
        lat_delta, lng_delta = self.remaining_delta()
        if self._within_epsilon(lat_delta, lng_delta):
            self._arrived = True
            return self._snapshot()

        fraction = self._config.step_fraction
        self._vehicle.lat += lat_delta * fraction
        self._vehicle.lng += lng_delta * fraction
        self._vehicle.eta_min = max(0.0, self._vehicle.eta_min - self._config.eta_step_min)
        self._ticks += 1
        return self._snapshot()

    def ticks_to_arrival(self) -> int:
        """Count movement ticks left before arrival, without side effects.

        Returns:
            Number of step() calls that will move the vehicle.
        """
        lat_delta, lng_delta = self.remaining_delta()
        remaining = 1.0 - self._config.step_fraction
        count = 0
        while not self._within_epsilon(lat_delta, lng_delta):
            lat_delta *= remaining
            lng_delta *= remaining
            count += 1
        return count

    async def run(self) -> TickResult | None:
        """Tick on the configured interval until arrival or stop.

        Returns:
            Final snapshot on arrival, or None if stopped first.
        """
        result = self.check_arrival()
        while not result.arrived:
            await asyncio.sleep(self._config.tick_interval_seconds)
            if self._stopped:
                return None
            result = self.step()
            if not result.arrived:
                await self._notify(self._on_tick, result)

        logger.info(
            "trip_simulator_arrived",
            extra={"booking_id": self.booking_id, "ticks": self._ticks},
        )
        await self._notify(self._on_arrival, result)
        return result

    async def _notify(self, callback: TickCallback | None, result: TickResult) -> None:
        """Invoke a callback, logging failures instead of raising."""
        if callback is None or self._stopped:
            return
        try:
            await callback(result)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(
                "trip_simulator_callback_failed",
                extra={"booking_id": self.booking_id, "tick": result.tick},
            )

    def start(self) -> asyncio.Task[TickResult | None]:
        """Schedule the runner on the current event loop.

        Returns:
            The timer task.

        Raises:
            RuntimeError: If already started or stopped.
        """
        if self._task is not None or self._stopped:
            raise RuntimeError(f"Simulator for booking {self.booking_id} already started")
        self._task = asyncio.create_task(
            self.run(), name=f"trip-simulator-{self.booking_id}"
        )
        logger.info(
            "trip_simulator_started",
            extra={"booking_id": self.booking_id, "eta_min": self._vehicle.eta_min},
        )
        return self._task

    def stop(self) -> None:
        """Cancel the timer. Safe to call repeatedly and from callbacks."""
        if self._stopped:
            return
        self._stopped = True
        if self._task is not None and not self._task.done():
            if self._task is not asyncio.current_task():
                self._task.cancel()
        logger.info(
            "trip_simulator_stopped",
            extra={"booking_id": self.booking_id, "ticks": self._ticks},
        )

    async def wait(self) -> TickResult | None:
        """Await the runner's completion.

        Cancellation of the waiting task itself is re-raised.

        Returns:
            Final snapshot on arrival, or None if stopped or never started.
        """
        if self._task is None:
            return None
        try:
            return await self._task
        except asyncio.CancelledError:
            if cancel_requested():
                raise
            return None


def cancel_requested() -> bool:
    """True if the running task has a pending cancellation request."""
    current = asyncio.current_task()
    return current is not None and current.cancelling() > 0
