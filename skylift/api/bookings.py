"""Booking REST API and live-tracking WebSocket.

Thin HTTP surface over the BookingOrchestrator. Caller identity is
taken from the X-User-Id header; domain errors are mapped to HTTP
status codes by the handlers registered in app.py.
"""

import logging
from dataclasses import asdict
from typing import Any, Protocol

from fastapi import (
    APIRouter,
    Depends,
    Header,
    Request,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from pydantic import BaseModel

from skylift.api.event_bus import broadcast_event, connect, disconnect
from skylift.services.booking_orchestrator import BookingOrchestrator
from skylift.shared.errors import BookingNotFound, NotAuthenticated, ValidationError
from skylift.shared.identity import UserIdentity, acting_as, canonicalize_user_id
from skylift.shared.models import Booking, Location, PricingQuote, Skyport
from skylift.shared.types import TIER_DISPLAY_NAMES, TripEventType
from skylift.simulation.trip_simulator import TickResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["bookings"])
ws_router = APIRouter(tags=["websocket"])


class SkyportCatalog(Protocol):
    """Source of bookable skyports."""

    async def list_skyports(self) -> list[Skyport]: ...

    async def get_skyport(self, skyport_id: str) -> Skyport | None: ...


# --- Request Models ---


class TripRequest(BaseModel):
    """Request body for quoting or booking a trip.

    Either explicit locations or skyport ids may be given for each end;
    a skyport id wins when both are present.

    Attributes:
        pickup: Explicit pickup location.
        destination: Explicit destination.
        pickup_skyport_id: Pickup skyport from the catalog.
        dropoff_skyport_id: Destination skyport from the catalog.
        tier: Service tier name (economy, premium).
    """

    pickup: Location | None = None
    destination: Location | None = None
    pickup_skyport_id: str | None = None
    dropoff_skyport_id: str | None = None
    tier: str | None = None


# --- Dependencies ---


def get_orchestrator(request: Request) -> BookingOrchestrator:
    """Return the app-wide orchestrator."""
    return request.app.state.orchestrator


def get_catalog(request: Request) -> SkyportCatalog:
    """Return the app-wide skyport catalog."""
    return request.app.state.skyports


async def get_caller(
    x_user_id: str | None = Header(default=None),
) -> UserIdentity | None:
    """Resolve the caller from the X-User-Id header.

    Returns:
        UserIdentity, or None when the header is absent or malformed.
    """
    user_id = canonicalize_user_id(x_user_id)
    return UserIdentity(user_id=user_id) if user_id else None


def _require_caller(caller: UserIdentity | None) -> UserIdentity:
    if caller is None:
        raise NotAuthenticated("Sign in to view bookings")
    return caller


async def _load_owned(
    orchestrator: BookingOrchestrator,
    booking_id: str,
    caller: UserIdentity | None,
) -> Booking:
    """Fetch a booking the caller owns; others' bookings look missing."""
    caller = _require_caller(caller)
    booking = await orchestrator.store.get(booking_id)
    if booking.user_id != caller.user_id:
        raise BookingNotFound(booking_id)
    return booking


async def _resolve_trip(
    body: TripRequest,
    catalog: SkyportCatalog,
) -> tuple[Location | None, Location | None]:
    """Turn skyport ids into locations.

    Raises:
        ValidationError: If a skyport id is unknown.
    """
    pickup = body.pickup
    destination = body.destination
    if body.pickup_skyport_id:
        pickup = await _skyport_location(catalog, body.pickup_skyport_id)
    if body.dropoff_skyport_id:
        destination = await _skyport_location(catalog, body.dropoff_skyport_id)
    return pickup, destination


async def _skyport_location(catalog: SkyportCatalog, skyport_id: str) -> Location:
    skyport = await catalog.get_skyport(skyport_id)
    if skyport is None:
        raise ValidationError(f"Unknown skyport '{skyport_id}'")
    return skyport.to_location()


# --- Endpoints ---


@router.get("/skyports")
async def list_skyports(
    catalog: SkyportCatalog = Depends(get_catalog),
) -> dict[str, Any]:
    """List bookable skyports.

    Returns:
        Dict with skyports list.
    """
    skyports = await catalog.list_skyports()
    return {"skyports": [s.model_dump(mode="json") for s in skyports]}


@router.post("/quotes")
async def create_quote(
    body: TripRequest,
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
    catalog: SkyportCatalog = Depends(get_catalog),
) -> dict[str, Any]:
    """Price a trip without booking it.

    Returns:
        Serialized PricingQuote.
    """
    pickup, destination = await _resolve_trip(body, catalog)
    pricing = orchestrator.get_quote(pickup, destination, body.tier)
    return _serialize_quote(pricing)


@router.post("/bookings", status_code=201)
async def create_booking(
    body: TripRequest,
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
    catalog: SkyportCatalog = Depends(get_catalog),
    caller: UserIdentity | None = Depends(get_caller),
) -> dict[str, Any]:
    """Book a trip for the caller.

    Returns:
        Serialized confirmed booking.
    """
    pickup, destination = await _resolve_trip(body, catalog)
    with acting_as(caller):
        booking = await orchestrator.create_booking(pickup, destination, body.tier)
    return _serialize_booking(booking)


@router.get("/bookings")
async def list_bookings(
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
    caller: UserIdentity | None = Depends(get_caller),
) -> dict[str, Any]:
    """List the caller's booking history, newest first."""
    caller = _require_caller(caller)
    bookings = await orchestrator.store.list_by_user(caller.user_id)
    return {"bookings": [_serialize_booking(b) for b in bookings]}


@router.get("/bookings/{booking_id}")
async def get_booking(
    booking_id: str,
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
    caller: UserIdentity | None = Depends(get_caller),
) -> dict[str, Any]:
    """Return one of the caller's bookings."""
    booking = await _load_owned(orchestrator, booking_id, caller)
    return _serialize_booking(booking)


@router.post("/bookings/{booking_id}/cancel")
async def cancel_booking(
    booking_id: str,
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
    caller: UserIdentity | None = Depends(get_caller),
) -> dict[str, Any]:
    """Cancel a booking before it starts flying."""
    await _load_owned(orchestrator, booking_id, caller)
    booking = await orchestrator.cancel_booking(booking_id)
    data = _serialize_booking(booking)
    await broadcast_event(
        booking_id, {"type": TripEventType.STATUS_CHANGED.value, "data": data}
    )
    return data


@router.post("/bookings/{booking_id}/tracking")
async def start_tracking(
    booking_id: str,
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
    caller: UserIdentity | None = Depends(get_caller),
) -> dict[str, Any]:
    """Dispatch the vehicle and start live tracking."""
    booking = await _load_owned(orchestrator, booking_id, caller)
    handle = await orchestrator.attach_simulator(booking)
    return {
        "booking_id": booking_id,
        "active": handle.active,
        "vehicle": asdict(handle.vehicle),
        "ticks_to_arrival": handle.simulator.ticks_to_arrival(),
    }


@router.get("/bookings/{booking_id}/tracking")
async def get_tracking(
    booking_id: str,
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
    caller: UserIdentity | None = Depends(get_caller),
) -> dict[str, Any]:
    """Return the current simulated vehicle position, if tracking."""
    await _load_owned(orchestrator, booking_id, caller)
    handle = orchestrator.active_handle(booking_id)
    if handle is None:
        return {"booking_id": booking_id, "active": False}
    return {"booking_id": booking_id, "active": True, "vehicle": asdict(handle.vehicle)}


@router.delete("/bookings/{booking_id}/tracking")
async def stop_tracking(
    booking_id: str,
    orchestrator: BookingOrchestrator = Depends(get_orchestrator),
    caller: UserIdentity | None = Depends(get_caller),
) -> dict[str, Any]:
    """Stop observing a booking; the simulator is released."""
    await _load_owned(orchestrator, booking_id, caller)
    return {"booking_id": booking_id, "detached": orchestrator.detach_simulator(booking_id)}


@ws_router.websocket("/ws/bookings/{booking_id}")
async def websocket_tracking(websocket: WebSocket, booking_id: str) -> None:
    """Real-time vehicle updates for one booking.

    The handshake is refused unless X-User-Id names the booking's owner.

    Args:
        websocket: Incoming WebSocket connection.
        booking_id: Booking to follow.
    """
    caller = await get_caller(websocket.headers.get("x-user-id"))
    try:
        await _load_owned(websocket.app.state.orchestrator, booking_id, caller)
    except (NotAuthenticated, BookingNotFound):
        logger.info("ws_client_rejected, booking=%s", booking_id)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await websocket.accept()
    connect(booking_id, websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        disconnect(booking_id, websocket)


# --- Orchestrator callbacks ---


async def broadcast_tick(result: TickResult) -> None:
    """Push a vehicle position update to tracking clients."""
    await broadcast_event(
        result.booking_id,
        {"type": TripEventType.VEHICLE_MOVED.value, "data": asdict(result)},
    )


async def broadcast_arrival(booking: Booking) -> None:
    """Push the arrival notification to tracking clients."""
    await broadcast_event(
        booking.id,
        {"type": TripEventType.TRIP_COMPLETED.value, "data": _serialize_booking(booking)},
    )


# --- Serializers ---


def _serialize_quote(pricing: PricingQuote) -> dict[str, Any]:
    """Convert a PricingQuote to an API dict."""
    data = pricing.model_dump(mode="json")
    data["tier_display_name"] = TIER_DISPLAY_NAMES[pricing.tier]
    return data


def _serialize_booking(booking: Booking) -> dict[str, Any]:
    """Convert a Booking to an API dict."""
    data = booking.model_dump(mode="json")
    data["tier_display_name"] = TIER_DISPLAY_NAMES[booking.tier]
    return data
