"""WebSocket event bus for live trip tracking.

Keeps the WebSocket clients watching each booking and broadcasts
vehicle updates to them. Disconnected clients are cleaned up
automatically.
"""

import json
import logging
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)

_clients: dict[str, set[WebSocket]] = {}


def connect(booking_id: str, websocket: WebSocket) -> None:
    """Register a WebSocket client for one booking's events.

    Args:
        booking_id: Booking the client is tracking.
        websocket: The WebSocket connection to add.
    """
    watchers = _clients.setdefault(booking_id, set())
    watchers.add(websocket)
    logger.info("ws_client_connected, booking=%s total=%d", booking_id, len(watchers))


def disconnect(booking_id: str, websocket: WebSocket) -> None:
    """Remove a WebSocket client.

    Args:
        booking_id: Booking the client was tracking.
        websocket: The WebSocket connection to remove.
    """
    watchers = _clients.get(booking_id)
    if watchers is None:
        return
    watchers.discard(websocket)
    if not watchers:
        del _clients[booking_id]
    logger.info("ws_client_disconnected, booking=%s", booking_id)


def get_clients(booking_id: str) -> set[WebSocket]:
    """Return the clients currently tracking a booking."""
    return _clients.get(booking_id, set())


def _make_json_safe(obj: Any) -> Any:
    """Recursively convert non-serializable objects to strings.

    Args:
        obj: Object to sanitize for JSON serialization.

    Returns:
        JSON-safe version of the object.
    """
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj
    if isinstance(obj, dict):
        return {k: _make_json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_make_json_safe(v) for v in obj]
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json", exclude_none=True)
    return str(obj)


async def broadcast_event(booking_id: str, event_data: dict[str, Any]) -> None:
    """Send an event to every client tracking a booking.

    Clients that fail to receive are logged and removed.

    Args:
        booking_id: Booking the event belongs to.
        event_data: Event payload (sanitized before sending).
    """
    safe_data = _make_json_safe(event_data)
    try:
        json.dumps(safe_data)
    except (TypeError, ValueError):
        logger.error(
            "broadcast_payload_not_serializable",
            extra={"booking_id": booking_id, "event_type": event_data.get("type")},
        )
        return

    dead: list[WebSocket] = []
    for ws in list(get_clients(booking_id)):
        try:
            await ws.send_json(safe_data)
        except Exception:
            logger.warning(
                "ws_client_send_failed, removing",
                exc_info=True,
            )
            dead.append(ws)
    for ws in dead:
        disconnect(booking_id, ws)
