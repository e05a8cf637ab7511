"""Great-circle distance between coordinates."""

from math import atan2, cos, radians, sin, sqrt

from skylift.shared.models import Location

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Calculate the great-circle distance between two points in kilometers.

    Args:
        lat1: Latitude of first point in degrees.
        lng1: Longitude of first point in degrees.
        lat2: Latitude of second point in degrees.
        lng2: Longitude of second point in degrees.

    Returns:
        Non-negative distance in kilometers.
    """
    lat1, lng1, lat2, lng2 = map(radians, [lat1, lng1, lat2, lng2])
    dlat = lat2 - lat1
    dlng = lng2 - lng1

    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlng / 2) ** 2
    # Clamp rounding drift so sqrt(1 - a) stays real for antipodal points.
    a = min(1.0, max(0.0, a))
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def distance_km(a: Location, b: Location) -> float:
    """Distance between two locations in kilometers.

    Symmetric, and exactly 0.0 when both locations share coordinates.

    Args:
        a: First location.
        b: Second location.

    Returns:
        Great-circle distance in kilometers.
    """
    return haversine_km(a.lat, a.lng, b.lat, b.lng)
