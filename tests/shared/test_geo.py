"""Tests for great-circle distance."""

import pytest

from skylift.shared.geo import EARTH_RADIUS_KM, distance_km, haversine_km
from skylift.shared.models import Location


class TestHaversine:
    """Haversine distance between coordinate pairs."""

    def test_identical_points_are_zero(self) -> None:
        """Distance from a point to itself is exactly zero."""
        assert haversine_km(12.9716, 77.5946, 12.9716, 77.5946) == 0.0

    def test_symmetric(self) -> None:
        """d(a, b) equals d(b, a)."""
        forward = haversine_km(12.9716, 77.5946, 12.9352, 77.6146)
        backward = haversine_km(12.9352, 77.6146, 12.9716, 77.5946)
        assert forward == pytest.approx(backward)

    def test_mg_road_to_koramangala(self) -> None:
        """Known Bengaluru pair is about 4.6 km apart."""
        assert haversine_km(12.9716, 77.5946, 12.9352, 77.6146) == pytest.approx(
            4.59, abs=0.05
        )

    def test_never_negative(self) -> None:
        """Distance is non-negative across hemispheres."""
        assert haversine_km(-33.86, 151.21, 40.71, -74.00) > 0

    def test_antipodes_are_half_circumference(self) -> None:
        """Opposite points are pi * R apart."""
        assert haversine_km(0.0, 0.0, 0.0, 180.0) == pytest.approx(
            3.141592653589793 * EARTH_RADIUS_KM
        )


class TestDistanceKm:
    """Location-based wrapper."""

    def test_matches_haversine(self, mg_road: Location, koramangala: Location) -> None:
        """distance_km delegates to haversine_km."""
        expected = haversine_km(mg_road.lat, mg_road.lng, koramangala.lat, koramangala.lng)
        assert distance_km(mg_road, koramangala) == expected
