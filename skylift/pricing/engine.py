"""Fare pricing engine.

final_price = distance * rate(tier) * route_complexity * surge + base_fare

Route complexity and base fare come from a named profile. Surge depends
only on the hour of the injected ``now``, so quoting is deterministic:
identical inputs always yield an identical PricingQuote.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime

from skylift.shared.geo import distance_km
from skylift.shared.models import Location, PricingQuote
from skylift.shared.types import ServiceTier

logger = logging.getLogger(__name__)

RATE_PER_KM: dict[ServiceTier, float] = {
    ServiceTier.ECONOMY: 50.0,
    ServiceTier.PREMIUM: 80.0,
}

SPEED_FACTOR: dict[ServiceTier, float] = {
    ServiceTier.ECONOMY: 1.0,
    ServiceTier.PREMIUM: 1.3,
}

MINUTES_PER_KM = 5

PEAK_HOURS: tuple[tuple[int, int], ...] = ((8, 11), (17, 20))
PEAK_SURGE_MULTIPLIER = 1.5
OFF_PEAK_SURGE_MULTIPLIER = 1.0


@dataclass(frozen=True)
class PricingProfile:
    """Named pricing variant.

    Attributes:
        name: Profile identifier used in settings.
        complexity_bands: (upper_bound_km, factor) pairs, ascending.
        top_complexity: Factor applied beyond the last band.
        base_fare: Flat amount added to every fare.
    """

    name: str
    complexity_bands: tuple[tuple[float, float], ...]
    top_complexity: float
    base_fare: float = 0.0


STANDARD_PROFILE = PricingProfile(
    name="standard",
    complexity_bands=((5.0, 1.0), (15.0, 1.2)),
    top_complexity=1.4,
)

GRADED_PROFILE = PricingProfile(
    name="graded",
    complexity_bands=((5.0, 1.0), (10.0, 1.1), (20.0, 1.2)),
    top_complexity=1.3,
)

SKYPORT_PROFILE = PricingProfile(
    name="skyport",
    complexity_bands=((5.0, 1.0), (10.0, 1.1), (20.0, 1.2)),
    top_complexity=1.3,
    base_fare=250.0,
)

PROFILES: dict[str, PricingProfile] = {
    profile.name: profile
    for profile in (STANDARD_PROFILE, GRADED_PROFILE, SKYPORT_PROFILE)
}


def get_profile(name: str) -> PricingProfile:
    """Look up a pricing profile by name.

    Args:
        name: Profile name (standard, graded, skyport).

    Returns:
        The matching PricingProfile.

    Raises:
        ValueError: If no profile has that name.
    """
    try:
        return PROFILES[name]
    except KeyError:
        valid = ", ".join(sorted(PROFILES))
        raise ValueError(f"Unknown pricing profile '{name}'. Must be one of: {valid}") from None


def route_complexity(distance: float, profile: PricingProfile = STANDARD_PROFILE) -> float:
    """Step function of distance from the profile's breakpoint table.

    Args:
        distance: Trip distance in km.
        profile: Pricing profile supplying the bands.

    Returns:
        Complexity factor (>= 1.0).
    """
    for upper_bound, factor in profile.complexity_bands:
        if distance < upper_bound:
            return factor
    return profile.top_complexity


def surge_multiplier(now: datetime) -> float:
    """Time-of-day multiplier for peak demand windows.

    Args:
        now: Local wall-clock time the quote is made at.

    Returns:
        1.5 during 08:00-11:59 and 17:00-20:59, else 1.0.
    """
    hour = now.hour
    for start, end in PEAK_HOURS:
        if start <= hour <= end:
            return PEAK_SURGE_MULTIPLIER
    return OFF_PEAK_SURGE_MULTIPLIER


def estimate_duration_min(distance: float, tier: ServiceTier) -> float:
    """Estimated trip duration in minutes, premium tier flies faster.

    Args:
        distance: Trip distance in km.
        tier: Service tier.

    Returns:
        Whole minutes, rounded up.
    """
    return float(math.ceil(distance / SPEED_FACTOR[tier] * MINUTES_PER_KM))


def quote(
    pickup: Location,
    destination: Location,
    tier: ServiceTier,
    now: datetime,
    profile: PricingProfile = STANDARD_PROFILE,
) -> PricingQuote:
    """Price a trip.

    Args:
        pickup: Trip start.
        destination: Trip end.
        tier: Service tier.
        now: Local wall-clock time of the quote.
        profile: Pricing profile to apply.

    Returns:
        A new PricingQuote.
    """
    distance = distance_km(pickup, destination)
    complexity = route_complexity(distance, profile)
    surge = surge_multiplier(now)
    final_price = distance * RATE_PER_KM[tier] * complexity * surge + profile.base_fare

    logger.debug(
        "fare_quoted",
        extra={
            "tier": tier.value,
            "profile": profile.name,
            "distance_km": distance,
            "final_price": final_price,
        },
    )

    return PricingQuote(
        tier=tier,
        profile=profile.name,
        base_distance_km=distance,
        route_complexity=complexity,
        surge_multiplier=surge,
        base_fare=profile.base_fare,
        final_price=final_price,
        estimated_duration_min=estimate_duration_min(distance, tier),
        quoted_at=now,
    )
