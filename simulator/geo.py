"""
Great-circle helpers for the interception simulator.

Distances use the haversine formula on a spherical Earth. Positions along a
path are interpolated linearly in lat/lng, which is a deliberate
approximation: paths are re-sampled every tick (sub-second steps on legs
under ~10,000 km), so the drift from a true geodesic stays well below what a
globe renderer can show.
"""

import math

from .models import Location

EARTH_RADIUS_M = 6_371_000  # mean Earth radius


def to_rad(deg: float) -> float:
    return deg * math.pi / 180


def haversine(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in meters between two lat/lng pairs."""
    d_lat = to_rad(lat2 - lat1)
    d_lng = to_rad(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(to_rad(lat1)) * math.cos(to_rad(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_meters(a: Location, b: Location) -> float:
    """Great-circle distance between two locations."""
    return haversine(a.lat, a.lng, b.lat, b.lng)


def interpolate(a: Location, b: Location, fraction: float, label: str = "") -> Location:
    """Point at `fraction` of the way from a to b (linear in lat/lng)."""
    return Location(
        id=label,
        lat=a.lat + (b.lat - a.lat) * fraction,
        lng=a.lng + (b.lng - a.lng) * fraction,
    )


def intercept_point(source: Location, target: Location, standoff_m: float) -> Location:
    """
    Point on the source→target path `standoff_m` before the target.

    Falls back to the source when the whole path is shorter than the standoff.
    """
    total = distance_meters(source, target)
    if total <= standoff_m:
        return Location(id="intercept", lat=source.lat, lng=source.lng)
    frac = (total - standoff_m) / total
    return interpolate(source, target, frac, label="intercept")
