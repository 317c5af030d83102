"""Shared geodesic distance utilities.

Used by cascade_detector (bridge proximity) and risk_scoring (bridges along
a route polyline).
"""
from __future__ import annotations

import math
from typing import Sequence

_EARTH_RADIUS_M: float = 6_371_000.0  # Earth mean radius in metres


def is_valid_coordinate(lat: float, lon: float) -> bool:
    """Finite latitude in [-90, 90] and longitude in [-180, 180]."""
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return False
    return -90 <= lat <= 90 and -180 <= lon <= 180


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres between two WGS-84 coordinates."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlam = math.radians(lon2 - lon1)
    a = (
        math.sin(dphi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    )
    return _EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def _to_local_xy(lat: float, lon: float, ref_lat: float, ref_lon: float) -> tuple[float, float]:
    """Equirectangular projection around a reference point, in metres."""
    x = math.radians(lon - ref_lon) * math.cos(math.radians(ref_lat)) * _EARTH_RADIUS_M
    y = math.radians(lat - ref_lat) * _EARTH_RADIUS_M
    return x, y


def point_to_segment_meters(
    lat: float,
    lon: float,
    seg_start: tuple[float, float],
    seg_end: tuple[float, float],
) -> float:
    """Shortest distance from a point to a (short) segment, in metres.

    Accurate for city-scale segments; not meant for ocean-crossing legs.
    """
    ax, ay = _to_local_xy(seg_start[0], seg_start[1], lat, lon)
    bx, by = _to_local_xy(seg_end[0], seg_end[1], lat, lon)
    dx, dy = bx - ax, by - ay
    seg_len_sq = dx * dx + dy * dy
    if seg_len_sq == 0.0:
        return math.hypot(ax, ay)
    # Project the origin (our point) onto the segment, clamped to its ends
    t = max(0.0, min(1.0, -(ax * dx + ay * dy) / seg_len_sq))
    return math.hypot(ax + t * dx, ay + t * dy)


def distance_to_polyline_meters(
    lat: float,
    lon: float,
    polyline: Sequence[tuple[float, float]],
) -> float | None:
    """Minimum distance from a point to a polyline; None for an empty line."""
    if not polyline:
        return None
    if len(polyline) == 1:
        return haversine_meters(lat, lon, polyline[0][0], polyline[0][1])
    return min(
        point_to_segment_meters(lat, lon, polyline[i], polyline[i + 1])
        for i in range(len(polyline) - 1)
    )
