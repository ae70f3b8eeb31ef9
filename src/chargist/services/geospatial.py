"""Geospatial helper functions."""

from __future__ import annotations

import math

from ..models.domain import Bounds, Coordinate

EARTH_RADIUS_M = 6_371_000.0


def distance_meters(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(a.latitude), math.radians(b.latitude)
    d_phi = math.radians(b.latitude - a.latitude)
    d_lambda = math.radians(b.longitude - a.longitude)

    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_M * c


def offset_meters(origin: Coordinate, d_lat_m: float, d_lng_m: float) -> Coordinate:
    """Shift ``origin`` by a north/east offset in meters.

    Uses a local flat-earth approximation, so it is only meaningful for offsets
    much smaller than the earth radius. Longitude scaling divides by
    cos(latitude); callers must not pass an origin at either pole.
    """

    lat_offset = math.degrees(d_lat_m / EARTH_RADIUS_M)
    lng_offset = math.degrees(d_lng_m / EARTH_RADIUS_M) / math.cos(math.radians(origin.latitude))

    latitude = max(-90.0, min(90.0, origin.latitude + lat_offset))
    longitude = origin.longitude + lng_offset
    # wrap into [-180, 180]
    if longitude > 180.0 or longitude < -180.0:
        longitude = (longitude + 180.0) % 360.0 - 180.0
    return Coordinate(latitude, longitude)


def bounds_around(center: Coordinate, radius_m: float) -> Bounds:
    """Square region of half-width ``radius_m`` centred on ``center``."""

    south_west = offset_meters(center, -radius_m, -radius_m)
    north_east = offset_meters(center, radius_m, radius_m)
    return Bounds(
        south=south_west.latitude,
        west=south_west.longitude,
        north=north_east.latitude,
        east=north_east.longitude,
    )


def bearing_degrees(a: Coordinate, b: Coordinate) -> float:
    """Calculate the initial bearing from ``a`` to ``b``."""

    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    delta_lambda = math.radians(b.longitude - a.longitude)
    y = math.sin(delta_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda)
    bearing = math.degrees(math.atan2(y, x))
    return (bearing + 360) % 360
