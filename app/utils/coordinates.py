"""
Coordinate helper functions.

Provides utilities for:
- Validating catalog coordinates against the Vancouver bounding box
- Averaging tree positions into a street location
"""
import math
from numbers import Real
from typing import Any, Iterable, Optional
import logging

import numpy as np
from shapely.geometry import Point, box

logger = logging.getLogger(__name__)

# (min_lon, min_lat, max_lon, max_lat)
VANCOUVER_BOUNDS = (-123.3, 49.1, -122.9, 49.4)

_bounds_polygon = box(*VANCOUVER_BOUNDS)


def is_real_number(value: Any) -> bool:
    """Return True for finite ints/floats, excluding bools."""
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return math.isfinite(value)


def in_bounds(latitude: Any, longitude: Any) -> bool:
    """
    Check whether a coordinate pair lies inside the Vancouver bounding box.

    Bounds are inclusive. Non-numeric or non-finite values are rejected.

    Args:
        latitude: Latitude in degrees
        longitude: Longitude in degrees

    Returns:
        True if the point is usable for aggregation, False otherwise
    """
    if not (is_real_number(latitude) and is_real_number(longitude)):
        return False
    return _bounds_polygon.covers(Point(float(longitude), float(latitude)))


def extract_geo_point(raw: dict) -> tuple[Optional[float], Optional[float]]:
    """Pull (lat, lon) out of a catalog record's geo_point_2d field."""
    geo_point = raw.get("geo_point_2d") or {}
    if not isinstance(geo_point, dict):
        return None, None
    return geo_point.get("lat"), geo_point.get("lon")


def average_coordinates(
    points: Iterable[tuple[float, float]]
) -> Optional[tuple[float, float]]:
    """
    Average a set of (lat, lon) points.

    Args:
        points: Iterable of (latitude, longitude) tuples

    Returns:
        (latitude, longitude) of the mean position, or None if no points
    """
    array = np.array(list(points), dtype=float)
    if array.size == 0:
        return None
    mean = array.mean(axis=0)
    return float(mean[0]), float(mean[1])
