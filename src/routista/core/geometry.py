"""Geographic helpers: projection, simplification, distances, accuracy scoring."""
from __future__ import annotations

import logging
import math
from math import atan2, cos, radians, sin, sqrt
from typing import List, Sequence, Tuple

from routista.config import Settings
from routista.core.models import GeoPoint

log = logging.getLogger(__name__)

EARTH_RADIUS_WGS84_M = 6_378_137.0   # semi-major axis, used for degree sizing
EARTH_RADIUS_MEAN_M = 6_371_000.0    # used for Haversine
METERS_PER_LAT_DEGREE = 111_320.0
EARTH_CIRCUMFERENCE_M = 40_075_000.0


# ---------------------------------------------------------------------------
# Distances
# ---------------------------------------------------------------------------

def distance(p1: GeoPoint, p2: GeoPoint) -> float:
    """Great-circle distance in metres between two (lat, lng) points."""
    lat1, lon1 = p1
    lat2, lon2 = p2
    lat1r, lat2r = radians(lat1), radians(lat2)
    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)
    a = sin(dlat / 2) ** 2 + cos(lat1r) * cos(lat2r) * sin(dlon / 2) ** 2
    return EARTH_RADIUS_MEAN_M * 2 * atan2(sqrt(a), sqrt(1 - a))


def route_length(path: Sequence[GeoPoint]) -> float:
    """Total Haversine length of a polyline, metres."""
    return sum(distance(path[i], path[i + 1]) for i in range(len(path) - 1))


def _point_segment_distance(
    px: float, py: float, x1: float, y1: float, x2: float, y2: float
) -> float:
    """Euclidean distance from (px, py) to the segment (x1, y1)-(x2, y2)."""
    c = x2 - x1
    d = y2 - y1
    len_sq = c * c + d * d
    param = -1.0
    if len_sq != 0:
        param = ((px - x1) * c + (py - y1) * d) / len_sq

    if param < 0:
        xx, yy = x1, y1
    elif param > 1:
        xx, yy = x2, y2
    else:
        xx, yy = x1 + param * c, y1 + param * d
    return math.hypot(px - xx, py - yy)


def _segment_distance_m(p: GeoPoint, v: GeoPoint, w: GeoPoint) -> float:
    """Point-to-segment distance in metres, planar projection anchored at ``v``."""
    m_per_lng = EARTH_CIRCUMFERENCE_M * cos(radians(v[0])) / 360.0
    x = (p[1] - v[1]) * m_per_lng
    y = (p[0] - v[0]) * METERS_PER_LAT_DEGREE
    x2 = (w[1] - v[1]) * m_per_lng
    y2 = (w[0] - v[0]) * METERS_PER_LAT_DEGREE
    return _point_segment_distance(x, y, 0.0, 0.0, x2, y2)


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------

def scale_to_geo(
    points: Sequence[Tuple[float, float]],
    center: GeoPoint,
    radius_m: float,
) -> List[GeoPoint]:
    """
    Map normalized image points onto a square of half-side ``radius_m`` around ``center``.

    x grows east; y is inverted because image rows grow downward while
    latitude grows northward. Returns (lat, lng) pairs.
    """
    lat_r = radians(center[0])
    m_per_lat = 2 * math.pi * EARTH_RADIUS_WGS84_M / 360.0
    m_per_lng = 2 * math.pi * EARTH_RADIUS_WGS84_M * cos(lat_r) / 360.0

    lat_off = radius_m / m_per_lat
    lng_off = radius_m / m_per_lng

    min_lng = center[1] - lng_off
    max_lat = center[0] + lat_off
    lat_range = 2 * lat_off
    lng_range = 2 * lng_off

    return [(max_lat - y * lat_range, min_lng + x * lng_range) for x, y in points]


# ---------------------------------------------------------------------------
# Simplification
# ---------------------------------------------------------------------------

def simplify(points: Sequence[GeoPoint], tolerance: float) -> List[GeoPoint]:
    """Ramer-Douglas-Peucker; ``tolerance`` is in degrees."""
    if len(points) <= 2:
        return list(points)

    start = points[0]
    end = points[-1]
    max_dist = 0.0
    index = 0
    for i in range(1, len(points) - 1):
        d = _point_segment_distance(points[i][0], points[i][1], start[0], start[1], end[0], end[1])
        if d > max_dist:
            max_dist = d
            index = i

    if max_dist > tolerance:
        left = simplify(points[: index + 1], tolerance)
        right = simplify(points[index:], tolerance)
        return left[:-1] + right
    return [start, end]


def mode_tolerance(mode: str, settings: Settings) -> float:
    """Douglas-Peucker tolerance (degrees) for a transport mode.

    Cars snap to roads and need few, well-placed waypoints; feet and bikes
    can follow finer detail.
    """
    return {
        "driving-car": settings.tolerance_driving_car,
        "cycling-regular": settings.tolerance_cycling_regular,
        "foot-walking": settings.tolerance_foot_walking,
    }.get(mode, settings.tolerance_default)


def simplify_for_mode(points: Sequence[GeoPoint], mode: str, settings: Settings) -> List[GeoPoint]:
    """Simplify with the mode tolerance, tightened further for closed loops."""
    if len(points) <= 2:
        return list(points)

    tolerance = mode_tolerance(mode, settings)
    closed = distance(points[0], points[-1]) < settings.closed_loop_threshold_m
    divisor = settings.closed_loop_divisor if closed else settings.open_shape_divisor
    adjusted = tolerance / divisor

    result = simplify(points, adjusted)
    log.info(
        "Simplified %d -> %d points (mode=%s, closed=%s, tolerance %.6f -> %.6f)",
        len(points), len(result), mode, closed, tolerance, adjusted,
    )
    return result


# ---------------------------------------------------------------------------
# Accuracy
# ---------------------------------------------------------------------------

def score(
    original_points: Sequence[GeoPoint],
    route_path: Sequence[GeoPoint],
    radius_m: float,
    settings: Settings,
) -> float:
    """
    Bidirectional fidelity of ``route_path`` to ``original_points``, 0..100.

    Forward error: mean distance from each original point to the nearest
    route segment. Backward error: mean distance from points sampled every
    ``accuracy_sample_m`` along the route to the nearest original point.
    The mean of both is scored linearly against
    ``radius_m * max_tolerated_error_fraction``.
    """
    if not original_points or len(route_path) < 2 or radius_m <= 0:
        return 0.0

    forward_total = 0.0
    for p in original_points:
        forward_total += min(
            _segment_distance_m(p, route_path[i], route_path[i + 1])
            for i in range(len(route_path) - 1)
        )
    forward = forward_total / len(original_points)

    backward_total = 0.0
    checked = 0
    for i in range(len(route_path) - 1):
        a = route_path[i]
        b = route_path[i + 1]
        n = max(1, int(distance(a, b) // settings.accuracy_sample_m))
        for j in range(n + 1):
            t = j / n
            sample = (a[0] + (b[0] - a[0]) * t, a[1] + (b[1] - a[1]) * t)
            backward_total += min(distance(sample, q) for q in original_points)
            checked += 1
    backward = backward_total / checked if checked else 0.0

    combined = (forward + backward) / 2
    max_error = radius_m * settings.max_tolerated_error_fraction
    value = 100.0 * (1.0 - combined / max_error)
    return max(0.0, min(100.0, value))
