from __future__ import annotations

from typing import List, Sequence

from routista.core.geometry import route_length
from routista.core.models import GeoPoint, RouteSegment
from routista.providers.base import RoutingProvider

# Nominal speeds (m/s) used to give mock routes a plausible duration
_MODE_SPEED_MPS = {
    "foot-walking": 1.4,
    "cycling-regular": 4.2,
    "driving-car": 11.0,
}


class StraightLineProvider(RoutingProvider):
    """
    Deterministic fake routing so the pipeline runs end-to-end without an API key.
    The "route" is the waypoint polyline itself.
    """

    def route(self, waypoints: Sequence[GeoPoint], mode: str) -> List[RouteSegment]:
        path = [(float(lat), float(lng)) for lat, lng in waypoints]
        dist = route_length(path)
        speed = _MODE_SPEED_MPS.get(mode, 1.4)
        return [RouteSegment(coordinates=path, distance_m=round(dist, 1), duration_s=round(dist / speed, 1))]
