"""Obstacle crossing correction for pedestrian and cycling routes.

A long straight leg between two waypoints may cross a river or motorway the
walker cannot cross there. Probing the leg with a car route reveals this:
cars must detour to a bridge, so a car distance far above the straight-line
distance flags a crossing. The middle of the car route (where the bridge is)
is spliced in as guidance waypoints.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Tuple

from routista.config import Settings
from routista.core.geometry import distance
from routista.core.models import PEDESTRIAN_MODES, GeoPoint
from routista.errors import ServiceError
from routista.providers.base import RoutingProvider

log = logging.getLogger(__name__)

PROBE_MODE = "driving-car"


def bridge_points(geometry: List[GeoPoint], count: int) -> List[GeoPoint]:
    """``count`` evenly spaced vertices from the middle 60% of ``geometry``."""
    if count <= 0 or len(geometry) < 3:
        return []
    last = len(geometry) - 1
    out = []
    for k in range(count):
        frac = 0.2 + 0.6 * (k + 1) / (count + 1)
        out.append(geometry[int(round(frac * last))])
    return out


class RiverCrossingPreprocessor:
    def __init__(
        self,
        provider: Optional[RoutingProvider],
        settings: Settings,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.provider = provider
        self.settings = settings
        self.sleep = sleep

    def _candidates(self, waypoints: List[GeoPoint]) -> List[Tuple[int, float]]:
        legs = []
        for i in range(len(waypoints) - 1):
            d = distance(waypoints[i], waypoints[i + 1])
            if d > self.settings.crossing_min_segment_m:
                legs.append((i, d))
        legs.sort(key=lambda leg: leg[1], reverse=True)
        return legs[: self.settings.crossing_max_probes]

    def process(self, waypoints: List[GeoPoint], mode: str) -> int:
        """Splice bridge guidance into ``waypoints`` in place. Returns corrections made."""
        if mode not in PEDESTRIAN_MODES or self.provider is None or len(waypoints) < 2:
            return 0

        candidates = self._candidates(waypoints)
        if not candidates:
            return 0
        log.info("Probing %d long leg(s) for obstacle crossings", len(candidates))

        splices: List[Tuple[int, List[GeoPoint]]] = []
        for n, (i, straight) in enumerate(candidates):
            if n > 0:
                self.sleep(self.settings.chunk_delay_s)
            a, b = waypoints[i], waypoints[i + 1]
            try:
                routes = self.provider.route([a, b], PROBE_MODE)
            except ServiceError as exc:
                log.warning("Crossing probe for leg %d failed, keeping waypoints: %s", i, exc)
                continue
            if not routes:
                continue

            probe = routes[0]
            ratio = probe.distance_m / straight
            if ratio <= self.settings.crossing_detour_ratio:
                continue

            guide = bridge_points(probe.coordinates, self.settings.crossing_bridge_points)
            if guide:
                log.info(
                    "Leg %d: car route %.0f m vs straight %.0f m (ratio %.1f), adding %d bridge point(s)",
                    i, probe.distance_m, straight, ratio, len(guide),
                )
                splices.append((i, guide))

        # Descending order keeps lower indices valid while splicing
        for i, guide in sorted(splices, key=lambda s: s[0], reverse=True):
            waypoints[i + 1 : i + 1] = guide

        return len(splices)
