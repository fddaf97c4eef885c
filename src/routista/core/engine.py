from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Sequence, Tuple

from routista.cache.redis_client import NullCache, build_cache
from routista.config import Settings
from routista.core.geometry import scale_to_geo, score, simplify_for_mode
from routista.core.models import TRANSPORT_MODES, GeoPoint, RouteGeneration
from routista.errors import InputError
from routista.providers.base import RoutingProvider
from routista.providers.radar import build_provider
from routista.routing.crossings import RiverCrossingPreprocessor
from routista.routing.stitcher import RouteStitcher

log = logging.getLogger(__name__)


class RoutePipeline:
    """
    Normalized shape -> routed path + accuracy.

    scale -> simplify -> crossing correction (foot/bike) -> chunked routing
    -> score against the scaled shape.
    """

    def __init__(
        self,
        settings: Settings,
        provider: Optional[RoutingProvider] = None,
        cache=None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.provider = provider
        self.cache = cache if cache is not None else NullCache()
        self.crossings = RiverCrossingPreprocessor(provider, settings, sleep=sleep)
        self.stitcher = RouteStitcher(provider, self.cache, settings, sleep=sleep)

    @classmethod
    def from_settings(cls, settings: Settings) -> RoutePipeline:
        return cls(settings, provider=build_provider(settings), cache=build_cache(settings))

    def run(
        self,
        shape_points: Sequence[Tuple[float, float]],
        center: GeoPoint,
        radius_m: float,
        mode: str,
    ) -> RouteGeneration:
        if mode not in TRANSPORT_MODES:
            raise InputError(f"Unknown transport mode '{mode}' (supported: {', '.join(TRANSPORT_MODES)})")
        if radius_m <= 0:
            raise InputError(f"radius_m must be positive, got {radius_m}")
        if len(shape_points) < 2:
            raise InputError("At least two shape points are required")

        geo_points = scale_to_geo(shape_points, center, radius_m)
        waypoints = simplify_for_mode(geo_points, mode, self.settings)
        if len(waypoints) < 2:
            raise InputError("Shape collapsed to fewer than two waypoints")

        corrected = self.crossings.process(waypoints, mode)
        route = self.stitcher.route(waypoints, mode, crossings_corrected=corrected)

        accuracy = score(geo_points, route.coordinates, radius_m, self.settings)
        log.info(
            "Generated %s route: %d waypoints, %d crossings corrected, accuracy %.1f",
            mode, len(waypoints), corrected, accuracy,
        )
        return RouteGeneration(
            route=route,
            accuracy=round(accuracy, 2),
            waypoint_count=len(waypoints),
            shape_point_count=len(shape_points),
        )
