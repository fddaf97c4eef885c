"""Chunked routing: one long waypoint list -> one continuous routed path.

The routing service caps waypoints per request, so the sequence is split into
chunks that share one boundary waypoint with their neighbour. Chunks are
routed strictly in order with a fixed pause between calls, then merged by
dropping each later chunk's first vertex (the duplicated seam).
"""
from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from routista.cache import keys
from routista.config import Settings
from routista.core.models import GeoPoint, RouteResult, RouteSegment
from routista.errors import InputError, ServiceError
from routista.providers.base import RoutingProvider
from routista.providers.mock import StraightLineProvider

log = logging.getLogger(__name__)


def chunk_waypoints(waypoints: Sequence[GeoPoint], chunk_size: int) -> List[List[GeoPoint]]:
    """Split into chunks of at most ``chunk_size + 1`` points sharing one seam point.

    Every chunk has at least two points.
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    n = len(waypoints)
    return [list(waypoints[i : i + chunk_size + 1]) for i in range(0, n - 1, chunk_size)]


def merge_segments(segments: Sequence[RouteSegment]) -> Tuple[List[GeoPoint], float, float]:
    """Concatenate chunk geometries, dropping the seam duplicate of every chunk after the first."""
    merged: List[GeoPoint] = []
    total_distance = 0.0
    total_duration = 0.0
    for i, seg in enumerate(segments):
        coords = seg.coordinates if i == 0 else seg.coordinates[1:]
        merged.extend(coords)
        total_distance += seg.distance_m
        total_duration += seg.duration_s
    return merged, total_distance, total_duration


class RouteStitcher:
    def __init__(
        self,
        provider: Optional[RoutingProvider],
        cache,
        settings: Settings,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if settings.chunk_size + 1 > settings.max_waypoints_per_request:
            raise ValueError(
                f"chunk_size {settings.chunk_size} exceeds the {settings.max_waypoints_per_request} waypoint limit"
            )
        self.provider = provider
        self.cache = cache
        self.settings = settings
        self.sleep = sleep

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def _lookup(self, key: str) -> Tuple[Optional[RouteResult], str]:
        try:
            cached = self.cache.get(key)
        except Exception as exc:
            log.warning("Route cache read failed (%s), treating as miss", exc)
            return None, "error"
        if cached is None:
            return None, "miss"
        try:
            return RouteResult.model_validate(cached), "hit"
        except ValidationError as exc:
            log.warning("Discarding unreadable cache entry %s: %s", key, exc)
            return None, "miss"

    def _store(self, key: str, result: RouteResult) -> None:
        try:
            self.cache.set(key, result.model_dump(mode="json"), self.settings.route_cache_ttl_s)
        except Exception as exc:
            log.warning("Route cache write failed: %s", exc)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def route(self, waypoints: Sequence[GeoPoint], mode: str, crossings_corrected: int = 0) -> RouteResult:
        frozen = tuple((float(lat), float(lng)) for lat, lng in waypoints)
        if len(frozen) < 2:
            raise InputError("At least two waypoints are required to build a route")

        if self.provider is None:
            if not self.settings.allow_mock_routing:
                raise ServiceError("No routing credential configured and mock routing is disabled")
            log.warning("No routing credential, using straight-line mock route")
            seg = StraightLineProvider().route(frozen, mode)[0]
            return RouteResult(
                coordinates=seg.coordinates,
                distance_m=seg.distance_m,
                duration_s=seg.duration_s,
                chunk_count=1,
                crossings_corrected=crossings_corrected,
                source="mock",
            )

        key = keys.route(frozen, mode)
        cached, status = self._lookup(key)
        if cached is not None:
            log.info("Route cache hit %s", key)
            return cached.model_copy(update={"cache_status": "hit"})

        chunks = chunk_waypoints(frozen, self.settings.chunk_size)
        log.info("Routing %d waypoints in %d chunk(s), mode=%s", len(frozen), len(chunks), mode)

        segments: List[RouteSegment] = []
        usable = 0
        for idx, chunk in enumerate(chunks):
            if idx > 0:
                self.sleep(self.settings.chunk_delay_s)
            log.debug("Chunk %d/%d with %d points", idx + 1, len(chunks), len(chunk))
            try:
                candidates = self.provider.route(chunk, mode)
            except ServiceError as exc:
                log.error("Chunk %d/%d failed, aborting route: %s", idx + 1, len(chunks), exc)
                raise
            if candidates:
                segments.append(candidates[0])
                usable += 1
            else:
                log.warning("Chunk %d/%d returned no routes, bridging with a straight line", idx + 1, len(chunks))
                segments.append(RouteSegment(coordinates=list(chunk)))

        if usable == 0:
            log.warning("No chunk produced a route, falling back to straight line")
            result = RouteResult(
                coordinates=list(frozen),
                cache_status=status,
                chunk_count=len(chunks),
                crossings_corrected=crossings_corrected,
                source="straight_line",
            )
        else:
            coords, total_distance, total_duration = merge_segments(segments)
            result = RouteResult(
                coordinates=coords,
                distance_m=total_distance,
                duration_s=total_duration,
                cache_status=status,
                chunk_count=len(chunks),
                crossings_corrected=crossings_corrected,
                source="provider",
            )

        log.info(
            "Route generated: %d points, %.2f km, %d min",
            len(result.coordinates), result.distance_m / 1000, round(result.duration_s / 60),
        )
        if result.source == "provider":
            self._store(key, result)
        return result
