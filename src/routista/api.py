"""FastAPI REST backend for routista route generation."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from routista.cache.rate_limit import RateLimiter
from routista.cache.redis_client import build_cache, get_redis
from routista.config import settings
from routista.core.engine import RoutePipeline
from routista.core.models import TransportMode
from routista.errors import InputError, ServiceError
from routista.providers.radar import RadarProvider

log = logging.getLogger(__name__)

app = FastAPI(title="Routista", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Module-level singletons (overridable in tests via dependency_overrides)
# ---------------------------------------------------------------------------
_singletons: Dict[str, Any] = {}


def get_pipeline() -> RoutePipeline:
    if "pipeline" not in _singletons:
        _singletons["pipeline"] = RoutePipeline.from_settings(settings)
    return _singletons["pipeline"]


def get_rate_limiter() -> RateLimiter:
    if "limiter" not in _singletons:
        _singletons["limiter"] = RateLimiter(build_cache(settings), settings)
    return _singletons["limiter"]


def get_radar() -> Optional[RadarProvider]:
    if "radar" not in _singletons:
        _singletons["radar"] = RadarProvider(settings.radar_api_key, settings) if settings.radar_api_key else None
    return _singletons["radar"]


def client_ip(request: Request) -> str:
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return "unknown"


# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------

class RouteRequest(BaseModel):
    points: List[Tuple[float, float]] = Field(..., min_length=2, description="Normalized [x, y] shape points")
    center: Tuple[float, float] = Field(..., description="[lat, lng] of the area centre")
    radius_m: float = Field(..., gt=0)
    mode: TransportMode = "foot-walking"


class RouteResponse(BaseModel):
    geojson: Dict[str, Any]
    accuracy: float
    distance_m: float
    duration_s: float
    cache_status: str
    chunk_count: int
    crossings_corrected: int
    waypoint_count: int
    source: str


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.get("/health")
def health():
    redis_ok = False
    try:
        r = get_redis(settings)
        if r is not None:
            r.ping()
            redis_ok = True
    except Exception as exc:
        log.debug("Redis health check failed: %s", exc)

    return {"status": "ok", "redis": redis_ok, "routing": bool(settings.radar_api_key)}


@app.post("/route", response_model=RouteResponse)
def generate_route(
    req: RouteRequest,
    request: Request,
    pipeline: RoutePipeline = Depends(get_pipeline),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    ip = client_ip(request)
    verdict = limiter.check(ip)
    if not verdict.success:
        raise HTTPException(
            status_code=429,
            detail="Too many requests",
            headers={"Retry-After": str(verdict.reset), "X-RateLimit-Remaining": "0"},
        )

    try:
        result = pipeline.run(req.points, req.center, req.radius_m, req.mode)
    except InputError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ServiceError as e:
        log.error("Route generation failed for %s: %s", ip, e)
        raise HTTPException(status_code=502, detail=str(e))

    route = result.route
    return RouteResponse(
        geojson=route.to_geojson(),
        accuracy=result.accuracy,
        distance_m=route.distance_m,
        duration_s=route.duration_s,
        cache_status=route.cache_status,
        chunk_count=route.chunk_count,
        crossings_corrected=route.crossings_corrected,
        waypoint_count=result.waypoint_count,
        source=route.source,
    )


@app.get("/autocomplete")
def autocomplete(
    q: str = Query("", description="Partial address or place name"),
    radar: Optional[RadarProvider] = Depends(get_radar),
):
    if radar is None:
        log.warning("No Radar API key configured for autocomplete")
        return {"addresses": []}
    return radar.autocomplete(q, limit=settings.autocomplete_limit)
