"""Radar directions API provider.

Wire format:
  request   locations=lat,lng|lat,lng|...  mode=foot|bike|car
            geometry=linestring  units=metric
  response  {"routes": [{"distance": {"value": m}, "duration": {"value": s},
                         "geometry": {"coordinates": [[lng, lat], ...]}}]}

Radar speaks [lng, lat]; everything past this module is (lat, lng).
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import requests

from routista.config import Settings
from routista.core.models import MODE_TO_RADAR, GeoPoint, RouteSegment
from routista.errors import ServiceError
from routista.providers.base import RoutingProvider
from routista.providers.http import HTTPClient

log = logging.getLogger(__name__)


def _format_locations(waypoints: Sequence[GeoPoint]) -> str:
    return "|".join(f"{lat},{lng}" for lat, lng in waypoints)


def _summary_value(raw: Dict[str, Any], field: str) -> float:
    obj = raw.get(field)
    if obj is None:
        return 0.0
    if not isinstance(obj, dict):
        raise ServiceError(f"Malformed route {field}: expected an object")
    try:
        return float(obj.get("value") or 0)
    except (TypeError, ValueError) as e:
        raise ServiceError(f"Malformed route {field}: {e}") from e


def _parse_route(raw: Dict[str, Any]) -> Optional[RouteSegment]:
    """One Radar route -> RouteSegment, or None when it carries no geometry."""
    geometry = raw.get("geometry")
    if geometry is None:
        return None
    if not isinstance(geometry, dict):
        raise ServiceError("Malformed route geometry: expected an object")
    coords = geometry.get("coordinates")
    if not coords:
        return None
    if not isinstance(coords, list):
        raise ServiceError("Malformed route geometry: coordinates is not a list")
    try:
        path = [(float(c[1]), float(c[0])) for c in coords]
    except (TypeError, ValueError, IndexError, KeyError) as e:
        raise ServiceError(f"Malformed route geometry: {e}") from e

    return RouteSegment(
        coordinates=path,
        distance_m=_summary_value(raw, "distance"),
        duration_s=_summary_value(raw, "duration"),
    )


class RadarProvider(RoutingProvider):
    def __init__(self, api_key: str, settings: Settings, http: Optional[HTTPClient] = None):
        if not api_key:
            raise ValueError("RadarProvider requires an API key")
        self.api_key = api_key
        self.base_url = settings.radar_base_url.rstrip("/")
        self.http = http or HTTPClient(
            user_agent=settings.user_agent,
            timeout_s=settings.http_timeout_s,
            tries=settings.http_tries,
            backoff_s=settings.http_backoff_s,
        )

    def route(self, waypoints: Sequence[GeoPoint], mode: str) -> List[RouteSegment]:
        if len(waypoints) < 2:
            raise ValueError("A route needs at least two waypoints")

        params = {
            "locations": _format_locations(waypoints),
            "mode": MODE_TO_RADAR.get(mode, "car"),
            "geometry": "linestring",
            "units": "metric",
        }
        url = f"{self.base_url}/route/directions"
        try:
            data = self.http.get_json(url, params=params, headers={"Authorization": self.api_key})
        except requests.HTTPError as e:
            resp = e.response
            status = resp.status_code if resp is not None else "?"
            body = resp.text[:200] if resp is not None else ""
            log.error("Radar API error %s: %s", status, body)
            raise ServiceError(f"Radar API error: {status} {body}") from e
        except (requests.RequestException, ValueError) as e:
            log.error("Radar request failed: %s", e)
            raise ServiceError(f"Radar request failed: {e}") from e

        if not isinstance(data, dict):
            raise ServiceError("Malformed Radar response: expected an object")
        routes = data.get("routes")
        if routes is None:
            routes = []
        if not isinstance(routes, list):
            raise ServiceError("Malformed Radar response: routes is not a list")

        segments = []
        for raw in routes:
            if not isinstance(raw, dict):
                raise ServiceError("Malformed Radar response: route is not an object")
            seg = _parse_route(raw)
            if seg is not None:
                segments.append(seg)
        return segments

    def autocomplete(self, query: str, limit: int = 5) -> Dict[str, List[Any]]:
        """Address suggestions for a partial query.

        Never raises: a blank query, an API error or a transport failure all
        yield ``{"addresses": []}``.
        """
        if not query or not query.strip():
            return {"addresses": []}

        url = f"{self.base_url}/search/autocomplete"
        params = {"query": query, "limit": str(limit)}
        try:
            data = self.http.get_json(url, params=params, headers={"Authorization": self.api_key})
        except requests.HTTPError as e:
            resp = e.response
            status = resp.status_code if resp is not None else "?"
            log.error("Radar autocomplete error %s: %s", status, resp.text[:200] if resp is not None else "")
            return {"addresses": []}
        except (requests.RequestException, ValueError) as e:
            log.error("Radar autocomplete request failed: %s", e)
            return {"addresses": []}

        addresses = data.get("addresses") if isinstance(data, dict) else None
        if not isinstance(addresses, list):
            return {"addresses": []}
        return {"addresses": addresses}


def build_provider(settings: Settings) -> Optional[RoutingProvider]:
    """Radar provider when a credential is configured, else None."""
    if not settings.radar_api_key:
        return None
    return RadarProvider(settings.radar_api_key, settings)
