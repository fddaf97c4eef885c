"""Redis key naming conventions for the routista cache layer."""
from __future__ import annotations

import hashlib
from typing import Sequence

from routista.core.models import GeoPoint

_PREFIX = "rt"


# ── Routes ───────────────────────────────────────────────────────────────

def waypoint_hash(waypoints: Sequence[GeoPoint], mode: str) -> str:
    """Order-sensitive fingerprint of a waypoint sequence.

    Coordinates are rounded to 5 decimals (~1 m), so sub-metre jitter maps
    to the same hash.
    """
    joined = "|".join(f"{lat:.5f},{lng:.5f}" for lat, lng in waypoints)
    return hashlib.sha256(f"{mode}:{joined}".encode()).hexdigest()[:16]


def route(waypoints: Sequence[GeoPoint], mode: str) -> str:
    return f"{_PREFIX}:route:{mode}:{waypoint_hash(waypoints, mode)}"


def route_pattern(mode: str = "*") -> str:
    """SCAN match pattern for cached routes, all modes by default."""
    return f"{_PREFIX}:route:{mode}:*"


# ── Rate limiting ────────────────────────────────────────────────────────

def rate_limit(identifier: str) -> str:
    return f"{_PREFIX}:ratelimit:{identifier}"
