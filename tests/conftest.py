"""Pytest configuration and fixtures."""

from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
import pytest

from routista.config import Settings
from routista.core.geometry import route_length
from routista.core.models import GeoPoint, RasterImage, RouteSegment
from routista.providers.base import RoutingProvider


class FakeProvider(RoutingProvider):
    """Records calls; routes along the waypoints unless a handler says otherwise."""

    def __init__(self, handler: Optional[Callable[[Sequence[GeoPoint], str], List[RouteSegment]]] = None):
        self.handler = handler
        self.calls: List[Tuple[List[GeoPoint], str]] = []

    def route(self, waypoints, mode):
        self.calls.append((list(waypoints), mode))
        if self.handler is not None:
            return self.handler(waypoints, mode)
        path = [tuple(p) for p in waypoints]
        dist = route_length(path)
        return [RouteSegment(coordinates=path, distance_m=dist, duration_s=dist / 1.4)]


class FakeHTTP:
    """Stands in for HTTPClient; returns a canned payload or raises."""

    def __init__(self, payload=None, exc=None):
        self.payload = payload
        self.exc = exc
        self.requests = []

    def get_json(self, url, params=None, headers=None, timeout_s=None):
        self.requests.append((url, params, headers))
        if self.exc is not None:
            raise self.exc
        return self.payload


class DictCache:
    """In-memory stand-in for the shared cache."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ttl):
        self.store[key] = value
        self.ttls[key] = ttl


class BrokenCache:
    def get(self, key):
        raise ConnectionError("cache down")

    def set(self, key, value, ttl):
        raise ConnectionError("cache down")


def make_raster(
    width: int,
    height: int,
    background=(255, 255, 255, 255),
    rects: Sequence[Tuple[int, int, int, int]] = (),
    fill=(0, 0, 0, 255),
) -> RasterImage:
    """Raster with filled rectangles given as (x0, y0, x1, y1), end-exclusive."""
    px = np.zeros((height, width, 4), dtype=np.uint8)
    px[:, :] = background
    for x0, y0, x1, y1 in rects:
        px[y0:y1, x0:x1] = fill
    return RasterImage.from_array(px)


@pytest.fixture
def settings() -> Settings:
    """Settings with no external services and no inter-call delay."""
    return Settings(
        redis_url="",
        radar_api_key="",
        allow_mock_routing=False,
        chunk_delay_s=0.0,
    )


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def dict_cache() -> DictCache:
    return DictCache()


@pytest.fixture
def london() -> GeoPoint:
    return (51.5074, -0.1278)
