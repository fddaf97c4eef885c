from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Tuple

import numpy as np
from pydantic import BaseModel, Field

GeoPoint = Tuple[float, float]  # (lat, lng)

TransportMode = Literal["foot-walking", "cycling-regular", "driving-car"]

TRANSPORT_MODES: Tuple[str, ...] = ("foot-walking", "cycling-regular", "driving-car")

# App mode -> Radar directions mode token
MODE_TO_RADAR: Dict[str, str] = {
    "foot-walking": "foot",
    "cycling-regular": "bike",
    "driving-car": "car",
}

# Modes that cannot use road bridges/tunnels freely and need crossing correction
PEDESTRIAN_MODES = frozenset({"foot-walking", "cycling-regular"})


@dataclass(frozen=True)
class RasterImage:
    """Decoded RGBA image, row-major, 4 bytes per pixel."""

    width: int
    height: int
    data: bytes

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Invalid image size {self.width}x{self.height}")
        expected = self.width * self.height * 4
        if len(self.data) != expected:
            raise ValueError(f"RGBA buffer has {len(self.data)} bytes, expected {expected}")

    @classmethod
    def from_array(cls, pixels: np.ndarray) -> RasterImage:
        """Build from a ``(height, width, 4)`` uint8 array."""
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(f"Expected (h, w, 4) array, got {pixels.shape}")
        h, w = pixels.shape[:2]
        return cls(width=w, height=h, data=np.ascontiguousarray(pixels, dtype=np.uint8).tobytes())

    def pixels(self) -> np.ndarray:
        return np.frombuffer(self.data, dtype=np.uint8).reshape(self.height, self.width, 4)


class ShapeExtraction(BaseModel):
    # Closed loop: len == requested samples + 1, first == last
    points: List[Tuple[float, float]]
    component_count: int
    is_likely_noise: bool
    threshold: int
    is_inverted: bool


class RouteSegment(BaseModel):
    """One route candidate returned by a single routing call."""

    coordinates: List[GeoPoint]
    distance_m: float = 0.0
    duration_s: float = 0.0


class RouteResult(BaseModel):
    coordinates: List[GeoPoint]
    distance_m: float = 0.0
    duration_s: float = 0.0

    cache_status: Literal["hit", "miss", "error"] = "miss"
    chunk_count: int = 0
    crossings_corrected: int = 0
    source: Literal["provider", "mock", "straight_line"] = "provider"

    def to_geojson(self) -> Dict[str, Any]:
        """Single-LineString FeatureCollection, coordinates as [lng, lat]."""
        return {
            "type": "FeatureCollection",
            "features": [
                {
                    "type": "Feature",
                    "properties": {
                        "summary": {
                            "distance": self.distance_m,
                            "duration": self.duration_s,
                        }
                    },
                    "geometry": {
                        "type": "LineString",
                        "coordinates": [[lng, lat] for lat, lng in self.coordinates],
                    },
                }
            ],
        }


class RouteGeneration(BaseModel):
    route: RouteResult
    accuracy: float = Field(ge=0.0, le=100.0)
    waypoint_count: int
    shape_point_count: int
