from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Sequence

from routista.core.models import GeoPoint, RouteSegment


class RoutingProvider(ABC):
    """Route an ordered list of waypoints for one transport mode."""

    @abstractmethod
    def route(self, waypoints: Sequence[GeoPoint], mode: str) -> List[RouteSegment]:
        """Return route candidates, best first. An empty list means no usable route.

        Raises ``ServiceError`` on non-success, malformed or failed calls.
        """
        raise NotImplementedError
