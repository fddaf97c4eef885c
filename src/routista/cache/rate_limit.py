"""Sliding-window rate limiter over the shared cache.

Each identifier maps to a JSON list of request timestamps (ms). Store
failures allow the request.
"""
from __future__ import annotations

import logging
import math
import time
from typing import Callable, Optional

from pydantic import BaseModel

from routista.cache import keys
from routista.config import Settings

log = logging.getLogger(__name__)


class RateLimitResult(BaseModel):
    success: bool
    remaining: int
    reset: int  # unix seconds when the window frees up


class RateLimiter:
    def __init__(self, cache, settings: Settings, clock: Optional[Callable[[], float]] = None):
        self.cache = cache
        self.limit = settings.rate_limit_requests
        self.window_s = settings.rate_limit_window_s
        self.ttl_s = settings.rate_limit_window_s + settings.rate_limit_ttl_buffer_s
        self.clock = clock or time.time

    def check(self, identifier: str) -> RateLimitResult:
        now_ms = self.clock() * 1000
        window_ms = self.window_s * 1000
        key = keys.rate_limit(identifier)
        allowed = RateLimitResult(
            success=True,
            remaining=self.limit,
            reset=math.ceil((now_ms + window_ms) / 1000),
        )

        try:
            stamps = self.cache.get(key) or []
        except Exception as exc:
            log.warning("Rate limit store error, allowing request: %s", exc)
            return allowed

        recent = [ts for ts in stamps if ts > now_ms - window_ms]
        if len(recent) >= self.limit:
            log.info("Rate limit BLOCKED %s: %d/%d in window", identifier, len(recent), self.limit)
            return RateLimitResult(
                success=False,
                remaining=0,
                reset=math.ceil((min(recent) + window_ms) / 1000),
            )

        recent.append(now_ms)
        try:
            self.cache.set(key, recent, self.ttl_s)
        except Exception as exc:
            log.warning("Rate limit store error, allowing request: %s", exc)
            return allowed

        return RateLimitResult(
            success=True,
            remaining=self.limit - len(recent),
            reset=math.ceil((now_ms + window_ms) / 1000),
        )
