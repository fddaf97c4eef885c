"""Redis connection + JSON cache adapters.

Adapters raise on store errors; callers decide how to degrade (a failed
lookup is a miss, a failed write is a no-op).
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from routista.cache import keys
from routista.config import Settings

log = logging.getLogger(__name__)

_clients: Dict[str, Any] = {}


def get_redis(settings: Settings):
    """Lazy per-URL singleton. Returns ``redis.Redis`` or ``None`` if unavailable."""
    url = settings.redis_url
    if not url:
        return None
    if url in _clients:
        return _clients[url]
    client = None
    try:
        import redis

        client = redis.Redis.from_url(url, decode_responses=True, socket_connect_timeout=3)
        client.ping()
        log.info("Redis connected: %s", url)
    except Exception as exc:
        log.warning("Redis unavailable (%s), running without cache", exc)
        client = None
    _clients[url] = client
    return client


class NullCache:
    """Cache that never stores anything."""

    def get(self, key: str) -> Optional[Any]:
        return None

    def set(self, key: str, value: Any, ttl: int) -> None:
        return None


class RedisCache:
    """JSON values in Redis with per-key TTL."""

    def __init__(self, client):
        self.client = client

    def get(self, key: str) -> Optional[Any]:
        raw = self.client.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl: int) -> None:
        self.client.set(key, json.dumps(value), ex=ttl)


def build_cache(settings: Settings):
    client = get_redis(settings)
    if client is None:
        return NullCache()
    return RedisCache(client)


def flush_routes(client, batch_size: int = 100) -> int:
    """SCAN for cached routes and delete them in batches. Returns the count deleted."""
    deleted = 0
    batch: List[str] = []
    for key in client.scan_iter(match=keys.route_pattern(), count=batch_size):
        batch.append(key)
        if len(batch) >= batch_size:
            deleted += client.delete(*batch)
            batch = []
    if batch:
        deleted += client.delete(*batch)
    log.info("Flushed %d cached route(s)", deleted)
    return deleted
