"""Unit tests for cache adapters, route flushing and the rate limiter."""

import fnmatch
import json

import pytest

from conftest import BrokenCache, DictCache
from routista import cli
from routista.cache import keys
from routista.cache.rate_limit import RateLimiter
from routista.cache.redis_client import NullCache, RedisCache, build_cache, flush_routes


class FakeRedis:
    def __init__(self):
        self.data = {}
        self.expiry = {}
        self.scan_counts = []
        self.delete_calls = []

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ex=None):
        self.data[key] = value
        self.expiry[key] = ex

    def scan_iter(self, match=None, count=None):
        self.scan_counts.append(count)
        for key in list(self.data):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    def delete(self, *names):
        self.delete_calls.append(names)
        return sum(1 for n in names if self.data.pop(n, None) is not None)


class TestCacheAdapters:
    def test_redis_cache_round_trips_json(self) -> None:
        client = FakeRedis()
        cache = RedisCache(client)
        cache.set("k", {"a": [1, 2]}, 60)
        assert json.loads(client.data["k"]) == {"a": [1, 2]}
        assert client.expiry["k"] == 60
        assert cache.get("k") == {"a": [1, 2]}
        assert cache.get("missing") is None

    def test_null_cache(self) -> None:
        cache = NullCache()
        cache.set("k", 1, 10)
        assert cache.get("k") is None

    def test_build_cache_without_redis_url(self, settings) -> None:
        assert isinstance(build_cache(settings), NullCache)

    def test_rate_limit_key(self) -> None:
        assert keys.rate_limit("1.2.3.4") == "rt:ratelimit:1.2.3.4"


class TestFlushRoutes:
    def _seeded(self):
        client = FakeRedis()
        for i in range(5):
            client.set(f"rt:route:foot-walking:{i:016x}", "{}")
        client.set("rt:route:driving-car:abc", "{}")
        client.set("rt:ratelimit:1.2.3.4", "[]")
        return client

    def test_deletes_only_route_keys(self) -> None:
        client = self._seeded()
        assert flush_routes(client) == 6
        assert list(client.data) == ["rt:ratelimit:1.2.3.4"]

    def test_deletes_in_batches(self) -> None:
        client = self._seeded()
        assert flush_routes(client, batch_size=4) == 6
        assert [len(c) for c in client.delete_calls] == [4, 2]
        assert client.scan_counts == [4]

    def test_nothing_to_delete(self) -> None:
        client = FakeRedis()
        assert flush_routes(client) == 0
        assert client.delete_calls == []

    def test_route_pattern(self) -> None:
        assert keys.route_pattern() == "rt:route:*:*"
        assert keys.route_pattern("driving-car") == "rt:route:driving-car:*"


class TestFlushCacheCommand:
    def test_flushes_configured_redis(self, monkeypatch, capsys) -> None:
        client = FakeRedis()
        client.set("rt:route:foot-walking:abc", "{}")
        monkeypatch.setattr(cli, "get_redis", lambda s: client)
        monkeypatch.setattr("sys.argv", ["routista-flush-cache"])
        cli.flush_cache_main()
        assert client.data == {}
        assert "Deleted 1 route cache key(s)." in capsys.readouterr().out

    def test_exits_without_redis(self, monkeypatch) -> None:
        monkeypatch.setattr(cli, "get_redis", lambda s: None)
        monkeypatch.setattr("sys.argv", ["routista-flush-cache"])
        with pytest.raises(SystemExit) as exc:
            cli.flush_cache_main()
        assert exc.value.code == 1


class TestRateLimiter:
    def _limiter(self, settings, cache, now):
        s = settings.model_copy(update={"rate_limit_requests": 3, "rate_limit_window_s": 60})
        return RateLimiter(cache, s, clock=lambda: now[0])

    def test_allows_up_to_limit(self, settings) -> None:
        now = [1000.0]
        limiter = self._limiter(settings, DictCache(), now)
        results = [limiter.check("ip") for _ in range(4)]
        assert [r.success for r in results] == [True, True, True, False]
        assert [r.remaining for r in results] == [2, 1, 0, 0]

    def test_window_slides(self, settings) -> None:
        now = [1000.0]
        limiter = self._limiter(settings, DictCache(), now)
        for _ in range(3):
            limiter.check("ip")
        assert limiter.check("ip").success is False
        now[0] += 61
        assert limiter.check("ip").success is True

    def test_blocked_reset_is_end_of_oldest_window(self, settings) -> None:
        now = [1000.0]
        limiter = self._limiter(settings, DictCache(), now)
        for _ in range(3):
            limiter.check("ip")
        now[0] = 1010.0
        assert limiter.check("ip").reset == 1060

    def test_identifiers_are_independent(self, settings) -> None:
        now = [1000.0]
        limiter = self._limiter(settings, DictCache(), now)
        for _ in range(3):
            limiter.check("a")
        assert limiter.check("b").success is True

    def test_store_ttl_includes_buffer(self, settings) -> None:
        cache = DictCache()
        limiter = RateLimiter(cache, settings)
        limiter.check("ip")
        assert cache.ttls[keys.rate_limit("ip")] == settings.rate_limit_window_s + settings.rate_limit_ttl_buffer_s

    def test_broken_store_allows(self, settings) -> None:
        result = RateLimiter(BrokenCache(), settings).check("ip")
        assert result.success is True
        assert result.remaining == settings.rate_limit_requests
