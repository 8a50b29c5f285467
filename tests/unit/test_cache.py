"""
TTL cache behaviour, driven by a fake clock.
"""
from storefront.services.cache import TTLCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestTTLCache:
    def test_defaults_to_five_minutes(self):
        assert TTLCache().ttl == 300

    def test_empty_cache_returns_none(self):
        assert TTLCache(clock=FakeClock()).get() is None

    def test_value_served_until_ttl_elapses(self):
        clock = FakeClock()
        cache = TTLCache(300, clock=clock)
        cache.set(["a"])

        clock.advance(299.9)
        assert cache.get() == ["a"]

        clock.advance(0.1)
        assert cache.get() is None

    def test_clear_invalidates(self):
        cache = TTLCache(300, clock=FakeClock())
        cache.set(["a"])
        cache.clear()
        assert cache.get() is None
        assert not cache.is_fresh()

    def test_last_write_wins(self):
        clock = FakeClock()
        cache = TTLCache(300, clock=clock)
        cache.set(["old"])
        clock.advance(10)
        cache.set(["new"])

        clock.advance(295)
        assert cache.get() == ["new"]

    def test_get_or_fetch_calls_fetch_only_when_stale(self):
        clock = FakeClock()
        cache = TTLCache(300, clock=clock)
        calls = []

        def fetch():
            calls.append(clock.now)
            return [len(calls)]

        assert cache.get_or_fetch(fetch) == [1]
        assert cache.get_or_fetch(fetch) == [1]
        clock.advance(301)
        assert cache.get_or_fetch(fetch) == [2]
        assert len(calls) == 2

    def test_empty_list_is_a_valid_cached_value(self):
        cache = TTLCache(300, clock=FakeClock())
        cache.set([])
        assert cache.get() == []
