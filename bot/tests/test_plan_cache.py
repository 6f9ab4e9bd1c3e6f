"""Tests for the plan status cache."""
from core.plan_cache import PlanCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestPlanCache:
    def test_hit_within_ttl(self):
        clock = FakeClock()
        cache = PlanCache(ttl_seconds=300, clock=clock)
        cache.set(1, "weekend")

        clock.now += 299
        assert cache.get(1) == "weekend"
        assert 1 in cache

    def test_miss_after_ttl(self):
        clock = FakeClock()
        cache = PlanCache(ttl_seconds=300, clock=clock)
        cache.set(1, "weekend")

        clock.now += 300
        assert cache.get(1) is None
        assert 1 not in cache

    def test_invalidate(self):
        cache = PlanCache()
        cache.set(1, "weekend")
        cache.set(2, "vacation")

        cache.invalidate(1)
        cache.invalidate(42)

        assert cache.get(1) is None
        assert cache.get(2) == "vacation"

    def test_set_refreshes_timestamp(self):
        clock = FakeClock()
        cache = PlanCache(ttl_seconds=10, clock=clock)
        cache.set(1, "weekend")
        clock.now += 8
        cache.set(1, "vacation")
        clock.now += 8
        assert cache.get(1) == "vacation"

    def test_clear(self):
        cache = PlanCache()
        cache.set(1, "weekend")
        cache.clear()
        assert cache.get(1) is None
