"""
Unit tests for the two-tier cache manager.
"""

import json

import pytest

from service_proxy.app.caching import CacheTier, CacheTierManager, LocalCache
from shared.metrics import MetricsCollector
from shared.test_helpers import FakeClock, InMemorySharedCache, UnavailableSharedCache


class TestCacheTierManager:
    """Test cases for CacheTierManager."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def local(self, clock):
        return LocalCache(max_entries=10, default_ttl=60, clock=clock)

    @pytest.fixture
    def shared(self):
        return InMemorySharedCache()

    @pytest.fixture
    def metrics(self):
        return MetricsCollector("proxy")

    @pytest.fixture
    def manager(self, local, shared, clock, metrics):
        return CacheTierManager(local, shared, shared_ttl=60, metrics=metrics, clock=clock)

    def envelope(self, value, expires_at):
        return json.dumps({"value": value, "expires_at": expires_at}).encode("utf-8")

    @pytest.mark.asyncio
    async def test_miss_when_both_tiers_empty(self, manager):
        lookup = await manager.read("https://example.com/")

        assert lookup.tier is CacheTier.MISS
        assert lookup.hit is False
        assert lookup.entry is None

    @pytest.mark.asyncio
    async def test_shared_tier_takes_precedence(self, manager, local, shared, clock):
        shared.data["k"] = self.envelope({"from": "shared"}, clock.now + 60)
        local.set("k", {"from": "local"})

        lookup = await manager.read("k")

        assert lookup.tier is CacheTier.SHARED
        assert lookup.entry.value == {"from": "shared"}

    @pytest.mark.asyncio
    async def test_local_tier_answers_shared_miss(self, manager, local):
        local.set("k", "local value")

        lookup = await manager.read("k")

        assert lookup.tier is CacheTier.LOCAL
        assert lookup.entry.value == "local value"

    @pytest.mark.asyncio
    async def test_unreachable_shared_tier_falls_back_to_local(self, local, clock, metrics):
        shared = UnavailableSharedCache()
        manager = CacheTierManager(local, shared, metrics=metrics, clock=clock)
        local.set("k", [1, 2, 3])

        lookup = await manager.read("k")

        assert lookup.tier is CacheTier.LOCAL
        assert lookup.entry.value == [1, 2, 3]
        assert shared.calls == ["get"]
        assert metrics.registry.get_sample_value(
            "shared_cache_degraded_total", {"operation": "get"}
        ) == 1.0

    @pytest.mark.asyncio
    async def test_expired_shared_envelope_is_a_miss(self, manager, shared, clock):
        shared.data["k"] = self.envelope("stale", clock.now - 1)

        lookup = await manager.read("k")

        assert lookup.tier is CacheTier.MISS

    @pytest.mark.asyncio
    async def test_undecodable_shared_value_is_a_miss(self, manager, shared, local):
        shared.data["k"] = b"\x00garbage"
        local.set("k", "fallback")

        lookup = await manager.read("k")

        assert lookup.tier is CacheTier.LOCAL
        assert lookup.entry.value == "fallback"

    @pytest.mark.asyncio
    async def test_populate_writes_both_tiers(self, manager, shared, local, clock):
        await manager.populate("k", {"x": 1}, ttl=30)

        stored = json.loads(shared.data["k"])
        assert stored == {"value": {"x": 1}, "expires_at": clock.now + 30}
        assert shared.ttls["k"] == 30
        assert local.get("k").value == {"x": 1}

    @pytest.mark.asyncio
    async def test_populate_defaults_to_shared_ttl(self, manager, shared):
        await manager.populate("k", "v")

        assert shared.ttls["k"] == 60

    @pytest.mark.asyncio
    async def test_populate_survives_shared_failure(self, local, clock, metrics):
        manager = CacheTierManager(local, UnavailableSharedCache(), metrics=metrics, clock=clock)

        await manager.populate("k", "v", ttl=30)

        assert local.get("k").value == "v"
        assert metrics.registry.get_sample_value(
            "shared_cache_degraded_total", {"operation": "set"}
        ) == 1.0

    @pytest.mark.asyncio
    async def test_populated_value_expires_from_both_tiers(self, manager, clock):
        await manager.populate("k", "v", ttl=10)
        assert (await manager.read("k")).tier is CacheTier.SHARED

        clock.advance(10)

        assert (await manager.read("k")).tier is CacheTier.MISS

    @pytest.mark.asyncio
    async def test_invalidate_single_key(self, manager, shared, local):
        await manager.populate("a", 1)
        await manager.populate("b", 2)

        result = await manager.invalidate("a")

        assert result.success is True
        assert result.partial is False
        assert result.key == "a"
        assert result.local_removed == 1
        assert "a" not in shared.data
        assert "b" in shared.data
        assert local.get("a") is None
        assert local.get("b") is not None

    @pytest.mark.asyncio
    async def test_invalidate_all(self, manager, shared, local):
        await manager.populate("a", 1)
        await manager.populate("b", 2)

        result = await manager.invalidate()

        assert result.success is True
        assert result.local_removed == 2
        assert shared.data == {}
        assert len(local) == 0
        assert result.to_dict()["message"] == "All cache cleared"

    @pytest.mark.asyncio
    async def test_invalidate_all_with_shared_down_is_partial(self, local, clock):
        manager = CacheTierManager(local, UnavailableSharedCache(), clock=clock)
        local.set("a", 1)

        result = await manager.invalidate()

        assert result.success is True
        assert result.partial is True
        assert len(local) == 0
        assert "shared" in result.errors
        data = result.to_dict()
        assert data["partial"] is True
        assert data["errors"]["shared"] == "shared cache unreachable"

    @pytest.mark.asyncio
    async def test_shared_tier_disabled(self, local, clock):
        manager = CacheTierManager(local, None, clock=clock)

        await manager.populate("k", "v")
        lookup = await manager.read("k")
        result = await manager.invalidate()

        assert manager.shared_enabled is False
        assert lookup.tier is CacheTier.LOCAL
        assert result.partial is False
        assert await manager.shared_status() == "disabled"

    @pytest.mark.asyncio
    async def test_shared_status(self, manager, local, clock):
        assert await manager.shared_status() == "connected"

        down = CacheTierManager(local, UnavailableSharedCache(), clock=clock)
        assert await down.shared_status() == "disconnected"
