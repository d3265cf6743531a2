"""
Unit tests for the local LRU/TTL cache tier.
"""

import pytest

from service_proxy.app.caching import CacheEntry, LocalCache
from shared.test_helpers import FakeClock


class TestLocalCache:
    """Test cases for LocalCache."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def cache(self, clock):
        return LocalCache(max_entries=3, default_ttl=60, clock=clock)

    def test_set_and_get(self, cache, clock):
        entry = cache.set("k", {"x": 1})

        assert entry.expires_at == clock.now + 60
        found = cache.get("k")
        assert found is not None
        assert found.value == {"x": 1}

    def test_missing_key_returns_none(self, cache):
        assert cache.get("absent") is None

    def test_entry_expires_exactly_at_ttl(self, cache, clock):
        cache.set("k", "v", ttl=10)

        clock.advance(9.5)
        assert cache.get("k") is not None

        clock.advance(0.5)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_reads_do_not_extend_expiry(self, cache, clock):
        cache.set("k", "v", ttl=10)

        for _ in range(5):
            clock.advance(1.5)
            assert cache.get("k") is not None

        clock.advance(2.5)
        assert cache.get("k") is None

    def test_tier_ttl_caps_requested_ttl(self, cache, clock):
        entry = cache.set("k", "v", ttl=3600)

        assert entry.expires_at == clock.now + 60

    def test_shorter_ttl_is_honored(self, cache, clock):
        entry = cache.set("k", "v", ttl=5)

        assert entry.expires_at == clock.now + 5

    def test_least_recently_used_entry_is_evicted(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)

        # Reading "a" makes "b" the least recently used
        assert cache.get("a") is not None
        cache.set("d", 4)

        assert len(cache) == 3
        assert cache.get("b") is None
        assert cache.get("a").value == 1
        assert cache.get("c").value == 3
        assert cache.get("d").value == 4

    def test_overwrite_replaces_entry(self, cache, clock):
        cache.set("k", "old", ttl=10)
        clock.advance(5)
        cache.set("k", "new", ttl=10)

        clock.advance(7)
        entry = cache.get("k")
        assert entry is not None
        assert entry.value == "new"

    def test_corrupted_entry_is_discarded(self, cache):
        cache._entries["k"] = "not an entry"

        assert cache.get("k") is None
        assert len(cache) == 0

    def test_entry_under_wrong_key_is_discarded(self, cache, clock):
        cache._entries["k"] = CacheEntry(key="other", value=1, expires_at=clock.now + 60)

        assert cache.get("k") is None

    def test_delete(self, cache):
        cache.set("k", "v")

        assert cache.delete("k") is True
        assert cache.delete("k") is False
        assert cache.get("k") is None

    def test_clear_returns_removed_count(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.clear() == 2
        assert len(cache) == 0

    def test_stats(self, cache):
        cache.set("a", 1)

        assert cache.stats() == {
            "entries": 1,
            "max_entries": 3,
            "default_ttl_seconds": 60,
        }

    @pytest.mark.parametrize("max_entries,ttl", [(0, 60), (10, 0)])
    def test_rejects_invalid_bounds(self, max_entries, ttl):
        with pytest.raises(ValueError):
            LocalCache(max_entries=max_entries, default_ttl=ttl)
