"""
Unit tests for the local cache.

Tests cover:
- Get after set
- Expiry after the TTL
- Clearing
- File-backed persistence
- Write failures
"""
import pytest

from app.infrastructure.errors import CacheWriteError
from app.infrastructure.local_cache import LocalCache

DAY = 24 * 60 * 60


# ============================================================
# In-memory Cache Tests
# ============================================================

class TestMemoryCache:
    """Tests for the in-memory cache."""

    def test_get_after_set_returns_value(self, memory_cache):
        """A fresh entry should be returned unchanged."""
        value = [{"name": "KITSILANO", "count": 120}]
        memory_cache.set("neighborhood_counts", value)

        assert memory_cache.get("neighborhood_counts") == value

    def test_missing_key_returns_none(self, memory_cache):
        """Unknown keys should be absent."""
        assert memory_cache.get("nope") is None

    def test_entry_valid_at_exactly_ttl(self, memory_cache, fake_clock):
        """An entry is still valid when its age equals the TTL."""
        memory_cache.set("key", 1)
        fake_clock.advance(DAY)

        assert memory_cache.get("key") == 1

    def test_entry_expires_after_ttl(self, memory_cache, fake_clock):
        """An expired entry should be absent and removed."""
        memory_cache.set("key", {"a": 1})
        fake_clock.advance(DAY + 1)

        assert memory_cache.get("key") is None
        assert "key" not in memory_cache._memory

    def test_clear_removes_everything(self, memory_cache):
        """clear should drop every entry."""
        memory_cache.set("a", 1)
        memory_cache.set("b", 2)
        memory_cache.clear()

        assert memory_cache.get("a") is None
        assert memory_cache.get("b") is None

    def test_stored_value_is_a_copy(self, memory_cache):
        """Mutating the original after set should not change the entry."""
        value = {"streets": ["Oak Street"]}
        memory_cache.set("key", value)
        value["streets"].append("Cambie Street")

        assert memory_cache.get("key") == {"streets": ["Oak Street"]}

    def test_unserialisable_value_raises(self, memory_cache):
        """Values that cannot be stored as JSON should raise CacheWriteError."""
        with pytest.raises(CacheWriteError):
            memory_cache.set("key", {"bad": object()})


# ============================================================
# File-backed Cache Tests
# ============================================================

class TestFileCache:
    """Tests for the JSON-file backed cache."""

    def test_entries_survive_new_instance(self, tmp_path, fake_clock):
        """A second cache on the same file should see earlier entries."""
        path = tmp_path / "cache.json"
        LocalCache(path=str(path), clock=fake_clock).set("key", [1, 2, 3])

        assert LocalCache(path=str(path), clock=fake_clock).get("key") == [1, 2, 3]

    def test_expired_entry_removed_from_file(self, tmp_path, fake_clock):
        """Reading an expired entry should delete it from the file."""
        path = tmp_path / "cache.json"
        cache = LocalCache(path=str(path), ttl_seconds=10, clock=fake_clock)
        cache.set("key", "value")
        cache.set("other", "kept")
        fake_clock.advance(5)
        cache.set("other", "kept")
        fake_clock.advance(6)

        assert cache.get("key") is None
        assert "key" not in path.read_text()
        assert cache.get("other") == "kept"

    def test_corrupt_file_treated_as_empty(self, tmp_path, fake_clock):
        """An unreadable cache file should behave like an empty cache."""
        path = tmp_path / "cache.json"
        path.write_text("{not json")
        cache = LocalCache(path=str(path), clock=fake_clock)

        assert cache.get("key") is None
        cache.set("key", 1)
        assert cache.get("key") == 1

    def test_write_failure_raises_cache_write_error(self, tmp_path, fake_clock):
        """A storage failure should surface as CacheWriteError."""
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("")
        cache = LocalCache(path=str(blocker / "cache.json"), clock=fake_clock)

        with pytest.raises(CacheWriteError):
            cache.set("key", 1)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
