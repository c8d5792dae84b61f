"""
Tests for caching layer.
"""
import time

import pytest

from insightboard.core.cache import (
    SimpleCache,
    generate_digest_cache_key,
    generate_parse_cache_key,
    get_insight_cache,
    get_parse_cache,
)


@pytest.mark.unit
def test_simple_cache_set_get():
    """Test basic cache set and get operations."""
    cache = SimpleCache(default_ttl=1.0)

    cache.set("key1", "value1")
    assert cache.get("key1") == "value1"

    cache.set("key2", "value2", ttl=0.1)
    assert cache.get("key2") == "value2"

    time.sleep(0.2)
    assert cache.get("key2") is None


@pytest.mark.unit
def test_simple_cache_cleanup():
    """Test cache cleanup of expired entries."""
    cache = SimpleCache(default_ttl=0.1)

    cache.set("key1", "value1")
    cache.set("key2", "value2", ttl=5.0)

    time.sleep(0.15)
    assert cache.cleanup_expired() == 1

    assert cache.get("key1") is None
    assert cache.get("key2") == "value2"


@pytest.mark.unit
def test_simple_cache_evicts_oldest_when_full():
    cache = SimpleCache(default_ttl=60, max_entries=2)

    cache.set("a", 1)
    time.sleep(0.01)
    cache.set("b", 2)
    time.sleep(0.01)
    cache.set("c", 3)

    assert cache.get("a") is None
    assert cache.get("b") == 2
    assert cache.get("c") == 3


@pytest.mark.unit
def test_simple_cache_stats():
    """Test cache statistics."""
    cache = SimpleCache(default_ttl=1.0)

    cache.set("key1", "value1")
    cache.set("key2", "value2")
    cache.get("key1")
    cache.get("missing")

    stats = cache.get_stats()
    assert stats["size"] == 2
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["default_ttl"] == 1.0


@pytest.mark.unit
def test_parse_cache_key():
    key1 = generate_parse_cache_key(b"a,b\n1,2", "csv", "first_row")
    key2 = generate_parse_cache_key(b"a,b\n1,2", "csv", "first_row")

    assert key1 == key2
    assert key1 != generate_parse_cache_key(b"a,b\n1,3", "csv", "first_row")
    assert key1 != generate_parse_cache_key(b"a,b\n1,2", "csv", "union")
    assert key1 != generate_parse_cache_key(b"a,b\n1,2", "json", "first_row")


@pytest.mark.unit
def test_digest_cache_key_ignores_key_order():
    first = generate_digest_cache_key({"rowCount": 2, "columns": ["a"]})
    second = generate_digest_cache_key({"columns": ["a"], "rowCount": 2})
    assert first == second
    assert first != generate_digest_cache_key({"columns": ["a"], "rowCount": 3})


@pytest.mark.unit
def test_cache_instances():
    """Test that cache instances are singletons."""
    assert get_parse_cache() is get_parse_cache()
    assert get_insight_cache() is get_insight_cache()
    assert get_parse_cache() is not get_insight_cache()
