"""
In-memory caching for parsed uploads and AI summaries.
"""
import hashlib
import json
import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Cache entry with expiration."""
    data: Any
    timestamp: float
    ttl: float  # seconds


class SimpleCache:
    """Thread-safe in-memory cache with TTL and a size bound."""

    def __init__(self, default_ttl: float = 3600, max_entries: int = 256):
        self._cache: Dict[str, CacheEntry] = {}
        self._lock = Lock()
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache if not expired."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self.misses += 1
                return None

            if time.time() - entry.timestamp > entry.ttl:
                del self._cache[key]
                self.misses += 1
                logger.debug(f"Cache entry expired: {key[:24]}...")
                return None

            self.hits += 1
            return entry.data

    def set(self, key: str, value: Any, ttl: Optional[float] = None):
        """Set value in cache with optional TTL."""
        with self._lock:
            if key not in self._cache and len(self._cache) >= self.max_entries:
                # Evict the oldest entry
                oldest = min(self._cache, key=lambda k: self._cache[k].timestamp)
                del self._cache[oldest]
            self._cache[key] = CacheEntry(
                data=value,
                timestamp=time.time(),
                ttl=ttl or self.default_ttl
            )

    def clear(self):
        with self._lock:
            self._cache.clear()
            self.hits = 0
            self.misses = 0

    def cleanup_expired(self) -> int:
        """Remove expired entries, returning how many were dropped."""
        with self._lock:
            now = time.time()
            expired_keys = [
                key for key, entry in self._cache.items()
                if now - entry.timestamp > entry.ttl
            ]
            for key in expired_keys:
                del self._cache[key]
        if expired_keys:
            logger.debug(f"Cleaned up {len(expired_keys)} expired cache entries")
        return len(expired_keys)

    def get_stats(self) -> Dict[str, Any]:
        self.cleanup_expired()
        with self._lock:
            return {
                'size': len(self._cache),
                'hits': self.hits,
                'misses': self.misses,
                'default_ttl': self.default_ttl
            }


_parse_cache = SimpleCache(default_ttl=1800)  # 30 minutes for parsed uploads
_insight_cache = SimpleCache(default_ttl=1800)  # 30 minutes for AI summaries


def get_parse_cache() -> SimpleCache:
    return _parse_cache


def get_insight_cache() -> SimpleCache:
    return _insight_cache


def generate_parse_cache_key(contents: bytes, file_type: str, schema_policy: str) -> str:
    """Cache key for a parsed upload, based on a content hash."""
    content_hash = hashlib.sha256(contents).hexdigest()
    return f"parse:{file_type}:{schema_policy}:{content_hash}"


def generate_digest_cache_key(digest: Dict[str, Any]) -> str:
    """Cache key for an AI summary of a data digest."""
    payload = json.dumps(digest, sort_keys=True, default=str)
    return f"insight:{hashlib.sha256(payload.encode()).hexdigest()}"
