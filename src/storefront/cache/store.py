"""Key/value cache stores used for read models (order listings, carts, settings).

Values are JSON-serializable structures. Keys follow ``CacheKeys``; pattern
deletes take glob-style patterns such as ``orders:user:42:*``.
"""

import fnmatch
import json
import threading
import time
from abc import ABC, abstractmethod

import redis


class CacheKeys:
    SETTINGS = "app:settings"

    @staticmethod
    def orders_page(user_id, page, limit):
        return f"orders:user:{user_id}:page:{page}:limit:{limit}"

    @staticmethod
    def orders_pattern(user_id):
        return f"orders:user:{user_id}:*"

    @staticmethod
    def cart(user_id):
        return f"cart:user:{user_id}"


class CacheStore(ABC):
    @abstractmethod
    def get(self, key):
        """Return the cached value, or None."""

    @abstractmethod
    def set(self, key, value, ttl=None):
        """Store ``value``; ``ttl`` is in seconds."""

    @abstractmethod
    def delete(self, key):
        pass

    @abstractmethod
    def delete_pattern(self, pattern):
        """Delete every key matching a glob-style pattern."""


class MemoryCache(CacheStore):
    """Process-local cache for development and tests."""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._entries = {}
        self._lock = threading.Lock()

    def get(self, key):
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and expires_at <= self._clock():
                del self._entries[key]
                return None
            return json.loads(value)

    def set(self, key, value, ttl=None):
        expires_at = self._clock() + ttl if ttl else None
        with self._lock:
            self._entries[key] = (json.dumps(value), expires_at)

    def delete(self, key):
        with self._lock:
            self._entries.pop(key, None)

    def delete_pattern(self, pattern):
        with self._lock:
            for key in fnmatch.filter(list(self._entries), pattern):
                del self._entries[key]

    def keys(self):
        with self._lock:
            return sorted(self._entries)


class RedisCache(CacheStore):
    def __init__(self, url="redis://localhost:6379/0", client=None):
        self.client = client or redis.Redis.from_url(url, decode_responses=True)

    def get(self, key):
        value = self.client.get(key)
        return json.loads(value) if value else None

    def set(self, key, value, ttl=None):
        if ttl:
            self.client.setex(key, ttl, json.dumps(value))
        else:
            self.client.set(key, json.dumps(value))

    def delete(self, key):
        self.client.delete(key)

    def delete_pattern(self, pattern):
        # SCAN instead of KEYS so a large keyspace does not block the server
        keys = list(self.client.scan_iter(match=pattern, count=500))
        if keys:
            self.client.delete(*keys)
