"""
Redis read-through cache for store documents.

Only read-mostly documents go through here (the exchange-rate table is read on
every price computation). Keys are `{prefix}:doc:{path}`. A disabled or
unreachable redis turns every read into a miss, so callers always fall back to
the store.
"""

import logging
import json
from typing import Any, Optional, Callable

import redis
from redis.exceptions import RedisError
from flask import Flask

from ricequote.utils.serialization import dumps_json, loads_json

logger = logging.getLogger(__name__)


class CacheService:

    def __init__(self, client: Optional[redis.Redis] = None, prefix: str = 'ricequote',
                 default_ttl: int = 60):
        self.client = client
        self.prefix = prefix
        self.default_ttl = default_ttl

    @classmethod
    def from_config(cls, config) -> 'CacheService':
        """Connect using REDIS_URL; returns a pass-through cache when disabled or down."""
        prefix = config.get('CACHE_KEY_PREFIX', 'ricequote')
        ttl = config.get('CACHE_DEFAULT_TTL', 60)
        if not config.get('CACHE_ENABLED', True):
            logger.info("[CACHE] Disabled via config")
            return cls(None, prefix, ttl)

        redis_url = config.get('REDIS_URL', 'redis://redis:6379/0')
        try:
            client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
                socket_timeout=3,
                retry_on_timeout=True,
                health_check_interval=30
            )
            client.ping()
        except RedisError as e:
            logger.warning(f"[CACHE] Redis unreachable at {redis_url}: {e}. Reading through to the store.")
            return cls(None, prefix, ttl)

        logger.info(f"[CACHE] Redis connected: {redis_url}")
        return cls(client, prefix, ttl)

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def key_for(self, path: str) -> str:
        return f"{self.prefix}:doc:{path.strip('/')}"

    def read(self, path: str) -> Optional[Any]:
        if not self.enabled:
            return None
        try:
            raw = self.client.get(self.key_for(path))
        except RedisError as e:
            logger.warning(f"[CACHE] Read {path} failed: {e}")
            return None
        if raw is None:
            return None
        try:
            return loads_json(raw)
        except json.JSONDecodeError:
            logger.warning(f"[CACHE] Dropping undecodable entry for {path}")
            self.invalidate(path)
            return None

    def write(self, path: str, value: Any, ttl: Optional[int] = None) -> bool:
        if not self.enabled:
            return False
        try:
            self.client.setex(self.key_for(path), ttl or self.default_ttl, dumps_json(value))
        except RedisError as e:
            logger.warning(f"[CACHE] Write {path} failed: {e}")
            return False
        return True

    def invalidate(self, path: str) -> None:
        """Drop the cached copy after the document changes."""
        if not self.enabled:
            return
        try:
            self.client.delete(self.key_for(path))
            logger.info(f"[CACHE] Invalidated {path}")
        except RedisError as e:
            logger.warning(f"[CACHE] Invalidate {path} failed: {e}")

    def read_through(self, path: str, loader: Callable[[], Any], ttl: Optional[int] = None) -> Any:
        """Return the cached document, or load it from the store and cache it."""
        cached = self.read(path)
        if cached is not None:
            return cached
        value = loader()
        if value is not None:
            self.write(path, value, ttl)
        return value


_cache_service: Optional[CacheService] = None


def init_cache(app: Flask) -> None:
    """Initialize cache service singleton."""
    global _cache_service
    _cache_service = CacheService.from_config(app.config)
    app.extensions['cache'] = _cache_service


def get_cache() -> CacheService:
    """Get cache service instance."""
    if _cache_service is None:
        raise RuntimeError("Cache not initialized.")
    return _cache_service
