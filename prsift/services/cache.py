"""Cache configuration and helpers built on aiocache."""

from logging import getLogger
from typing import Any

from aiocache import caches
from aiocache.base import BaseCache

from prsift.settings import settings

logger = getLogger(__name__)

CACHE_ALIASES = ("default", "memory", "persistent")


def configure_caches() -> None:
    """Configure aiocache aliases.

    "default" and "memory" are always in-process. "persistent" uses Redis when
    CACHE_REDIS_HOST is set so team data survives between CLI invocations.
    """
    memory_config: dict[str, Any] = {
        "cache": "aiocache.SimpleMemoryCache",
        "serializer": {"class": "aiocache.serializers.NullSerializer"},
        "ttl": settings.cache_default_ttl,
    }

    if settings.cache_redis_host:
        persistent_config: dict[str, Any] = {
            "cache": "aiocache.RedisCache",
            "endpoint": settings.cache_redis_host,
            "port": settings.cache_redis_port,
            "namespace": settings.project_name,
            "serializer": {"class": "aiocache.serializers.JsonSerializer"},
            "ttl": settings.cache_persistent_ttl,
        }
    else:
        persistent_config = dict(memory_config, ttl=settings.cache_persistent_ttl)

    caches.set_config(
        {
            "default": memory_config,
            "memory": dict(memory_config),
            "persistent": persistent_config,
        }
    )
    logger.debug(f"Configured caches (persistent backend: {persistent_config['cache']})")


def get_cache(alias: str = "default") -> BaseCache:
    """Return the cache registered under alias."""
    return caches.get(alias)


async def get_cached(key: str, alias: str = "default") -> Any:
    """Read a cached value, returning None when caching is disabled or the read fails."""
    if not settings.cache_enabled:
        return None
    try:
        return await get_cache(alias).get(key)
    except Exception as e:
        logger.warning(f"Cache read failed for {key}: {e}")
        return None


async def set_cached(key: str, value: Any, ttl: int | None = None, alias: str = "default") -> None:
    """Store a value; failures are logged and otherwise ignored."""
    if not settings.cache_enabled:
        return
    try:
        await get_cache(alias).set(key, value, ttl=ttl)
    except Exception as e:
        logger.warning(f"Cache write failed for {key}: {e}")
