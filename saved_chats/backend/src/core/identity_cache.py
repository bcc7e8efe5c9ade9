"""Caches mapping OAuth access tokens to resolved user ids."""

from __future__ import annotations

import hashlib
import time
from typing import Protocol

import structlog
from redis import Redis

from .config import get_settings

LOGGER = structlog.get_logger(__name__)


class IdentityCache(Protocol):
    """Get-or-populate store for token to user id lookups."""

    def get(self, token: str) -> str | None:
        """Return the cached user id for ``token`` if present."""

    def set(self, token: str, user_id: str) -> None:
        """Remember ``user_id`` for ``token``."""


class InMemoryIdentityCache:
    """Process-local cache; entries never expire unless a TTL is given."""

    def __init__(self, *, ttl_seconds: int | None = None) -> None:
        self.ttl_seconds = ttl_seconds
        self._entries: dict[str, tuple[str, float | None]] = {}

    def get(self, token: str) -> str | None:
        entry = self._entries.get(token)
        if entry is None:
            return None
        user_id, expires_at = entry
        if expires_at is not None and expires_at <= time.monotonic():
            self._entries.pop(token, None)
            return None
        return user_id

    def set(self, token: str, user_id: str) -> None:
        expires_at = None
        if self.ttl_seconds:
            expires_at = time.monotonic() + self.ttl_seconds
        self._entries[token] = (user_id, expires_at)


class RedisIdentityCache:
    """Redis-backed cache shared between workers."""

    def __init__(
        self,
        url: str,
        *,
        key_prefix: str = "github_identity",
        ttl_seconds: int = 3600,
    ) -> None:
        self.client = Redis.from_url(url)
        self.key_prefix = key_prefix
        self.ttl_seconds = ttl_seconds

    def _key(self, token: str) -> str:
        # Raw tokens are never written to Redis.
        digest = hashlib.sha256(token.encode("utf-8")).hexdigest()
        return f"{self.key_prefix}:{digest}"

    def get(self, token: str) -> str | None:
        key = self._key(token)
        try:
            raw = self.client.get(key)
        except Exception as exc:
            LOGGER.warning("identity_cache_read_failed", key=key, error=str(exc))
            return None
        if not raw:
            return None
        return raw.decode("utf-8") if isinstance(raw, bytes) else str(raw)

    def set(self, token: str, user_id: str) -> None:
        key = self._key(token)
        try:
            self.client.setex(key, self.ttl_seconds, user_id)
        except Exception as exc:
            LOGGER.warning("identity_cache_write_failed", key=key, error=str(exc))


_cache: IdentityCache | None = None


def get_identity_cache() -> IdentityCache:
    """Return the process-wide identity cache, building it on first use."""

    global _cache
    if _cache is None:
        settings = get_settings()
        if settings.redis_enabled:
            _cache = RedisIdentityCache(
                settings.redis_url,
                ttl_seconds=settings.identity_cache_ttl_seconds or 3600,
            )
        else:
            _cache = InMemoryIdentityCache(
                ttl_seconds=settings.identity_cache_ttl_seconds
            )
        LOGGER.info("identity_cache_initialized", backend=type(_cache).__name__)
    return _cache


def reset_identity_cache() -> None:
    """Drop the process-wide cache so the next lookup rebuilds it."""

    global _cache
    _cache = None


__all__ = [
    "IdentityCache",
    "InMemoryIdentityCache",
    "RedisIdentityCache",
    "get_identity_cache",
    "reset_identity_cache",
]
