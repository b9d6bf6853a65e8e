"""Optional Redis cache for collaborator responses.

Every call is fail-soft: with no ``redis_url`` configured, or the server
down, planning goes straight to the network.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Optional

log = logging.getLogger(__name__)

_client = None
_connect_attempted = False


def get_redis():
    """Shared connection, made on first use.  ``None`` when caching is off or unreachable."""
    global _client, _connect_attempted
    if _connect_attempted:
        return _client
    _connect_attempted = True

    from cycle_route.config import settings

    if not settings.redis_url:
        return None
    try:
        import redis

        conn = redis.Redis.from_url(settings.redis_url, decode_responses=True, socket_connect_timeout=3)
        conn.ping()
    except Exception as exc:
        log.warning("Redis at %s unavailable (%s); planning without cache", settings.redis_url, exc)
        return None

    log.info("Redis cache enabled: %s", settings.redis_url)
    _client = conn
    return _client


def reset_redis() -> None:
    """Forget the connection so the next call reconnects (settings changed, or tests)."""
    global _client, _connect_attempted
    _client = None
    _connect_attempted = False


def redis_healthy() -> bool:
    r = get_redis()
    if r is None:
        return False
    try:
        return bool(r.ping())
    except Exception:
        return False


def cache_get_json(key: str) -> Optional[Any]:
    r = get_redis()
    if r is None:
        return None
    try:
        raw = r.get(key)
        return json.loads(raw) if raw is not None else None
    except Exception as exc:
        log.debug("Cache read %s failed: %s", key, exc)
        return None


def cache_set_json(key: str, value: Any, ttl: int) -> None:
    r = get_redis()
    if r is None:
        return
    try:
        r.set(key, json.dumps(value, default=str), ex=ttl)
    except Exception as exc:
        log.debug("Cache write %s skipped: %s", key, exc)
