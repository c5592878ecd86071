"""Optional Redis connection backing the request rate limiter."""

from __future__ import annotations

import logging

import redis

from .config import settings

logger = logging.getLogger(__name__)

DISABLED_VALUES = ("", "none", "disabled")

_client: redis.Redis | None = None
_checked = False


def _connect() -> redis.Redis | None:
    url = (settings.REDIS_URL or "").strip()
    if url.lower() in DISABLED_VALUES:
        logger.info("Redis disabled by configuration; requests will not be rate limited")
        return None

    client = redis.Redis.from_url(
        url,
        decode_responses=True,
        socket_connect_timeout=2,
        socket_timeout=2,
        retry_on_timeout=False,
    )
    try:
        client.ping()
    except redis.RedisError as e:
        logger.warning("Redis unreachable at startup (%s); requests will not be rate limited", e)
        return None
    logger.info("Redis connection established")
    return client


def get_redis_client() -> redis.Redis | None:
    """Connect on first use. Returns None when Redis is disabled or was unreachable."""
    global _client, _checked
    if not _checked:
        _checked = True
        _client = _connect()
    return _client


def count_in_window(key: str, window_seconds: int) -> int | None:
    """Increment a fixed-window counter, starting the window on the first hit.

    Returns None when no Redis is available or the call failed, so callers can let the
    request through.
    """
    client = get_redis_client()
    if client is None:
        return None
    try:
        pipe = client.pipeline()
        pipe.incr(key)
        pipe.expire(key, window_seconds, nx=True)
        hits, _ = pipe.execute()
    except redis.RedisError as e:
        logger.warning("Rate limit counter unavailable: %s", e)
        return None
    return int(hits)
