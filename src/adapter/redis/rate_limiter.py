"""Redis implementation of RateLimiterPort.

Fixed-window counters shared by every API worker:
- Key: fixly:rate:<action>:<client>
- INCR per hit, EXPIRE set on the first hit of a window
- Connection: Cached client, reconnect attempts spaced by a short backoff
"""

import logging
import os
import time
from typing import Optional

import redis
from redis.exceptions import RedisError

from domain.model.rate_limit import RateLimitDecision, RateLimitPolicy

logger = logging.getLogger(__name__)

REDIS_URL = os.getenv('REDIS_URL', '')
KEY_PREFIX = 'fixly:rate'
RECONNECT_BACKOFF_SECONDS = 5.0


class RedisRateLimiter:
    def __init__(
        self,
        url: str = REDIS_URL,
        prefix: str = KEY_PREFIX,
        reconnect_backoff: float = RECONNECT_BACKOFF_SECONDS,
    ):
        self._url = url
        self._prefix = prefix
        self._client_cache: Optional[redis.Redis] = None
        self._reconnect_backoff = reconnect_backoff
        self._retry_at: float = 0.0
        self._connected_once: bool = False
        self._unconfigured_logged: bool = False

    def _get_client(self) -> Optional[redis.Redis]:
        """Get Redis client with caching and reconnection logic.

        A failed connection is retried once the backoff has elapsed.
        """
        if self._client_cache:
            try:
                self._client_cache.ping()
                return self._client_cache
            except Exception:
                self._client_cache = None
                logger.debug("[REDIS] Cached client failed ping, attempting reconnection...")

        if not self._url:
            if not self._unconfigured_logged:
                logger.error("[REDIS] REDIS_URL not configured, rate limiting disabled")
                self._unconfigured_logged = True
            return None

        if time.monotonic() < self._retry_at:
            return None

        try:
            client = redis.from_url(
                self._url,
                decode_responses=True,
                socket_connect_timeout=5,
            )
            client.ping()
        except (RedisError, ValueError, OSError) as e:
            self._retry_at = time.monotonic() + self._reconnect_backoff
            error_msg = str(e)[:200]
            logger.error(f"[REDIS] Connection failed, retrying in {self._reconnect_backoff}s: {error_msg}")
            return None

        if not self._connected_once:
            logger.info("[REDIS] Connected successfully")
        elif self._retry_at:
            logger.info("[REDIS] Reconnected")
        self._connected_once = True
        self._retry_at = 0.0
        self._client_cache = client
        return client

    def _allow(self, policy: RateLimitPolicy) -> RateLimitDecision:
        return RateLimitDecision(
            allowed=True,
            limit=policy.limit,
            remaining=policy.limit - 1,
            retry_after=policy.window_seconds,
        )

    # ── RateLimiterPort implementation ───────────────────────

    def hit(self, policy: RateLimitPolicy, client_key: str) -> RateLimitDecision:
        client = self._get_client()
        if not client:
            # Counters unavailable: requests are not throttled
            return self._allow(policy)

        key = f"{self._prefix}:{policy.action}:{client_key}"
        try:
            pipe = client.pipeline()
            pipe.incr(key)
            pipe.expire(key, policy.window_seconds, nx=True)
            pipe.ttl(key)
            count, _, ttl = pipe.execute()
        except RedisError as e:
            logger.warning("Rate limiter unavailable", extra={"action": policy.action, "error": str(e)})
            return self._allow(policy)

        count = int(count)
        retry_after = int(ttl) if ttl and int(ttl) > 0 else policy.window_seconds
        if count > policy.limit:
            logger.info("Rate limit exceeded", extra={"action": policy.action, "count": count})
            return RateLimitDecision(allowed=False, limit=policy.limit, remaining=0, retry_after=retry_after)

        return RateLimitDecision(
            allowed=True,
            limit=policy.limit,
            remaining=policy.limit - count,
            retry_after=retry_after,
        )

    def ping(self) -> bool:
        return self._get_client() is not None
