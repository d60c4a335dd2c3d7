"""Rate limiting dependency.

Each throttled route declares `Depends(rate_limit("<action>"))`. The client
key is the first X-Forwarded-For hop, then X-Real-IP, then the socket peer.
"""

import logging

from fastapi import Depends, Request

from api.dependencies import get_rate_limiter
from config import RATE_LIMITS
from domain.model.errors import RateLimitedError
from domain.model.rate_limit import RateLimitPolicy, rate_limit_message
from port.rate_limiter import RateLimiterPort

logger = logging.getLogger(__name__)


def client_fingerprint(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client:
        return request.client.host
    return "unknown"


def policy_for(action: str) -> RateLimitPolicy:
    limit, window_seconds = RATE_LIMITS[action]
    return RateLimitPolicy(action=action, limit=limit, window_seconds=window_seconds)


def rate_limit(action: str):
    """Build a dependency that counts one hit for `action` per request."""
    policy = policy_for(action)

    def dependency(request: Request, limiter: RateLimiterPort = Depends(get_rate_limiter)) -> None:
        client = client_fingerprint(request)
        decision = limiter.hit(policy, client)
        if not decision.allowed:
            logger.warning("Rate limited", extra={"action": action, "retryAfter": decision.retry_after})
            raise RateLimitedError(rate_limit_message(action), retry_after=decision.retry_after)

    return dependency
