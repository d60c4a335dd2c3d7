"""In-memory implementation of RateLimiterPort for testing."""

import time
from typing import Callable

from domain.model.rate_limit import RateLimitDecision, RateLimitPolicy


class FakeRateLimiter:
    """Fixed-window counters keyed by (action, client)."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self.windows: dict[tuple[str, str], tuple[float, int]] = {}

    def hit(self, policy: RateLimitPolicy, client_key: str) -> RateLimitDecision:
        now = self.clock()
        key = (policy.action, client_key)
        started, count = self.windows.get(key, (now, 0))
        if now - started >= policy.window_seconds:
            started, count = now, 0
        count += 1
        self.windows[key] = (started, count)

        retry_after = max(1, int(policy.window_seconds - (now - started)))
        if count > policy.limit:
            return RateLimitDecision(allowed=False, limit=policy.limit, remaining=0, retry_after=retry_after)
        return RateLimitDecision(
            allowed=True,
            limit=policy.limit,
            remaining=policy.limit - count,
            retry_after=retry_after,
        )

    def ping(self) -> bool:
        return True
