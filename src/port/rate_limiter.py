"""Port definition for RateLimiter."""

from typing import Protocol

from domain.model.rate_limit import RateLimitDecision, RateLimitPolicy


class RateLimiterPort(Protocol):
    def hit(self, policy: RateLimitPolicy, client_key: str) -> RateLimitDecision:
        """Record one attempt for (policy.action, client_key) and decide."""
        ...

    def ping(self) -> bool:
        """True when the counter backend is reachable."""
        ...
