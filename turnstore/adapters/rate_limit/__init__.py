"""Rate limiting adapters.

The storage clients gate every outgoing request through a limiter owned by
the client instance, so backend-imposed cooldowns never leak across clients.
"""

from turnstore.adapters.rate_limit.base import AbstractCooldownLimiter, RateLimitResult
from turnstore.adapters.rate_limit.cooldown import CooldownRateLimiter

__all__ = [
    "AbstractCooldownLimiter",
    "CooldownRateLimiter",
    "RateLimitResult",
]
