"""Rate limiter interfaces.

Storage clients depend on this abstraction (not the concrete implementation)
so the cooldown mechanics can be replaced, e.g. with a hand-driven limiter in
tests, without touching request handling.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of an admission check.

    Attributes:
        allowed: Whether a request may be dispatched now.
        remaining_seconds: Seconds left in the current cooldown (0 when allowed).
    """

    allowed: bool
    remaining_seconds: int


class AbstractCooldownLimiter(ABC):
    """Interface for limiters that block all requests during a backend cooldown."""

    @property
    @abstractmethod
    def remaining_seconds(self) -> int:
        """Seconds left before requests are admitted again."""
        raise NotImplementedError

    @abstractmethod
    def check(self) -> RateLimitResult:
        """Synchronous, non-blocking admission check.

        Checking never changes the cooldown.

        Returns:
            RateLimitResult describing whether a request may proceed.
        """
        raise NotImplementedError

    @abstractmethod
    def trigger(self, seconds: int) -> int:
        """Start (or restart) a cooldown of the given length.

        Args:
            seconds: Cooldown length reported by the backend.

        Returns:
            The new remaining seconds.
        """
        raise NotImplementedError

    @abstractmethod
    def shutdown(self) -> None:
        """Release background resources held by the limiter."""
        raise NotImplementedError
