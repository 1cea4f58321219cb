"""In-memory cooldown limiter driven by a one-second timer.

Notes:
- Per-instance only: every storage client owns its own limiter.
- Thread-safe: uses a lock around the counter and the timer lifecycle.
"""

from __future__ import annotations

import logging
import threading

from turnstore.adapters.rate_limit.base import AbstractCooldownLimiter, RateLimitResult

logger = logging.getLogger(__name__)


class CooldownRateLimiter(AbstractCooldownLimiter):
    """Two-state limiter: Open (0 seconds left) or Limited (> 0 seconds left).

    A backend rate-limit response calls ``trigger`` with the backend's
    retry-after value. While Limited, ``check`` rejects without touching the
    counter, and a background timer decrements the counter once per
    ``tick_interval_seconds``. When the counter reaches 0 the timer stops
    and the limiter is Open again.

    Important:
        A rejected check never resets or extends the cooldown. Only a fresh
        ``trigger`` does, and its value overwrites the current one.
    """

    def __init__(
        self,
        *,
        tick_interval_seconds: float = 1.0,
        autostart_timer: bool = True,
    ) -> None:
        """Initialize the limiter in the Open state.

        Args:
            tick_interval_seconds: Wall-clock length of one countdown step.
            autostart_timer: Start the background timer on ``trigger``. When
                False the countdown only advances through ``tick`` calls.

        Raises:
            ValueError: If tick_interval_seconds is not positive.
        """
        if tick_interval_seconds <= 0:
            raise ValueError("tick_interval_seconds must be > 0")

        self._tick_interval = tick_interval_seconds
        self._autostart_timer = autostart_timer
        self._lock = threading.RLock()
        self._remaining = 0
        self._timer: threading.Thread | None = None
        self._stop_event: threading.Event | None = None

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"CooldownRateLimiter(remaining_seconds={self._remaining}, "
            f"timer_running={self.timer_running})"
        )

    @property
    def remaining_seconds(self) -> int:
        with self._lock:
            return self._remaining

    @property
    def timer_running(self) -> bool:
        with self._lock:
            return self._timer is not None and self._timer.is_alive()

    def check(self) -> RateLimitResult:
        with self._lock:
            if self._remaining > 0:
                return RateLimitResult(allowed=False, remaining_seconds=self._remaining)
            return RateLimitResult(allowed=True, remaining_seconds=0)

    def trigger(self, seconds: int) -> int:
        """Enter (or stay in) the Limited state with a new cooldown.

        Args:
            seconds: Cooldown length; overwrites any cooldown in progress.

        Returns:
            The new remaining seconds.

        Raises:
            ValueError: If seconds is not positive.
        """
        if seconds < 1:
            raise ValueError("seconds must be >= 1")

        with self._lock:
            self._remaining = seconds
            if self._autostart_timer:
                self._start_timer_locked()

        logger.warning(
            "rate_limit.triggered",
            extra={"remaining_s": seconds},
        )
        return seconds

    def tick(self) -> int:
        """Advance the countdown by one step.

        Returns:
            Remaining seconds after the step (0 once Open).
        """
        with self._lock:
            if self._remaining == 0:
                self._cancel_timer_locked()
                return 0

            self._remaining -= 1
            if self._remaining == 0:
                self._cancel_timer_locked()
                logger.info("rate_limit.cleared")
            return self._remaining

    def shutdown(self) -> None:
        """Cancel the timer. The counter keeps its current value."""
        with self._lock:
            timer = self._timer
            self._cancel_timer_locked()

        if timer is not None and timer is not threading.current_thread():
            timer.join(timeout=self._tick_interval * 2)

    def _start_timer_locked(self) -> None:
        if self._timer is not None and self._timer.is_alive():
            return

        stop_event = threading.Event()
        timer = threading.Thread(
            target=self._run_timer,
            args=(stop_event,),
            name="RateLimitTimer",
            daemon=True,
        )
        self._stop_event = stop_event
        self._timer = timer
        timer.start()

    def _cancel_timer_locked(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
        self._stop_event = None
        self._timer = None

    def _run_timer(self, stop_event: threading.Event) -> None:
        # Event.wait returns True once cancelled
        while not stop_event.wait(self._tick_interval):
            with self._lock:
                # A newer timer may have replaced this one between waits
                if stop_event.is_set():
                    return
                remaining = self.tick()
            if remaining == 0:
                return
