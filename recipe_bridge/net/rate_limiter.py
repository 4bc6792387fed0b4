"""
Recipe Bridge Repository
Introductory remarks: This module is part of the Recipe Bridge codebase.

Token-bucket rate limiter for calls against the hosted repository API.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Optional


class RateLimiter:
    """Enforce a maximum number of API calls per time window.

    Each call to :meth:`acquire` consumes one token; tokens refill at
    ``max_calls`` per ``period_seconds``. When the remote host reports that
    its own quota is exhausted, :meth:`pause_until` holds every caller until
    the advertised reset time.
    """

    def __init__(
        self,
        max_calls: int,
        period_seconds: float,
        *,
        time_fn: Optional[Callable[[], float]] = None,
        sleep_fn: Optional[Callable[[float], None]] = None,
    ) -> None:
        if max_calls <= 0:
            raise ValueError("max_calls must be positive.")
        if period_seconds <= 0:
            raise ValueError("period_seconds must be positive.")

        self._capacity = float(max_calls)
        self._seconds_per_token = float(period_seconds) / self._capacity
        self._time_fn = time_fn or time.monotonic
        self._sleep_fn = sleep_fn or time.sleep

        self._lock = threading.Lock()
        self._tokens = self._capacity
        self._last_refill = self._time_fn()
        self._paused_until = 0.0

    def acquire(self) -> None:
        """Block until a token is available and consume it."""
        while True:
            with self._lock:
                now = self._time_fn()
                if now < self._paused_until:
                    wait_time = self._paused_until - now
                else:
                    self._refill(now)
                    if self._tokens >= 1.0:
                        self._tokens -= 1.0
                        return
                    wait_time = (1.0 - self._tokens) * self._seconds_per_token

            # Sleep outside the lock so other callers can refill.
            self._sleep_fn(wait_time)

    def pause_until(self, resume_at: float) -> None:
        """Hold all acquisitions until ``resume_at`` on the limiter's clock."""
        with self._lock:
            self._paused_until = max(self._paused_until, resume_at)
            self._tokens = 0.0

    def pause_for(self, seconds: float) -> None:
        """Hold all acquisitions for ``seconds`` from now."""
        self.pause_until(self._time_fn() + max(0.0, seconds))

    def _refill(self, now: float) -> None:
        elapsed = now - self._last_refill
        if elapsed <= 0:
            return
        self._tokens = min(
            self._capacity, self._tokens + elapsed / self._seconds_per_token
        )
        self._last_refill = now
