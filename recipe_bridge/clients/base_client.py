"""Base class for rate-limited repository clients."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Generic, Optional, TypeVar

from recipe_bridge.net.rate_limiter import RateLimiter

T = TypeVar("T")


class BaseClient(Generic[T]):
    """Provide rate-limited execution of outbound requests."""

    def __init__(
        self,
        rate_limiter: RateLimiter,
        *,
        logger: Optional[logging.Logger] = None,
        wall_clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._rate_limiter = rate_limiter
        self._logger = logger or logging.getLogger(self.__class__.__name__)
        self._wall_clock = wall_clock or time.time

    def _execute_with_rate_limit(
        self,
        operation: Callable[[], T],
        *,
        name: Optional[str] = None,
    ) -> T:
        """Run ``operation`` after waiting for rate-limiter availability."""
        label = name or getattr(operation, "__name__", "<anonymous>")
        self._rate_limiter.acquire()

        started_at = time.perf_counter()
        try:
            return operation()
        finally:
            elapsed_ms = (time.perf_counter() - started_at) * 1000.0
            if self._logger.isEnabledFor(logging.DEBUG):
                self._logger.debug(
                    "Operation %s completed in %.2f ms",
                    label,
                    elapsed_ms,
                )

    def _observe_quota(self, response: Any) -> None:
        """Pause the limiter when the host reports an exhausted quota."""
        headers = getattr(response, "headers", None) or {}
        remaining = headers.get("X-RateLimit-Remaining")
        reset_at = headers.get("X-RateLimit-Reset")
        if remaining is None or reset_at is None:
            return
        try:
            if int(remaining) > 0:
                return
            wait_seconds = float(reset_at) - self._wall_clock()
        except (TypeError, ValueError):
            return
        if wait_seconds > 0:
            self._logger.warning(
                "API quota exhausted; pausing requests for %.0f s",
                wait_seconds,
            )
            self._rate_limiter.pause_for(wait_seconds)
