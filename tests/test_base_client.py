"""Tests for the rate-limited client base class."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

import pytest

from recipe_bridge.clients.base_client import BaseClient
from recipe_bridge.net.rate_limiter import RateLimiter


class DummyRateLimiter(RateLimiter):
    def __init__(self) -> None:
        super().__init__(max_calls=1, period_seconds=1.0)
        self.calls: List[None] = []
        self.pauses: List[float] = []

    def acquire(self) -> None:  # type: ignore[override]
        self.calls.append(None)

    def pause_for(self, seconds: float) -> None:  # type: ignore[override]
        self.pauses.append(seconds)


class SampleClient(BaseClient[Any]):
    def get_value(self) -> int:
        return self._execute_with_rate_limit(lambda: 42, name="get_value")


class _Response:
    def __init__(self, headers: Dict[str, str]) -> None:
        self.headers = headers


def test_base_client_executes_operation_and_observes_rate_limit() -> None:
    limiter = DummyRateLimiter()
    client = SampleClient(limiter)

    assert client.get_value() == 42
    assert len(limiter.calls) == 1


def test_base_client_logs_latency(caplog: pytest.LogCaptureFixture) -> None:
    limiter = DummyRateLimiter()
    logger = logging.getLogger("test_logger")
    logger.setLevel(logging.DEBUG)
    client = SampleClient(limiter, logger=logger)

    with caplog.at_level(logging.DEBUG, logger="test_logger"):
        client.get_value()

    assert any("get_value" in message for message in caplog.messages)


def test_observe_quota_pauses_when_exhausted() -> None:
    limiter = DummyRateLimiter()
    client = SampleClient(limiter, wall_clock=lambda: 1000.0)

    client._observe_quota(
        _Response({"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1060"})
    )

    assert limiter.pauses == [60.0]


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"X-RateLimit-Remaining": "12", "X-RateLimit-Reset": "1060"},
        {"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "soon"},
        {"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "900"},
    ],
)
def test_observe_quota_ignores_other_responses(headers: Dict[str, str]) -> None:
    limiter = DummyRateLimiter()
    client = SampleClient(limiter, wall_clock=lambda: 1000.0)

    client._observe_quota(_Response(headers))

    assert limiter.pauses == []
