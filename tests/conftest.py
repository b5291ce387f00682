import asyncio

import pytest

from feedlogic import canon
from feedlogic.cache import ExpiringCache
from feedlogic.config import PipelineConfig
from feedlogic.retry import RetryPolicy

T0_MS = 1_700_000_000_000  # 2023-11-14 22:13:20 UTC


class FakeClock:
    """Injectable millisecond clock that only moves when told to."""

    def __init__(self, start_ms: int = T0_MS):
        self.ms = start_ms

    def __call__(self) -> int:
        return self.ms

    def advance(self, ms: int) -> None:
        self.ms += ms


class FakeSeriesFetch:
    """
    Stand-in for the transport's fetch_raw_series.

    ``responses`` is consumed one per call: (delay_s, payload_or_exception).
    Once exhausted, ``default`` is returned (or raised).
    """

    def __init__(self, default=None, responses=()):
        self.default = default
        self.responses = list(responses)
        self.calls = []

    async def __call__(self, feed_id, start_ms, end_ms, interval_s):
        self.calls.append((feed_id, start_ms, end_ms, interval_s))
        delay, outcome = self.responses.pop(0) if self.responses else (0.0, self.default)
        if delay:
            await asyncio.sleep(delay)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeValueFetch:
    def __init__(self, values=None, fail_with=None):
        self.values = values or {}
        self.fail_with = fail_with
        self.calls = []

    async def __call__(self, feed_id):
        self.calls.append(feed_id)
        if self.fail_with is not None:
            raise self.fail_with
        return self.values.get(feed_id)


def ramp_payload(n: int, *, start_s: int = 1_700_000_000, step_s: int = 60):
    """[[ms, value], ...] the way the upstream API sends it."""
    return [[(start_s + i * step_s) * 1000, float(i)] for i in range(n)]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ExpiringCache(canon.SERIES_TTL_MS, clock=clock)


@pytest.fixture
def fast_config():
    return PipelineConfig(
        retry=RetryPolicy(max_attempts=3, base_delay_s=0.0),
        live_retry=RetryPolicy(max_attempts=1, base_delay_s=0.0),
        timeout_s=1.0,
        long_range_timeout_s=1.0,
        live_timeout_s=1.0,
    )


@pytest.fixture
def pairs_payload():
    # Unsorted, with garbage mixed in
    return [
        [3000, "3.0"],
        [1000, 1.0],
        [2000, None],
        ["x", 4.0],
        [4000, "4"],
    ]
