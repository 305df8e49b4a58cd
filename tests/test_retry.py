"""Tests for retry strategies and policies."""

import threading

import pytest

from sqlspine.retry import ConstantBackoff, LinearBackoff, RetryPolicy


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def sleep(self, delay):
        self.now += delay


@pytest.fixture
def clock():
    return FakeClock()


class TestStrategies:
    def test_constant(self):
        strategy = ConstantBackoff(max_attempts=3, delay=0.5)
        assert [strategy.next_delay(n) for n in (1, 2, 3)] == [0.5, 0.5, 0.5]
        assert strategy.should_retry(2)
        assert not strategy.should_retry(3)

    def test_linear_capped(self):
        strategy = LinearBackoff(base_delay=1.0, increment=2.0, max_delay=4.0)
        assert [strategy.next_delay(n) for n in (1, 2, 3)] == [1.0, 3.0, 4.0]


class TestRetryPolicy:
    def test_attempt_budget(self, clock):
        policy = RetryPolicy.constant(3, 1.0, sleep=clock.sleep, clock=clock)
        assert list(policy.attempts()) == [1, 2, 3]
        assert clock.now == 2.0

    def test_stops_when_caller_breaks(self, clock):
        policy = RetryPolicy.constant(5, 1.0, sleep=clock.sleep, clock=clock)
        for attempt in policy.attempts():
            if attempt == 2:
                break
        assert clock.now == 1.0

    def test_timeout(self, clock):
        policy = RetryPolicy.constant(10, 1.0, sleep=clock.sleep, clock=clock, timeout=2.5)
        assert list(policy.attempts()) == [1, 2, 3]

    def test_cancel_before_first_attempt(self):
        cancel = threading.Event()
        cancel.set()
        assert list(RetryPolicy.constant(3, 1.0, cancel=cancel).attempts()) == []

    def test_cancel_between_attempts(self):
        cancel = threading.Event()
        policy = RetryPolicy.constant(5, 0.0, cancel=cancel)
        seen = []
        for attempt in policy.attempts():
            seen.append(attempt)
            cancel.set()
        assert seen == [1]

    def test_defaults(self):
        policy = RetryPolicy()
        assert policy.strategy == ConstantBackoff(max_attempts=5, delay=1.0)
        assert policy.timeout is None
