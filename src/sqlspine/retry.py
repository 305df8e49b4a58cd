"""Bounded retry policies for polling waits.

Used by the schema manager to wait for the schema upgrade lock. A policy
combines a strategy (how many attempts, how long between them) with an
injectable sleep and clock, an optional overall timeout and an optional
cancel event, so waits are testable without real sleeping and can be cut
short by the caller.

Example:
    >>> policy = RetryPolicy(ConstantBackoff(max_attempts=5, delay=1.0))
    >>> for attempt in policy.attempts():
    ...     if try_acquire():
    ...         break
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field

from sqlspine.logging import get_logger

logger = get_logger(__name__)


class RetryStrategy(ABC):
    """Base class for retry strategies."""

    @abstractmethod
    def next_delay(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        ...

    @abstractmethod
    def should_retry(self, attempt: int) -> bool:
        """Whether another attempt may follow the given (1-based) attempt."""
        ...


@dataclass
class ConstantBackoff(RetryStrategy):
    """Constant delay between attempts."""

    max_attempts: int = 5
    delay: float = 1.0

    def next_delay(self, attempt: int) -> float:
        """Return constant delay."""
        return self.delay

    def should_retry(self, attempt: int) -> bool:
        return attempt < self.max_attempts


@dataclass
class LinearBackoff(RetryStrategy):
    """Linear backoff strategy.

    Delay = base_delay + (increment * (attempt - 1))
    """

    max_attempts: int = 5
    base_delay: float = 1.0
    increment: float = 1.0
    max_delay: float = 30.0

    def next_delay(self, attempt: int) -> float:
        return min(self.base_delay + self.increment * (attempt - 1), self.max_delay)

    def should_retry(self, attempt: int) -> bool:
        return attempt < self.max_attempts


@dataclass
class RetryPolicy:
    """A strategy plus the means to wait between attempts.

    Attributes:
        strategy: Decides the attempt budget and the delays
        sleep: Called with the delay between attempts (``time.sleep``)
        clock: Monotonic clock used for ``timeout`` (``time.monotonic``)
        timeout: Optional cap, in seconds, on the total time spent waiting
        cancel: Optional event; once set no further attempt is made
    """

    strategy: RetryStrategy = field(default_factory=ConstantBackoff)
    sleep: Callable[[float], None] = time.sleep
    clock: Callable[[], float] = time.monotonic
    timeout: float | None = None
    cancel: threading.Event | None = None

    @classmethod
    def constant(cls, max_attempts: int, delay: float, **kwargs) -> RetryPolicy:
        return cls(ConstantBackoff(max_attempts=max_attempts, delay=delay), **kwargs)

    def attempts(self) -> Iterator[int]:
        """Yield 1-based attempt numbers, waiting between them.

        The caller breaks out of the loop on success; exhausting the iterator
        means the budget, the timeout or a cancellation ended the wait.
        """
        deadline = self.clock() + self.timeout if self.timeout is not None else None
        attempt = 0
        while True:
            if self.cancel is not None and self.cancel.is_set():
                logger.info("retry.cancelled", attempt=attempt)
                return
            attempt += 1
            yield attempt
            if not self.strategy.should_retry(attempt):
                return
            delay = self.strategy.next_delay(attempt)
            if deadline is not None and self.clock() + delay > deadline:
                logger.info("retry.timed_out", attempt=attempt, timeout=self.timeout)
                return
            self._wait(delay)

    def _wait(self, delay: float) -> None:
        if self.cancel is not None:
            # Event.wait returns early when the event is set
            self.cancel.wait(delay)
        else:
            self.sleep(delay)


__all__ = [
    "RetryStrategy",
    "ConstantBackoff",
    "LinearBackoff",
    "RetryPolicy",
]
