# SPDX-License-Identifier: Apache-2.0

"""Retry utilities for handling transient API failures.

Retries are driven by a small state machine::

    IDLE -> ATTEMPTING -> SUCCEEDED
                |  ^
                v  |
              BACKOFF -> FAILED

Every attempt ends in ``SUCCEEDED``, ``BACKOFF`` or ``FAILED``, and the number
of attempts is bounded by ``max_retries + 1``.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, TypeVar

from loguru import logger

from .exceptions import RateLimitError, RefreshCancelledError, SourceError

T = TypeVar("T")


class RetryState(Enum):
    """States of a retried operation."""

    IDLE = "idle"
    ATTEMPTING = "attempting"
    BACKOFF = "backoff"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


ALLOWED_TRANSITIONS = {
    RetryState.IDLE: {RetryState.ATTEMPTING},
    RetryState.ATTEMPTING: {
        RetryState.SUCCEEDED,
        RetryState.BACKOFF,
        RetryState.FAILED,
    },
    RetryState.BACKOFF: {RetryState.ATTEMPTING, RetryState.FAILED},
    RetryState.SUCCEEDED: set(),
    RetryState.FAILED: set(),
}


@dataclass(frozen=True)
class BackoffPolicy:
    """Bounded exponential backoff.

    Attributes:
        max_retries: Maximum number of retries after the first attempt
        initial_delay: Delay before the first retry (seconds)
        backoff_factor: Multiplier applied per retry
        max_delay: Upper bound for a single delay (seconds)
    """

    max_retries: int = 3
    initial_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 30.0

    @property
    def max_transitions(self) -> int:
        # IDLE->ATTEMPTING, then per attempt ATTEMPTING->BACKOFF->ATTEMPTING,
        # and a final transition out of the last attempt or backoff
        return 2 * (self.max_retries + 1) + 1

    def delay_for(self, retry_number: int) -> float:
        """Return the delay before retry number ``retry_number`` (0-based)."""
        delay = self.initial_delay * (self.backoff_factor**retry_number)
        return min(delay, self.max_delay)


def _blocking_wait(delay: float) -> bool:
    time.sleep(delay)
    return False


class RetryMachine:
    """Runs one operation under a :class:`BackoffPolicy`.

    Retries ``NetworkError`` and ``RateLimitError``; every other
    ``SourceError`` fails immediately. A machine is single-use.

    Args:
        policy: Backoff policy to apply
        wait: Callable sleeping for the given delay and returning True when
            the wait was interrupted by cancellation
        name: Operation name used in log messages
    """

    def __init__(
        self,
        policy: BackoffPolicy,
        wait: Optional[Callable[[float], bool]] = None,
        name: str = "operation",
    ):
        self.policy = policy
        self.name = name
        self._wait = wait or _blocking_wait
        self.state = RetryState.IDLE
        self.history: List[RetryState] = [RetryState.IDLE]
        self.attempts = 0
        self.delays: List[float] = []

    def _transition(self, new_state: RetryState) -> None:
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise RuntimeError(
                f"{self.name}: invalid retry transition "
                f"{self.state.value} -> {new_state.value}"
            )
        if len(self.history) > self.policy.max_transitions:
            raise RuntimeError(f"{self.name}: retry transition bound exceeded")
        self.state = new_state
        self.history.append(new_state)

    def _delay_for(self, error: SourceError) -> float:
        if isinstance(error, RateLimitError) and error.retry_after is not None:
            return error.retry_after
        return self.policy.delay_for(self.attempts - 1)

    def run(self, func: Callable[[], T]) -> T:
        """Run ``func`` until it succeeds, fails permanently or retries run out.

        Raises:
            SourceError: The last error once retries are exhausted, or the
                first non-retryable one
            RefreshCancelledError: If a backoff wait was interrupted
        """
        self._transition(RetryState.ATTEMPTING)
        while True:
            self.attempts += 1
            try:
                result = func()
            except SourceError as e:
                if not e.retryable:
                    self._transition(RetryState.FAILED)
                    logger.error(f"{self.name}: Non-retryable error: {e}")
                    raise
                if self.attempts > self.policy.max_retries:
                    self._transition(RetryState.FAILED)
                    logger.error(
                        f"{self.name}: All {self.attempts} attempts failed: {e}"
                    )
                    raise

                delay = self._delay_for(e)
                self._transition(RetryState.BACKOFF)
                self.delays.append(delay)
                logger.warning(
                    f"{self.name}: Attempt {self.attempts}/"
                    f"{self.policy.max_retries + 1} failed: {e}. "
                    f"Retrying in {delay:.1f}s..."
                )
                if self._wait(delay):
                    self._transition(RetryState.FAILED)
                    raise RefreshCancelledError(
                        f"{self.name}: cancelled during backoff"
                    ) from e
                self._transition(RetryState.ATTEMPTING)
            else:
                self._transition(RetryState.SUCCEEDED)
                return result
