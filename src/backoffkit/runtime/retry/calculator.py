"""Memoised delay calculation.

DelayCalculator turns an algorithm's raw output into the bounded, optionally
jittered delay for each retry number, and decides when the sequence ends.

Two caches keyed by retry number hold the base and jittered delays. Once a
retry's delay has been computed it is never recomputed, so feedback
algorithms (decorrelated) see a stable chain and random ones give the same
answer every time they are queried. reset() starts a fresh sequence.
"""

from __future__ import annotations

import logging
from numbers import Real

from backoffkit.foundation.errors import BackoffRuntimeError

from .algorithms import BackoffAlgorithm
from .jitter import Jitter

logger = logging.getLogger("backoffkit.retry.calculator")


def _is_number(value: object) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


class DelayCalculator:
    """Bounded, jittered and memoised delays for one strategy run.

    Retry numbers are 0-indexed from the first attempt: retry 0 is the first
    attempt (no delay precedes it), retry 1 is the first retry.

    Args:
        algorithm: Produces the base delay sequence
        jitter: Optional jitter applied to positive base delays
        max_attempts: Attempt ceiling (None for unlimited)
        max_delay: Upper bound for base delays (None for unbounded)
        immediate_first_retry: Force retry 1 to 0 and shift the algorithm by one
        delays_enabled: When False, every delay becomes 0 (stop signals still apply)
    """

    __slots__ = (
        "_algorithm", "_jitter", "_max_attempts", "_max_delay",
        "_immediate_first_retry", "_delays_enabled", "_base_delays", "_jittered_delays",
    )

    def __init__(
        self,
        algorithm: BackoffAlgorithm,
        jitter: Jitter | None = None,
        *,
        max_attempts: int | None = None,
        max_delay: float | None = None,
        immediate_first_retry: bool = False,
        delays_enabled: bool = True,
    ) -> None:
        self._algorithm = algorithm
        self._jitter = jitter
        self._max_attempts = max_attempts
        self._max_delay = max_delay
        self._immediate_first_retry = immediate_first_retry
        self._delays_enabled = delays_enabled
        self._base_delays: dict[int, float | None] = {}
        self._jittered_delays: dict[int, float | None] = {}

    def reset(self) -> DelayCalculator:
        """Forget every computed delay so a new, independent sequence is generated."""
        self._base_delays.clear()
        self._jittered_delays.clear()
        return self

    def get_base_delay(self, retry_number: int) -> float | None:
        """Base delay before the given retry (before jitter), or None to stop."""
        if retry_number in self._base_delays:
            return self._base_delays[retry_number]

        # Earlier retries feed the later ones, so fill any gap oldest first
        if self._within_ceiling(retry_number):
            first = retry_number
            while first > 1 and first - 1 not in self._base_delays:
                first -= 1
            for earlier in range(first, retry_number):
                self._base_delays[earlier] = self._calculate_base_delay(earlier)

        delay = self._base_delays[retry_number] = self._calculate_base_delay(retry_number)
        return delay

    def get_jittered_delay(self, retry_number: int) -> float | None:
        """Delay actually waited before the given retry, or None to stop."""
        if retry_number in self._jittered_delays:
            return self._jittered_delays[retry_number]

        delay = self._apply_jitter(self.get_base_delay(retry_number), retry_number)
        if delay is not None:
            delay = max(0, delay)
        self._jittered_delays[retry_number] = delay
        return delay

    def should_stop(self, retry_number: int) -> bool:
        """Whether the sequence has ended by the given retry."""
        if retry_number <= 0:
            return False
        return self.get_base_delay(retry_number) is None

    def _within_ceiling(self, retry_number: int) -> bool:
        if retry_number <= 0:
            return False
        # retry n is attempt n + 1
        return self._max_attempts is None or retry_number < self._max_attempts

    def _calculate_base_delay(self, retry_number: int) -> float | None:
        if not self._within_ceiling(retry_number):
            if retry_number > 0:
                logger.debug(f"Attempt ceiling ({self._max_attempts}) reached at retry {retry_number}")
            return None

        prev = self._base_delays.get(retry_number - 1)
        if self._immediate_first_retry:
            if retry_number == 1:
                delay: float | None = 0
            else:
                delay = self._call_algorithm(retry_number - 1, prev)
        else:
            delay = self._call_algorithm(retry_number, prev)

        # the stop signal is the algorithm's retry decision, keep it even with delays off
        if delay is None:
            logger.debug(f"Backoff sequence ends at retry {retry_number}")
            return None
        if not self._delays_enabled:
            delay = 0
        if self._max_delay is not None:
            delay = min(delay, self._max_delay)
        return max(0, delay)

    def _call_algorithm(self, retry_number: int, prev: float | None) -> float | None:
        delay = self._algorithm.calculate(retry_number, prev)
        if delay is not None and not _is_number(delay):
            raise BackoffRuntimeError.invalid_algorithm_delay(delay)
        return delay

    def _apply_jitter(self, delay: float | None, retry_number: int) -> float | None:
        if (
            not self._algorithm.jitter_applicable
            or self._jitter is None
            or delay is None
            or delay <= 0
        ):
            return delay
        jittered = self._jitter.apply(delay, retry_number)
        if not _is_number(jittered):
            raise BackoffRuntimeError.invalid_jitter_delay(jittered)
        return jittered
