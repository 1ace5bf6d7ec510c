"""Backoff algorithms: the raw delay sequence before bounds and jitter.

Each algorithm is a stateless function of the retry number and the previous
base delay:
- FixedBackoff: the same delay every time
- LinearBackoff: grows by a constant increment
- ExponentialBackoff: grows by a constant factor
- PolynomialBackoff: initial * retry ** power
- FibonacciBackoff: scaled fibonacci sequence
- DecorrelatedBackoff: AWS-style decorrelated jitter (already random)
- RandomBackoff: uniform between two bounds (already random)
- SequenceBackoff: explicit list of delays
- CallbackBackoff: caller-supplied function
- NoopBackoff: retry without delay
- NoBackoff: never retry

Returning None from calculate() means "stop retrying now". It is a control
signal, not a zero delay.

Retry numbers are 1-indexed here (retry 1 is the delay before the second
attempt).
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Callable, ClassVar, Protocol, runtime_checkable

from backoffkit.foundation.errors import BackoffConfigurationError


@runtime_checkable
class BackoffAlgorithm(Protocol):
    """Protocol for backoff delay calculation.

    Implementations must return the same answer for the same
    (retry_number, prev_base_delay) unless they are deliberately random,
    in which case they should set jitter_applicable to False.
    """

    jitter_applicable: bool

    def calculate(self, retry_number: int, prev_base_delay: float | None) -> float | None:
        """Calculate the base delay before the given retry.

        Args:
            retry_number: 1-indexed retry being attempted
            prev_base_delay: Base delay used before the previous retry, if any

        Returns:
            Delay in the strategy's unit, or None to stop retrying
        """
        ...


@dataclass(frozen=True, slots=True)
class FixedBackoff:
    """Fixed delay between retries."""

    delay: float
    jitter_applicable: ClassVar[bool] = True

    def calculate(self, retry_number: int, prev_base_delay: float | None) -> float | None:
        return self.delay


@dataclass(frozen=True, slots=True)
class LinearBackoff:
    """Linear growth.

    Delay = initial_delay + (retry - 1) * delay_increase

    Attributes:
        initial_delay: Delay before the first retry
        delay_increase: Added per retry (defaults to initial_delay)
    """

    initial_delay: float
    delay_increase: float | None = None
    jitter_applicable: ClassVar[bool] = True

    def calculate(self, retry_number: int, prev_base_delay: float | None) -> float | None:
        increase = self.initial_delay if self.delay_increase is None else self.delay_increase
        return self.initial_delay + (retry_number - 1) * increase


@dataclass(frozen=True, slots=True)
class ExponentialBackoff:
    """Exponential growth.

    Delay = initial_delay * factor ^ (retry - 1)
    """

    initial_delay: float
    factor: float = 2
    jitter_applicable: ClassVar[bool] = True

    def calculate(self, retry_number: int, prev_base_delay: float | None) -> float | None:
        return self.initial_delay * self.factor ** (retry_number - 1)


@dataclass(frozen=True, slots=True)
class PolynomialBackoff:
    """Polynomial growth.

    Delay = initial_delay * retry ^ power
    """

    initial_delay: float
    power: float = 2
    jitter_applicable: ClassVar[bool] = True

    def calculate(self, retry_number: int, prev_base_delay: float | None) -> float | None:
        return self.initial_delay * retry_number ** self.power


@dataclass(frozen=True, slots=True)
class FibonacciBackoff:
    """Fibonacci growth, scaled by initial_delay.

    With include_first the sequence is 1, 1, 2, 3, 5 ... times initial_delay.
    Without it the repeated leading term is skipped: 1, 2, 3, 5 ...
    """

    initial_delay: float
    include_first: bool = True
    jitter_applicable: ClassVar[bool] = True

    def calculate(self, retry_number: int, prev_base_delay: float | None) -> float | None:
        current, following = 0.0, self.initial_delay
        for _ in range(retry_number if self.include_first else retry_number + 1):
            current, following = following, current + following
        return current


@dataclass(frozen=True, slots=True)
class DecorrelatedBackoff:
    """AWS-style decorrelated jitter backoff.

    Each delay is drawn from [base_delay, previous * multiplier], so the
    sequence depends on the delay chosen before it. The calculator memoises
    delays, which keeps that chain stable across repeated queries.

    Reference: https://aws.amazon.com/blogs/architecture/exponential-backoff-and-jitter/
    """

    base_delay: float
    multiplier: float = 3
    jitter_applicable: ClassVar[bool] = False

    def calculate(self, retry_number: int, prev_base_delay: float | None) -> float | None:
        upper = (self.base_delay if prev_base_delay is None else prev_base_delay) * self.multiplier
        return random.uniform(self.base_delay, upper)


@dataclass(frozen=True, slots=True)
class RandomBackoff:
    """Uniformly random delay between min_delay and max_delay."""

    min_delay: float
    max_delay: float
    jitter_applicable: ClassVar[bool] = False

    def __post_init__(self) -> None:
        if self.min_delay > self.max_delay:
            raise BackoffConfigurationError.min_greater_than_max(self.min_delay, self.max_delay)
        object.__setattr__(self, "min_delay", max(0, self.min_delay))
        object.__setattr__(self, "max_delay", max(0, self.max_delay))

    def calculate(self, retry_number: int, prev_base_delay: float | None) -> float | None:
        return random.uniform(self.min_delay, self.max_delay)


@dataclass(frozen=True, slots=True)
class SequenceBackoff:
    """Explicit sequence of delays.

    A None inside delays truncates the sequence at that point. Past the end,
    the last delay is repeated when repeat is set, otherwise retries stop.
    """

    delays: tuple[float | None, ...]
    repeat: bool = False
    jitter_applicable: ClassVar[bool] = True

    def __post_init__(self) -> None:
        delays = tuple(self.delays)
        if None in delays:
            delays = delays[:delays.index(None)]
        object.__setattr__(self, "delays", delays)

    def calculate(self, retry_number: int, prev_base_delay: float | None) -> float | None:
        if 0 < retry_number <= len(self.delays):
            return self.delays[retry_number - 1]
        if self.repeat and self.delays:
            return self.delays[-1]
        return None


@dataclass(frozen=True, slots=True)
class CallbackBackoff:
    """Delegates to callback(retry_number, prev_base_delay).

    The callback must return a number, or None to stop. Anything else is
    rejected by the delay calculator with a BackoffRuntimeError.
    """

    callback: Callable[[int, float | None], float | None]
    jitter_applicable: ClassVar[bool] = True

    def calculate(self, retry_number: int, prev_base_delay: float | None) -> float | None:
        return self.callback(retry_number, prev_base_delay)


@dataclass(frozen=True, slots=True)
class NoopBackoff:
    """Retry straight away, with no delay."""

    jitter_applicable: ClassVar[bool] = False

    def calculate(self, retry_number: int, prev_base_delay: float | None) -> float | None:
        return 0


@dataclass(frozen=True, slots=True)
class NoBackoff:
    """Never retry."""

    jitter_applicable: ClassVar[bool] = False

    def calculate(self, retry_number: int, prev_base_delay: float | None) -> float | None:
        return None
