"""Jitter strategies: randomise a base delay to avoid synchronised retries.

- FullJitter: uniform in [0, delay]
- EqualJitter: uniform in [delay / 2, delay]
- RangeJitter: uniform in [low * delay, high * delay]
- CallbackJitter: caller-supplied function

Jitter is only applied when the algorithm allows it and the base delay is
positive. The calculator clamps the result to >= 0 regardless.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Callable, Protocol, runtime_checkable

from backoffkit.foundation.errors import BackoffConfigurationError


@runtime_checkable
class Jitter(Protocol):
    """Protocol for jitter strategies."""

    def apply(self, delay: float, retry_number: int) -> float:
        """Return the jittered version of delay for the given 1-indexed retry."""
        ...


def _scaled(delay: float, low: float, high: float) -> float:
    return random.uniform(low * delay, high * delay)


@dataclass(frozen=True, slots=True)
class FullJitter:
    """Full jitter: anywhere between no delay and the whole delay."""

    def apply(self, delay: float, retry_number: int) -> float:
        return _scaled(delay, 0.0, 1.0)


@dataclass(frozen=True, slots=True)
class EqualJitter:
    """Equal jitter: keep half the delay, randomise the other half."""

    def apply(self, delay: float, retry_number: int) -> float:
        return _scaled(delay, 0.5, 1.0)


@dataclass(frozen=True, slots=True)
class RangeJitter:
    """Jitter within a proportional range of the delay.

    Attributes:
        low: Lower bound as a fraction of the delay (e.g. 0.75)
        high: Upper bound as a fraction of the delay (e.g. 1.25)
    """

    low: float
    high: float

    def __post_init__(self) -> None:
        if self.low > self.high:
            raise BackoffConfigurationError.min_greater_than_max(self.low, self.high)
        object.__setattr__(self, "low", max(0, self.low))
        object.__setattr__(self, "high", max(0, self.high))

    def apply(self, delay: float, retry_number: int) -> float:
        return _scaled(delay, self.low, self.high)


@dataclass(frozen=True, slots=True)
class CallbackJitter:
    """Delegates to callback(delay, retry_number)."""

    callback: Callable[[float, int], float]

    def apply(self, delay: float, retry_number: int) -> float:
        return self.callback(delay, retry_number)
