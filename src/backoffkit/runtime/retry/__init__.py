"""Retry with backoff.

Delay calculation, the attempt state machine and the retry orchestrator,
with pluggable backoff algorithms and jitter.

Example:
    >>> from backoffkit.runtime.retry import Backoff
    >>>
    >>> backoff = Backoff.exponential(0.5, max_attempts=4).max_delay(5)
    >>> payload = (
    ...     backoff.retry_exceptions(ConnectionError)
    ...     .retry_when(lambda response: response.status >= 500)
    ...     .attempt(lambda: client.get("/health"), default=None)
    ... )
"""

from .algorithms import (
    BackoffAlgorithm,
    CallbackBackoff,
    DecorrelatedBackoff,
    ExponentialBackoff,
    FibonacciBackoff,
    FixedBackoff,
    LinearBackoff,
    NoBackoff,
    NoopBackoff,
    PolynomialBackoff,
    RandomBackoff,
    SequenceBackoff,
)
from .calculator import DelayCalculator
from .config import StrategyConfig
from .jitter import CallbackJitter, EqualJitter, FullJitter, Jitter, RangeJitter
from .log import AttemptLog
from .matching import MATCH_ALL, PossibleMatch
from .runner import Backoff
from .strategy import BackoffStrategy, DelayRecording

__all__ = [
    # Algorithms
    "BackoffAlgorithm",
    "FixedBackoff",
    "LinearBackoff",
    "ExponentialBackoff",
    "PolynomialBackoff",
    "FibonacciBackoff",
    "DecorrelatedBackoff",
    "RandomBackoff",
    "SequenceBackoff",
    "CallbackBackoff",
    "NoopBackoff",
    "NoBackoff",
    # Jitter
    "Jitter",
    "FullJitter",
    "EqualJitter",
    "RangeJitter",
    "CallbackJitter",
    # Calculation
    "DelayCalculator",
    "StrategyConfig",
    # State machine
    "BackoffStrategy",
    "AttemptLog",
    "DelayRecording",
    # Orchestration
    "Backoff",
    "PossibleMatch",
    "MATCH_ALL",
]
