"""Runtime - retry execution and its observability.

Contains: retry (algorithms, jitter, delay calculation, state machine,
orchestrator) and observability (logging setup).
"""

from __future__ import annotations

from .observability import JsonFormatter, TextFormatter, configure_logging
from .retry import (
    MATCH_ALL,
    AttemptLog,
    Backoff,
    BackoffAlgorithm,
    BackoffStrategy,
    CallbackBackoff,
    CallbackJitter,
    DecorrelatedBackoff,
    DelayCalculator,
    DelayRecording,
    EqualJitter,
    ExponentialBackoff,
    FibonacciBackoff,
    FixedBackoff,
    FullJitter,
    Jitter,
    LinearBackoff,
    NoBackoff,
    NoopBackoff,
    PolynomialBackoff,
    PossibleMatch,
    RandomBackoff,
    RangeJitter,
    SequenceBackoff,
    StrategyConfig,
)

__all__ = [
    # Retry
    "Backoff", "BackoffStrategy", "AttemptLog", "DelayRecording", "DelayCalculator", "StrategyConfig",
    "PossibleMatch", "MATCH_ALL",
    "BackoffAlgorithm", "FixedBackoff", "LinearBackoff", "ExponentialBackoff", "PolynomialBackoff",
    "FibonacciBackoff", "DecorrelatedBackoff", "RandomBackoff", "SequenceBackoff", "CallbackBackoff",
    "NoopBackoff", "NoBackoff",
    "Jitter", "FullJitter", "EqualJitter", "RangeJitter", "CallbackJitter",
    # Observability
    "configure_logging", "TextFormatter", "JsonFormatter",
]
