"""backoffkit - retry with backoff, jitter and attempt tracking.

Runs an action that may fail transiently, waiting between attempts with a
configurable delay sequence and giving up after a bounded number of attempts.

Quick Start:
    >>> from backoffkit import Backoff
    >>>
    >>> result = Backoff.exponential(0.1, max_attempts=5).attempt(fetch_quote)

Hand-written loops:
    >>> backoff = Backoff.fibonacci(1, max_attempts=8).unit_ms().runs_at_start_of_loop()
    >>> while backoff.step():
    ...     if try_once():
    ...         break

Policies and callbacks:
    >>> (Backoff.sequence([1, 5, 30])
    ...     .retry_exceptions(TimeoutError, default=None)
    ...     .retry_until(lambda r: r.ok)
    ...     .exception_callback(lambda e, log, will_retry: print(log.attempt_number, e))
    ...     .attempt(call_service))

Configuration (environment variables):
    BACKOFFKIT_RETRY_MAX_ATTEMPTS=5
    BACKOFFKIT_RETRY_UNIT=ms
    BACKOFFKIT_RETRY_DELAYS_ENABLED=false   # e.g. in test suites
    BACKOFFKIT_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

from .foundation import (
    BackoffConfigurationError,
    BackoffError,
    BackoffkitSettings,
    BackoffRuntimeError,
    Unit,
    clear_settings_cache,
    convert_timespan,
    get_settings,
)
from .runtime import (
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
    RandomBackoff,
    RangeJitter,
    SequenceBackoff,
    configure_logging,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Core
    "Backoff",
    "BackoffStrategy",
    "AttemptLog",
    "DelayCalculator",
    "DelayRecording",
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
    # Foundation
    "Unit",
    "convert_timespan",
    "BackoffError",
    "BackoffConfigurationError",
    "BackoffRuntimeError",
    "BackoffkitSettings",
    "get_settings",
    "clear_settings_cache",
    # Observability
    "configure_logging",
]
