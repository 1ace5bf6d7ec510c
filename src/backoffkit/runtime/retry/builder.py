"""Factories and fluent configuration for backoff strategies.

Example:
    >>> from backoffkit import Backoff
    >>> backoff = Backoff.exponential(0.1, max_attempts=5).max_delay(2).equal_jitter()
    >>> backoff = Backoff.fixed(250, unit="ms").no_jitter().immediate_first_retry()

Every configuration method returns self, and raises BackoffConfigurationError
once the strategy has started.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Callable, Self

from backoffkit.foundation.config import get_settings
from backoffkit.foundation.units import Unit, convert_timespan

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
from .jitter import CallbackJitter, EqualJitter, FullJitter, Jitter, RangeJitter

if TYPE_CHECKING:
    from .config import StrategyConfig


class _Default:
    """Marker for "use the configured default" in factory keyword arguments."""

    def __repr__(self) -> str:
        return "DEFAULT"


DEFAULT: Any = _Default()


class StrategyBuilder:
    """Mixin providing factory class methods and fluent setters.

    Concrete strategies supply __init__, _config and _reconfigure().
    """

    __slots__ = ()

    _config: StrategyConfig

    def _reconfigure(self, setting: str, **changes: Any) -> Self:
        raise NotImplementedError

    # ─────────────────────────────────────────────────────────────────────
    # Factories
    # ─────────────────────────────────────────────────────────────────────

    @classmethod
    def _create(
        cls,
        algorithm: BackoffAlgorithm,
        *,
        unit: Unit | str | None,
        max_attempts: int | None,
        default_jitter: bool = True,
        default_max_attempts: bool = True,
    ) -> Self:
        settings = get_settings().retry
        unit = settings.unit if unit is None else Unit.parse(unit)
        if max_attempts is DEFAULT:
            max_attempts = settings.max_attempts if default_max_attempts else None
        jitter = FullJitter() if default_jitter and settings.jitter and algorithm.jitter_applicable else None
        # the configured max_delay is expressed in the configured unit
        max_delay = convert_timespan(settings.max_delay, settings.unit, unit)
        return cls(algorithm, jitter=jitter, max_attempts=max_attempts, max_delay=max_delay, unit=unit)  # type: ignore[call-arg]

    @classmethod
    def fixed(cls, delay: float, *, unit: Unit | str | None = None, max_attempts: int | None = DEFAULT) -> Self:
        """Same delay before every retry."""
        return cls._create(FixedBackoff(delay), unit=unit, max_attempts=max_attempts)

    @classmethod
    def linear(
        cls, initial_delay: float, delay_increase: float | None = None, *,
        unit: Unit | str | None = None, max_attempts: int | None = DEFAULT,
    ) -> Self:
        """Delay grows by delay_increase (default: initial_delay) per retry."""
        return cls._create(LinearBackoff(initial_delay, delay_increase), unit=unit, max_attempts=max_attempts)

    @classmethod
    def exponential(
        cls, initial_delay: float, factor: float = 2, *,
        unit: Unit | str | None = None, max_attempts: int | None = DEFAULT,
    ) -> Self:
        """Delay multiplies by factor per retry."""
        return cls._create(ExponentialBackoff(initial_delay, factor), unit=unit, max_attempts=max_attempts)

    @classmethod
    def polynomial(
        cls, initial_delay: float, power: float = 2, *,
        unit: Unit | str | None = None, max_attempts: int | None = DEFAULT,
    ) -> Self:
        """Delay is initial_delay * retry ** power."""
        return cls._create(PolynomialBackoff(initial_delay, power), unit=unit, max_attempts=max_attempts)

    @classmethod
    def fibonacci(
        cls, initial_delay: float, include_first: bool = True, *,
        unit: Unit | str | None = None, max_attempts: int | None = DEFAULT,
    ) -> Self:
        return cls._create(FibonacciBackoff(initial_delay, include_first), unit=unit, max_attempts=max_attempts)

    @classmethod
    def decorrelated(
        cls, base_delay: float, multiplier: float = 3, *,
        unit: Unit | str | None = None, max_attempts: int | None = DEFAULT,
    ) -> Self:
        """AWS-style decorrelated delays. Never jittered (already random)."""
        return cls._create(DecorrelatedBackoff(base_delay, multiplier), unit=unit, max_attempts=max_attempts)

    @classmethod
    def random(
        cls, min_delay: float, max_delay: float, *,
        unit: Unit | str | None = None, max_attempts: int | None = DEFAULT,
    ) -> Self:
        """Uniformly random delays. Never jittered (already random)."""
        return cls._create(RandomBackoff(min_delay, max_delay), unit=unit, max_attempts=max_attempts)

    @classmethod
    def sequence(
        cls, delays: Sequence[float | None], repeat: bool = False, *,
        unit: Unit | str | None = None, max_attempts: int | None = DEFAULT,
    ) -> Self:
        """Explicit delays; stops after the last unless repeat is set."""
        return cls._create(SequenceBackoff(tuple(delays), repeat), unit=unit, max_attempts=max_attempts)

    @classmethod
    def callback(
        cls, callback: Callable[[int, float | None], float | None], *,
        unit: Unit | str | None = None, max_attempts: int | None = DEFAULT,
    ) -> Self:
        """Delays from callback(retry_number, prev_base_delay); None stops."""
        return cls._create(CallbackBackoff(callback), unit=unit, max_attempts=max_attempts)

    @classmethod
    def custom(
        cls, algorithm: BackoffAlgorithm, *,
        unit: Unit | str | None = None, max_attempts: int | None = DEFAULT,
    ) -> Self:
        return cls._create(algorithm, unit=unit, max_attempts=max_attempts)

    @classmethod
    def noop(cls, *, unit: Unit | str | None = None, max_attempts: int | None = DEFAULT) -> Self:
        """Retry with no delay at all."""
        return cls._create(NoopBackoff(), unit=unit, max_attempts=max_attempts, default_jitter=False)

    @classmethod
    def none(cls, *, unit: Unit | str | None = None) -> Self:
        """Never retry: only the first attempt is made."""
        return cls._create(
            NoBackoff(), unit=unit, max_attempts=DEFAULT, default_jitter=False, default_max_attempts=False,
        )

    # ─────────────────────────────────────────────────────────────────────
    # Jitter
    # ─────────────────────────────────────────────────────────────────────

    def full_jitter(self) -> Self:
        return self._reconfigure("full_jitter", jitter=FullJitter())

    def equal_jitter(self) -> Self:
        return self._reconfigure("equal_jitter", jitter=EqualJitter())

    def jitter_range(self, low: float, high: float) -> Self:
        """Jitter between low * delay and high * delay."""
        return self._reconfigure("jitter_range", jitter=RangeJitter(low, high))

    def jitter_callback(self, callback: Callable[[float, int], float]) -> Self:
        return self._reconfigure("jitter_callback", jitter=CallbackJitter(callback))

    def custom_jitter(self, jitter: Jitter | None) -> Self:
        return self._reconfigure("custom_jitter", jitter=jitter)

    def no_jitter(self) -> Self:
        return self._reconfigure("no_jitter", jitter=None)

    # ─────────────────────────────────────────────────────────────────────
    # Limits
    # ─────────────────────────────────────────────────────────────────────

    def max_attempts(self, max_attempts: int | None) -> Self:
        """Attempt ceiling, including the first attempt. None for no limit."""
        return self._reconfigure("max_attempts", max_attempts=max_attempts)

    def no_max_attempts(self) -> Self:
        return self._reconfigure("no_max_attempts", max_attempts=None)

    def max_delay(self, max_delay: float | None) -> Self:
        """Upper bound for base delays, in the strategy's unit."""
        return self._reconfigure("max_delay", max_delay=max_delay)

    def no_max_delay(self) -> Self:
        return self._reconfigure("no_max_delay", max_delay=None)

    # ─────────────────────────────────────────────────────────────────────
    # Units
    # ─────────────────────────────────────────────────────────────────────

    def unit(self, unit: Unit | str) -> Self:
        return self._reconfigure("unit", unit=unit)

    def unit_seconds(self) -> Self:
        return self._reconfigure("unit_seconds", unit=Unit.SECONDS)

    def unit_ms(self) -> Self:
        return self._reconfigure("unit_ms", unit=Unit.MILLISECONDS)

    def unit_us(self) -> Self:
        return self._reconfigure("unit_us", unit=Unit.MICROSECONDS)

    # ─────────────────────────────────────────────────────────────────────
    # Loop behaviour
    # ─────────────────────────────────────────────────────────────────────

    def runs_at_start_of_loop(self, runs_at_start: bool = True) -> Self:
        """The caller steps before each attempt (including the first)."""
        return self._reconfigure("runs_at_start_of_loop", runs_at_start_of_loop=runs_at_start)

    def runs_at_end_of_loop(self) -> Self:
        return self._reconfigure("runs_at_end_of_loop", runs_at_start_of_loop=False)

    def immediate_first_retry(self, immediate: bool = True) -> Self:
        """Make the first retry with no delay; the algorithm's sequence follows."""
        return self._reconfigure("immediate_first_retry", immediate_first_retry=immediate)

    def no_immediate_first_retry(self) -> Self:
        return self._reconfigure("no_immediate_first_retry", immediate_first_retry=False)

    def only_delay_when(self, condition: bool) -> Self:
        """Switch delays off (retries then happen immediately)."""
        return self._reconfigure("only_delay_when", delays_enabled=condition)

    def only_retry_when(self, condition: bool) -> Self:
        """Switch retries off (only the first attempt is made)."""
        return self._reconfigure("only_retry_when", retries_enabled=condition)
