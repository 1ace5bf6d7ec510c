"""Attempt state machine.

BackoffStrategy tracks which attempt a retry loop is on, decides when the loop
must stop, performs the waits between attempts and records an AttemptLog per
attempt. It can drive a hand-written loop directly:

    >>> backoff = BackoffStrategy.exponential(0.1, max_attempts=5)
    >>> while True:
    ...     backoff.start_of_attempt()
    ...     ok = do_work()
    ...     backoff.end_of_attempt()
    ...     if ok or not backoff.step():
    ...         break

States: not started, running, stopped. Only reset() leaves the stopped state.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Self

from backoffkit.foundation.config import get_settings
from backoffkit.foundation.errors import BackoffConfigurationError, BackoffRuntimeError
from backoffkit.foundation.units import Unit, convert_timespan

from .algorithms import BackoffAlgorithm
from .builder import StrategyBuilder
from .calculator import DelayCalculator
from .config import StrategyConfig
from .jitter import Jitter
from .log import AttemptLog

logger = logging.getLogger("backoffkit.retry.strategy")


@dataclass(slots=True)
class DelayRecording:
    """What generate_test_sequence() observed, without any real sleeping."""

    delays: list[float | None] = field(default_factory=list)
    delays_in_seconds: list[float | None] = field(default_factory=list)
    delays_in_ms: list[float | None] = field(default_factory=list)
    delays_in_us: list[float | None] = field(default_factory=list)
    sleep_call_count: int = 0
    actual_times_slept: int = 0


class BackoffStrategy(StrategyBuilder):
    """Tracks attempts, computes delays and waits between attempts.

    Args:
        algorithm: Produces the base delays
        jitter: Applied to base delays when the algorithm allows it
        max_attempts: Attempt ceiling including the first attempt (None for unlimited)
        max_delay: Upper bound for base delays, in unit
        unit: Unit of every delay (defaults to the configured unit)
        runs_at_start_of_loop: The caller calls step() before every attempt
        immediate_first_retry: The first retry happens with no delay
        delays_enabled: When False every delay is 0 (defaults to the configured value)
        retries_enabled: When False only the first attempt is made (defaults to the configured value)
    """

    def __init__(
        self,
        algorithm: BackoffAlgorithm,
        jitter: Jitter | None = None,
        max_attempts: int | None = None,
        max_delay: float | None = None,
        unit: Unit | str | None = None,
        runs_at_start_of_loop: bool = False,
        immediate_first_retry: bool = False,
        delays_enabled: bool | None = None,
        retries_enabled: bool | None = None,
    ) -> None:
        settings = get_settings().retry
        self._config = StrategyConfig.build(
            algorithm=algorithm,
            jitter=jitter,
            max_attempts=max_attempts,
            max_delay=max_delay,
            unit=settings.unit if unit is None else unit,
            runs_at_start_of_loop=runs_at_start_of_loop,
            immediate_first_retry=immediate_first_retry,
            delays_enabled=settings.delays_enabled if delays_enabled is None else delays_enabled,
            retries_enabled=settings.retries_enabled if retries_enabled is None else retries_enabled,
        )
        self._logs: dict[int, AttemptLog] = {}
        self.reset()

    def __repr__(self) -> str:
        state = "stopped" if self._stopped else "running" if self._started else "not started"
        return f"{type(self).__name__}({self._config.algorithm!r}, attempt={self._current()}, {state})"

    @property
    def config(self) -> StrategyConfig:
        return self._config

    def reset(self) -> Self:
        """Return to the not-started state with a fresh delay sequence.

        The attempt logs of the previous run stay readable until the next run
        starts.
        """
        self._started = False
        self._stopped = self._config.allows_no_attempts
        self._attempt_number: int | None = None
        self._calc: DelayCalculator | None = None
        self._sleep_start_ns: int | None = None
        self._attempt_clock_start: float | None = None
        self._first_attempt_at: datetime | None = None
        self._overall_delay = 0.0
        self._recording: DelayRecording | None = None
        return self

    def _reconfigure(self, setting: str, **changes: object) -> Self:
        if self._started:
            raise BackoffConfigurationError.changed_after_start(setting)
        self._config = self._config.with_changes(**changes)
        self._calc = None
        self._stopped = self._config.allows_no_attempts
        return self

    def _calculator(self) -> DelayCalculator:
        if self._calc is None:
            cfg = self._config
            self._calc = DelayCalculator(
                cfg.algorithm,
                cfg.jitter,
                max_attempts=cfg.max_attempts,
                max_delay=cfg.max_delay,
                immediate_first_retry=cfg.immediate_first_retry,
                delays_enabled=cfg.delays_enabled,
            )
        return self._calc

    def _start(self) -> None:
        if not self._started:
            self._logs.clear()
        self._started = True

    def _current(self) -> int:
        return self._attempt_number or 1

    # ─────────────────────────────────────────────────────────────────────
    # Stepping
    # ─────────────────────────────────────────────────────────────────────

    def step(self) -> bool:
        """Advance to the next attempt and wait for its delay.

        Returns:
            False once the strategy has stopped, True otherwise
        """
        self.advance()
        return self.wait()

    def advance(self) -> bool:
        """Move to the next attempt without waiting.

        The following wait() measures its delay from this call.

        Returns:
            False when no further attempt is allowed (the strategy is now stopped)
        """
        self._sleep_start_ns = time.monotonic_ns()
        self._start()
        if self._stopped:
            return False

        # before the first attempt there is nothing to wait for
        if self._config.runs_at_start_of_loop and self._attempt_number is None:
            self._attempt_number = 1
            return True

        previous = self._current()
        self._attempt_number = previous + 1
        if not self._can_continue(self._attempt_number - 1):
            self._attempt_number = previous
            self._stopped = True
            logger.debug(
                f"Backoff stopped after attempt {previous}",
                extra={"attempt": previous, "max_attempts": self._config.max_attempts},
            )
            return False
        return True

    def _can_continue(self, retry_number: int) -> bool:
        if not self._config.retries_enabled:
            return False
        return not self._calculator().should_stop(retry_number)

    def wait(self) -> bool:
        """Sleep for the current attempt's delay.

        Time spent since the matching step() began is subtracted, so the
        spacing between attempts matches the delay.

        Returns:
            False if the strategy has stopped, True otherwise
        """
        start = self._sleep_start_ns if self._sleep_start_ns is not None else time.monotonic_ns()
        self._sleep_start_ns = None
        self._start()

        if self._recording is not None:
            self._recording.sleep_call_count += 1
        if self._stopped:
            return False

        delay = self.get_delay()
        if self._recording is not None:
            self._recording.delays.append(delay)
            self._recording.delays_in_seconds.append(self.get_delay_in_seconds())
            self._recording.delays_in_ms.append(self.get_delay_in_ms())
            self._recording.delays_in_us.append(self.get_delay_in_us())

        # no delay precedes the first attempt
        if delay is None:
            return True

        self._overall_delay += delay
        logger.debug(
            f"Waiting {delay} {self._config.unit} before attempt {self._current()}",
            extra={"attempt": self._current(), "delay": delay, "unit": str(self._config.unit)},
        )
        self._perform_sleep(start, convert_timespan(delay, self._config.unit, Unit.MICROSECONDS))
        return True

    def _perform_sleep(self, start_ns: int, microseconds: float) -> None:
        if self._recording is not None:
            self._recording.actual_times_slept += 1
            return

        until = start_ns + int(microseconds * 1000)
        # remaining time is re-derived after every wake, so early wakes don't accumulate drift
        while True:
            remaining = until - time.monotonic_ns()
            if remaining <= 0:
                return
            time.sleep(remaining / 1_000_000_000)

    # ─────────────────────────────────────────────────────────────────────
    # Attempt logs
    # ─────────────────────────────────────────────────────────────────────

    def start_of_attempt(self) -> Self:
        """Open the AttemptLog for the current attempt.

        Raises:
            BackoffRuntimeError: If the strategy has already stopped
        """
        self._start()
        if self._stopped:
            raise BackoffRuntimeError.start_of_attempt_not_allowed()

        number = self._current()
        if number <= 1:
            self._logs.clear()

        calc = self._calculator()
        now = datetime.now(UTC)
        if number == 1 or self._first_attempt_at is None:
            self._first_attempt_at = now

        self._logs[number] = AttemptLog(
            attempt_number=number,
            max_attempts=self._config.max_attempts,
            first_attempt_occurred_at=self._first_attempt_at,
            this_attempt_occurred_at=now,
            prev_delay=calc.get_jittered_delay(number - 1),
            next_delay=calc.get_jittered_delay(number) if self._config.retries_enabled else None,
            overall_delay=self._overall_delay,
            unit=self._config.unit,
        )
        self._attempt_clock_start = time.perf_counter()
        return self

    def end_of_attempt(self) -> Self:
        """Record the current attempt's working time. Later calls for the same attempt do nothing.

        Raises:
            BackoffRuntimeError: If start_of_attempt() wasn't called for this attempt
        """
        finished = time.perf_counter()

        log = self._logs.get(self._current()) if self._started else None
        if log is None or self._attempt_clock_start is None:
            raise BackoffRuntimeError.attempt_not_started()
        if log.is_finished:
            return self

        working = convert_timespan(finished - self._attempt_clock_start, Unit.SECONDS, self._config.unit)
        prev = self._logs.get(log.attempt_number - 1)
        overall = working + (prev.overall_working_time or 0.0 if prev is not None else 0.0)
        log.finish(working, overall)
        return self

    def logs(self) -> list[AttemptLog]:
        """Every AttemptLog of the current (or most recent) run, in attempt order."""
        return list(self._logs.values())

    def current_log(self) -> AttemptLog | None:
        if not self._started or self._stopped:
            return None
        return self._logs.get(self._current())

    # ─────────────────────────────────────────────────────────────────────
    # State
    # ─────────────────────────────────────────────────────────────────────

    @property
    def has_started(self) -> bool:
        return self._started

    @property
    def has_stopped(self) -> bool:
        return self._stopped

    def current_attempt_number(self) -> int | None:
        """1 for the initial attempt, 2 for the first retry, ...

        None when stepping at the start of the loop and no step has happened yet.
        """
        if self._config.runs_at_start_of_loop and self._attempt_number is None:
            return None
        return self._current()

    def is_first_attempt(self) -> bool:
        return self._current() == 1

    def is_last_attempt(self) -> bool:
        """Whether no attempt will follow the current one."""
        self._start()
        if self._stopped or not self._config.retries_enabled:
            return True
        # the next retry number equals the current attempt number
        return self._calculator().should_stop(self._current())

    def get_unit(self) -> Unit:
        return self._config.unit

    def get_delay(self, unit: Unit | str | None = None) -> float | None:
        """Delay that precedes the current attempt, or None if there is none."""
        self._start()
        if self._stopped:
            return None
        delay = self._calculator().get_jittered_delay(self._current() - 1)
        return delay if unit is None else convert_timespan(delay, self._config.unit, unit)

    def get_delay_in_seconds(self) -> float | None:
        return self.get_delay(Unit.SECONDS)

    def get_delay_in_ms(self) -> float | None:
        return self.get_delay(Unit.MILLISECONDS)

    def get_delay_in_us(self) -> float | None:
        return self.get_delay(Unit.MICROSECONDS)

    # ─────────────────────────────────────────────────────────────────────
    # Inspection
    # ─────────────────────────────────────────────────────────────────────

    def simulate(
        self,
        retry_start: int,
        retry_stop: int | None = None,
        *,
        unit: Unit | str | None = None,
    ) -> float | None | list[float | None]:
        """Delays this strategy will use before the given retries.

        Retry 1 is the delay before the second attempt. The values come from the
        same memoised sequence that step() sleeps on; call reset() for a fresh
        one.

        Args:
            retry_start: First retry number (values below 1 give [])
            retry_stop: Last retry number, inclusive. Omit for a single value
            unit: Unit to report in (defaults to the strategy's unit)
        """
        if retry_start < 1:
            return []
        single = retry_stop is None
        stop = retry_start if retry_stop is None else retry_stop
        if stop < retry_start:
            return []

        self._start()
        target = self._config.unit if unit is None else unit
        calc = self._calculator()
        delays = [
            convert_timespan(calc.get_jittered_delay(n), self._config.unit, target)
            for n in range(retry_start, stop + 1)
        ]
        return delays[0] if single else delays

    def generate_test_sequence(self, max_steps: int) -> DelayRecording:
        """Run up to max_steps steps without sleeping and report what happened."""
        recording = self._recording = DelayRecording()
        try:
            for _ in range(max_steps):
                if not self.step():
                    break
        finally:
            self._recording = None
        return recording
