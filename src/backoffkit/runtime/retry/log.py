"""Per-attempt records.

An AttemptLog is created when an attempt starts. Its timing fields are filled
in once by finish(), when the attempt ends; the record is otherwise frozen.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from backoffkit.foundation.units import Unit, convert_timespan


class _InUnit:
    """Read-only view of a timespan attribute converted into a fixed unit."""

    __slots__ = ("_source", "_unit")

    def __init__(self, source: str, unit: Unit) -> None:
        self._source, self._unit = source, unit

    def __get__(self, obj: AttemptLog | None, objtype: type | None = None) -> Any:
        if obj is None:
            return self
        return convert_timespan(getattr(obj, self._source), obj.unit, self._unit)


@dataclass(frozen=True, slots=True)
class AttemptLog:
    """Timing and delay details for a single attempt.

    Delays and working times are in the strategy's unit; the *_in_seconds,
    *_in_ms and *_in_us views convert them.

    Attributes:
        attempt_number: 1 for the initial try, 2 for the first retry, ...
        max_attempts: The attempt ceiling in force, if any
        first_attempt_occurred_at: When attempt 1 started
        this_attempt_occurred_at: When this attempt started
        working_time: Time spent in the action (None until the attempt ends)
        overall_working_time: Cumulative working time including this attempt
        prev_delay: Delay waited before this attempt (None for the first)
        next_delay: Delay that will precede the next attempt (None if none will)
        overall_delay: Delay waited so far, excluding next_delay
        unit: Unit of the delay and working time values
    """

    attempt_number: int
    max_attempts: int | None
    first_attempt_occurred_at: datetime
    this_attempt_occurred_at: datetime
    prev_delay: float | None
    next_delay: float | None
    overall_delay: float
    unit: Unit = Unit.SECONDS
    working_time: float | None = None
    overall_working_time: float | None = None

    @property
    def retry_number(self) -> int:
        return self.attempt_number - 1

    @property
    def will_retry(self) -> bool:
        """Whether a delay (and so another attempt) is scheduled after this one."""
        return self.next_delay is not None

    @property
    def is_finished(self) -> bool:
        return self.working_time is not None

    def finish(self, working_time: float, overall_working_time: float) -> bool:
        """Record the timings. Only the first call has any effect."""
        if self.working_time is not None:
            return False
        object.__setattr__(self, "working_time", working_time)
        object.__setattr__(self, "overall_working_time", overall_working_time)
        return True

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe representation, for exporting or structured logging."""
        return {
            "attempt_number": self.attempt_number,
            "retry_number": self.retry_number,
            "max_attempts": self.max_attempts,
            "first_attempt_occurred_at": self.first_attempt_occurred_at.isoformat(),
            "this_attempt_occurred_at": self.this_attempt_occurred_at.isoformat(),
            "working_time": self.working_time,
            "overall_working_time": self.overall_working_time,
            "prev_delay": self.prev_delay,
            "next_delay": self.next_delay,
            "overall_delay": self.overall_delay,
            "unit": self.unit.value,
        }

    working_time_in_seconds = _InUnit("working_time", Unit.SECONDS)
    working_time_in_ms = _InUnit("working_time", Unit.MILLISECONDS)
    working_time_in_us = _InUnit("working_time", Unit.MICROSECONDS)
    overall_working_time_in_seconds = _InUnit("overall_working_time", Unit.SECONDS)
    overall_working_time_in_ms = _InUnit("overall_working_time", Unit.MILLISECONDS)
    overall_working_time_in_us = _InUnit("overall_working_time", Unit.MICROSECONDS)
    prev_delay_in_seconds = _InUnit("prev_delay", Unit.SECONDS)
    prev_delay_in_ms = _InUnit("prev_delay", Unit.MILLISECONDS)
    prev_delay_in_us = _InUnit("prev_delay", Unit.MICROSECONDS)
    next_delay_in_seconds = _InUnit("next_delay", Unit.SECONDS)
    next_delay_in_ms = _InUnit("next_delay", Unit.MILLISECONDS)
    next_delay_in_us = _InUnit("next_delay", Unit.MICROSECONDS)
    overall_delay_in_seconds = _InUnit("overall_delay", Unit.SECONDS)
    overall_delay_in_ms = _InUnit("overall_delay", Unit.MILLISECONDS)
    overall_delay_in_us = _InUnit("overall_delay", Unit.MICROSECONDS)
