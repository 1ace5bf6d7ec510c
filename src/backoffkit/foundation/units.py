"""Units of measure for delays and timings.

Every delay carries one of three units. Conversion is a linear scale: going
to a smaller unit multiplies by an exact integer factor, going to a larger
one divides.
"""

from __future__ import annotations

from enum import StrEnum

from backoffkit.foundation.errors import BackoffConfigurationError


class Unit(StrEnum):
    """Unit a strategy's delays are expressed in."""
    SECONDS = "seconds"
    MILLISECONDS = "milliseconds"
    MICROSECONDS = "microseconds"

    @classmethod
    def parse(cls, value: Unit | str) -> Unit:
        """Accept a Unit, its full name, or a short alias (s, ms, us)."""
        if isinstance(value, Unit):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            if key in _ALIASES:
                return _ALIASES[key]
        raise BackoffConfigurationError.invalid_unit(value)


_ALIASES: dict[str, Unit] = {
    "seconds": Unit.SECONDS, "s": Unit.SECONDS,
    "milliseconds": Unit.MILLISECONDS, "ms": Unit.MILLISECONDS,
    "microseconds": Unit.MICROSECONDS, "us": Unit.MICROSECONDS,
}

# Size of each unit in microseconds
_SCALE: dict[Unit, int] = {
    Unit.SECONDS: 1_000_000,
    Unit.MILLISECONDS: 1_000,
    Unit.MICROSECONDS: 1,
}


def convert_timespan(value: float | None, from_unit: Unit | str, to_unit: Unit | str) -> float | None:
    """Convert a timespan between units. None passes through untouched.

    Example:
        >>> convert_timespan(1.5, "seconds", "ms")
        1500.0
        >>> convert_timespan(250, Unit.MICROSECONDS, Unit.MILLISECONDS)
        0.25
    """
    if value is None:
        return None
    src, dst = _SCALE[Unit.parse(from_unit)], _SCALE[Unit.parse(to_unit)]
    if src >= dst:
        return float(value * (src // dst))
    return value / (dst // src)
