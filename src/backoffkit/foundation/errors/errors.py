"""Exceptions raised by backoffkit itself.

Exceptions raised by the caller's action are never wrapped: they are the
subject of the retry policy and are re-raised unchanged when retries run out.
Everything here signals a programming error and is never retried.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pydantic import ValidationError


class BackoffError(Exception):
    """Base class for every error raised by backoffkit."""


class BackoffConfigurationError(BackoffError, ValueError):
    """Invalid configuration, raised at configuration time or first use."""

    @classmethod
    def invalid_unit(cls, unit: object) -> BackoffConfigurationError:
        return cls(f'Invalid unit type "{unit}" was given')

    @classmethod
    def min_greater_than_max(cls, low: float, high: float) -> BackoffConfigurationError:
        return cls(f"A min value ({low}) was given that is greater than the max value ({high})")

    @classmethod
    def changed_after_start(cls, setting: str) -> BackoffConfigurationError:
        return cls(f'Backoff strategies cannot be reconfigured after starting - attempted to call "{setting}"')

    @classmethod
    def from_validation_error(cls, exc: ValidationError) -> BackoffConfigurationError:
        """Flatten a pydantic ValidationError into a single readable message."""
        parts = [
            f"{'.'.join(str(p) for p in err['loc']) or 'value'}: {err['msg']}"
            for err in exc.errors()
        ]
        return cls(f"Invalid backoff configuration: {'; '.join(parts)}")


class BackoffRuntimeError(BackoffError):
    """A collaborator or caller broke the protocol while the machine was running."""

    @classmethod
    def invalid_algorithm_delay(cls, value: object) -> BackoffRuntimeError:
        return cls(f"The backoff algorithm gave an invalid delay: {value!r} (expected a number or None)")

    @classmethod
    def invalid_jitter_delay(cls, value: object) -> BackoffRuntimeError:
        return cls(f"The jitter gave an invalid delay: {value!r} (expected a number)")

    @classmethod
    def start_of_attempt_not_allowed(cls) -> BackoffRuntimeError:
        return cls("start_of_attempt() cannot be called after the backoff has stopped")

    @classmethod
    def attempt_not_started(cls) -> BackoffRuntimeError:
        return cls("end_of_attempt() was called without start_of_attempt() being called first")
