"""Validated configuration of a single backoff strategy.

Frozen so a running strategy can hand the same object to its delay
calculator; reconfiguring produces a new, revalidated instance.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeFloat,
    ValidationError,
    computed_field,
    field_validator,
)

from backoffkit.foundation.errors import BackoffConfigurationError
from backoffkit.foundation.units import Unit

from .algorithms import BackoffAlgorithm
from .jitter import Jitter


class StrategyConfig(BaseModel):
    """Settings of one backoff strategy.

    Attributes:
        algorithm: Produces the base delays
        jitter: Applied to base delays when the algorithm allows it
        max_attempts: Attempt ceiling (0 allows nothing, None is unlimited)
        max_delay: Upper bound for base delays
        unit: Unit the delays are expressed in
        runs_at_start_of_loop: Caller advances before the first attempt
        immediate_first_retry: First retry happens with no delay
        delays_enabled: When False, every delay is 0
        retries_enabled: When False, only the first attempt is made
    """

    model_config = ConfigDict(
        frozen=True,
        arbitrary_types_allowed=True,  # For algorithm / jitter protocols
        validate_default=True,
        extra="forbid",
        revalidate_instances="never",
    )

    algorithm: BackoffAlgorithm
    jitter: Jitter | None = Field(default=None, repr=False)
    max_attempts: Annotated[int, Field(ge=0)] | None = None
    max_delay: NonNegativeFloat | None = None
    unit: Unit = Unit.SECONDS
    runs_at_start_of_loop: bool = False
    immediate_first_retry: bool = False
    delays_enabled: bool = True
    retries_enabled: bool = True

    @field_validator("max_attempts", mode="before")
    @classmethod
    def _floor_attempts(cls, v: Any) -> Any:
        """Negative ceilings behave like 0: nothing is allowed."""
        return max(0, v) if isinstance(v, int) and not isinstance(v, bool) else v

    @field_validator("unit", mode="before")
    @classmethod
    def _parse_unit(cls, v: Any) -> Unit:
        return Unit.parse(v)

    @computed_field
    @property
    def allows_no_attempts(self) -> bool:
        """Whether the strategy is stopped before anything runs."""
        return self.max_attempts == 0

    @classmethod
    def build(cls, **values: Any) -> StrategyConfig:
        """Validate, reporting problems as BackoffConfigurationError."""
        try:
            return cls(**values)
        except ValidationError as e:
            raise BackoffConfigurationError.from_validation_error(e) from e

    def with_changes(self, **changes: Any) -> StrategyConfig:
        """Return a revalidated copy with some settings replaced."""
        return type(self).build(**{**dict(self), **changes})
