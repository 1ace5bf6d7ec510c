"""Failure-matching policy entries and the rules for picking one.

A PossibleMatch describes what counts as a failure worth retrying: an
exception class, a predicate, a plain value (for results), or MATCH_ALL.
Each may carry a default to return when retries run out.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable


class _MatchAll(Enum):
    MATCH_ALL = "MATCH_ALL"

    def __repr__(self) -> str:
        return "MATCH_ALL"


MATCH_ALL = _MatchAll.MATCH_ALL


@dataclass(frozen=True, slots=True)
class PossibleMatch:
    """A single policy entry.

    Attributes:
        value: Exception class, predicate, plain value, or MATCH_ALL
        has_default: Whether default should be used when this entry ends the run
        default: Fallback value, or a zero-argument callable producing it
        strict: Results only - require identical types as well as equality
    """

    value: Any = MATCH_ALL
    has_default: bool = False
    default: Any = None
    strict: bool = False

    @property
    def matches_all(self) -> bool:
        return self.value is MATCH_ALL

    def resolve_default(self) -> Any:
        return resolve_default(self.default)


def resolve_default(default: Any) -> Any:
    """Defaults may be zero-argument callables, evaluated only when needed."""
    return default() if callable(default) else default


def _is_exception_type(value: object) -> bool:
    return isinstance(value, type) and issubclass(value, BaseException)


def flatten(items: Iterable[Any]) -> list[Any]:
    """Flatten one level of lists/tuples/sets so callers can pass either form."""
    flat: list[Any] = []
    for item in items:
        if isinstance(item, (list, tuple, set, frozenset)):
            flat.extend(item)
        else:
            flat.append(item)
    return flat


def _equal(result: Any, value: Any, strict: bool) -> bool:
    if result is value:
        return True
    if strict and type(result) is not type(value):
        return False
    return bool(result == value)


def pick_matching_result(result: Any, matches: Sequence[PossibleMatch]) -> PossibleMatch | None:
    """First entry (in registration order) that the result matches."""
    for match in matches:
        if match.matches_all:
            return match
        if callable(match.value):
            if match.value(result):
                return match
        elif _equal(result, match.value, match.strict):
            return match
    return None


def pick_matching_exception(
    exc: BaseException,
    matches: Sequence[PossibleMatch] | None,
) -> PossibleMatch | None:
    """Choose the policy entry that applies to an exception.

    None means "never retry exceptions"; an empty sequence means "retry any
    exception, no default". Otherwise entries are tried in four passes, most
    specific first, registration order within each pass:

    1. specific (class or predicate) with a default
    2. match-all with a default
    3. specific without a default
    4. match-all without a default
    """
    if matches is None:
        return None
    if not matches:
        return PossibleMatch()

    for has_default in (True, False):
        for matching_all in (False, True):
            for match in matches:
                if match.has_default is not has_default or match.matches_all is not matching_all:
                    continue
                if matching_all:
                    return match
                if _is_exception_type(match.value):
                    if isinstance(exc, match.value):
                        return match
                elif callable(match.value) and match.value(exc):
                    return match
    return None
