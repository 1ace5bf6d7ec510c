"""Retry orchestration.

Backoff runs an action under a BackoffStrategy: it decides which failures
(raised exceptions or unwanted results) are retried, calls the lifecycle
callbacks in a fixed order and settles on what to return or raise once the
attempts are exhausted.

Example:
    >>> result = (
    ...     Backoff.exponential(0.2, max_attempts=5)
    ...     .retry_exceptions(ConnectionError, TimeoutError)
    ...     .retry_when(None)
    ...     .failure_callback(lambda logs: alert(len(logs)))
    ...     .attempt(fetch, default=[])
    ... )

Callback signatures:
    exception:      (error, log, will_retry)
    invalid result: (result, will_retry, log)
    success:        (result, log)
    failure:        (logs)
    finally:        (logs)

Callbacks are trusted code: anything they raise propagates immediately and
ends the run.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Callable, Self

from .log import AttemptLog
from .matching import (
    MATCH_ALL,
    PossibleMatch,
    flatten,
    pick_matching_exception,
    pick_matching_result,
    resolve_default,
)
from .strategy import BackoffStrategy

logger = logging.getLogger("backoffkit.retry")

_UNSET: Any = object()

ExceptionCallback = Callable[[Exception, AttemptLog | None, bool], Any]
InvalidResultCallback = Callable[[Any, bool, AttemptLog | None], Any]
SuccessCallback = Callable[[Any, AttemptLog | None], Any]
LogsCallback = Callable[[list[AttemptLog]], Any]


class Backoff(BackoffStrategy):
    """A backoff strategy that also runs the action being retried.

    Accepts the same arguments as BackoffStrategy. With no exception policy
    configured, every Exception is retried and re-raised once attempts run out.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        # None means exceptions are never retried; [] means all are, with no default
        self._exception_matches: list[PossibleMatch] | None = []
        self._exception_default: PossibleMatch | None = None
        self._retry_when: list[PossibleMatch] = []
        self._retry_until: list[PossibleMatch] = []
        self._exception_callbacks: list[ExceptionCallback] = []
        self._invalid_result_callbacks: list[InvalidResultCallback] = []
        self._success_callbacks: list[SuccessCallback] = []
        self._failure_callbacks: list[LogsCallback] = []
        self._finally_callbacks: list[LogsCallback] = []

    # ─────────────────────────────────────────────────────────────────────
    # Exception policy
    # ─────────────────────────────────────────────────────────────────────

    def retry_exceptions(
        self,
        *matchers: type[BaseException] | Callable[[BaseException], bool] | Iterable[Any],
        default: Any = _UNSET,
    ) -> Self:
        """Retry exceptions of these classes, or for which these predicates return True.

        Calls accumulate. Passing no matchers retries every exception.

        Args:
            matchers: Exception classes, one-argument predicates, or iterables of them
            default: Returned instead of re-raising when a matching failure ends the run.
                A zero-argument callable is called to produce it
        """
        entries = flatten(matchers) or [MATCH_ALL]
        has_default = default is not _UNSET
        self._exception_matches = [
            *(self._exception_matches or []),
            *(PossibleMatch(entry, has_default, default if has_default else None) for entry in entries),
        ]
        self._exception_default = None
        return self

    def retry_all_exceptions(self, default: Any = _UNSET) -> Self:
        return self.retry_exceptions(default=default)

    def dont_retry_exceptions(self, default: Any = _UNSET) -> Self:
        """Never retry exceptions. With a default, return it instead of re-raising."""
        self._exception_matches = None
        self._exception_default = None if default is _UNSET else PossibleMatch(MATCH_ALL, True, default)
        return self

    # ─────────────────────────────────────────────────────────────────────
    # Result policy
    # ─────────────────────────────────────────────────────────────────────

    def retry_when(self, match: Any, strict: bool = False, default: Any = _UNSET) -> Self:
        """Retry while the result equals match (or match(result) is truthy).

        Replaces any retry_until() policy.
        """
        has_default = default is not _UNSET
        self._retry_when.append(PossibleMatch(match, has_default, default if has_default else None, strict))
        self._retry_until = []
        return self

    def retry_until(self, match: Any, strict: bool = False) -> Self:
        """Retry until the result equals match (or match(result) is truthy).

        Replaces any retry_when() policy.
        """
        self._retry_until.append(PossibleMatch(match, strict=strict))
        self._retry_when = []
        return self

    # ─────────────────────────────────────────────────────────────────────
    # Callbacks
    # ─────────────────────────────────────────────────────────────────────

    def exception_callback(self, *callbacks: ExceptionCallback | Iterable[ExceptionCallback]) -> Self:
        self._exception_callbacks.extend(flatten(callbacks))
        return self

    def invalid_result_callback(self, *callbacks: InvalidResultCallback | Iterable[InvalidResultCallback]) -> Self:
        self._invalid_result_callbacks.extend(flatten(callbacks))
        return self

    def success_callback(self, *callbacks: SuccessCallback | Iterable[SuccessCallback]) -> Self:
        self._success_callbacks.extend(flatten(callbacks))
        return self

    def failure_callback(self, *callbacks: LogsCallback | Iterable[LogsCallback]) -> Self:
        self._failure_callbacks.extend(flatten(callbacks))
        return self

    fallback_callback = failure_callback

    def finally_callback(self, *callbacks: LogsCallback | Iterable[LogsCallback]) -> Self:
        self._finally_callbacks.extend(flatten(callbacks))
        return self

    # ─────────────────────────────────────────────────────────────────────
    # Running
    # ─────────────────────────────────────────────────────────────────────

    def attempt(self, action: Callable[[], Any], default: Any = _UNSET) -> Any:
        """Run action until it succeeds or the strategy stops.

        Args:
            action: Zero-argument callable to run
            default: Returned when every attempt fails and no matched policy
                supplies its own default. A zero-argument callable is called to produce it

        Returns:
            The successful result, or the resolved default, or the last result

        Raises:
            Exception: The action's last exception, when no default applies
        """
        runs_at_start = self._config.runs_at_start_of_loop
        self.reset().runs_at_start_of_loop()
        try:
            return self._perform_attempt(action, default)
        finally:
            self.reset().runs_at_start_of_loop(runs_at_start)

    def _perform_attempt(self, action: Callable[[], Any], default: Any) -> Any:
        override: PossibleMatch | None = None
        result: Any = None
        # the last exception raised by any attempt, kept across attempts
        error: Exception | None = None
        failure = "an invalid result"

        while self.step():
            override, result = None, None
            raised: Exception | None = None

            self.start_of_attempt()
            try:
                result = action()
            except Exception as e:
                raised = error = e
            self.end_of_attempt()
            log = self._latest_log()

            if raised is None:
                successful, match = self._assess_result(result)
                if successful:
                    self._call_success_callbacks(result, log)
                    self._call_finally_callbacks()
                    return result
                override = match
                failure = "an invalid result"
                will_retry = not self.is_last_attempt()
                if will_retry:
                    logger.info(
                        f"Attempt {log.attempt_number if log else '?'} returned an invalid result, retrying",
                        extra={"attempt": log.attempt_number if log else None, "will_retry": True},
                    )
                self._call_invalid_result_callbacks(result, will_retry, log)
                continue

            failure = f"{type(raised).__name__}: {raised}"
            match = pick_matching_exception(raised, self._exception_matches)
            override = match if match is not None else self._exception_default
            stop = match is None or self.is_last_attempt()
            if not stop:
                logger.info(
                    f"Attempt {log.attempt_number if log else '?'} failed with {failure}, retrying",
                    extra={"attempt": log.attempt_number if log else None, "will_retry": True},
                )
            self._call_exception_callbacks(raised, log, not stop)
            if stop:
                break

        attempts = len(self._logs)
        if attempts:
            logger.warning(
                f"Giving up after {attempts} attempt(s), last failure was {failure}",
                extra={"attempt": attempts, "will_retry": False},
            )
        else:
            logger.warning("Giving up without any attempt, none are allowed", extra={"attempt": 0, "will_retry": False})

        self._call_failure_callbacks()
        self._call_finally_callbacks()

        if override is not None and override.has_default:
            return override.resolve_default()
        if default is not _UNSET:
            return resolve_default(default)
        if error is not None:
            raise error
        return result

    def _assess_result(self, result: Any) -> tuple[bool, PossibleMatch | None]:
        """Whether a returned value counts as success, and the policy entry it hit."""
        if self._retry_until:
            return pick_matching_result(result, self._retry_until) is not None, None
        if self._retry_when:
            match = pick_matching_result(result, self._retry_when)
            return match is None, match
        return True, None

    def _latest_log(self) -> AttemptLog | None:
        return self._logs.get(self._current())

    def _call_exception_callbacks(self, error: Exception, log: AttemptLog | None, will_retry: bool) -> None:
        for callback in self._exception_callbacks:
            callback(error, log, will_retry)

    def _call_invalid_result_callbacks(self, result: Any, will_retry: bool, log: AttemptLog | None) -> None:
        for callback in self._invalid_result_callbacks:
            callback(result, will_retry, log)

    def _call_success_callbacks(self, result: Any, log: AttemptLog | None) -> None:
        for callback in self._success_callbacks:
            callback(result, log)

    def _call_failure_callbacks(self) -> None:
        for callback in self._failure_callbacks:
            callback(self.logs())

    def _call_finally_callbacks(self) -> None:
        for callback in self._finally_callbacks:
            callback(self.logs())
