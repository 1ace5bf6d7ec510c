"""Tests for the retry orchestrator."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import pytest

from backoffkit import AttemptLog, Backoff

if TYPE_CHECKING:
    from conftest import FakeClock

pytestmark = pytest.mark.usefixtures("clock")


class ExceptionA(Exception):
    pass


class ExceptionB(Exception):
    pass


class Action:
    """Callable that plays back a script of results and exceptions."""

    def __init__(self, *outcomes: Any, repeat_last: bool = True) -> None:
        self.outcomes = list(outcomes)
        self.repeat_last = repeat_last
        self.calls = 0

    def __call__(self) -> Any:
        index = min(self.calls, len(self.outcomes) - 1) if self.repeat_last else self.calls
        self.calls += 1
        outcome = self.outcomes[index]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def _recorder(events: list[str], name: str) -> Callable[..., None]:
    def record(*args: Any) -> None:
        events.append(name)
    return record


# ═════════════════════════════════════════════════════════════════════════════
# Outcomes
# ═════════════════════════════════════════════════════════════════════════════


def test_success_on_first_attempt() -> None:
    """A first-time success returns at once."""
    action = Action("ok")
    assert Backoff.fixed(1, max_attempts=3).attempt(action) == "ok"
    assert action.calls == 1


def test_success_after_failures(clock: FakeClock) -> None:
    """Failures are retried with the configured delay until the action succeeds."""
    action = Action(ExceptionA(), ExceptionA(), "ok")
    assert Backoff.fixed(2, max_attempts=5).no_jitter().attempt(action) == "ok"
    assert action.calls == 3
    assert clock.sleeps == [2.0, 2.0]


def test_exhausted_sequence_reraises(clock: FakeClock) -> None:
    """When the delays run out, the last exception is re-raised."""
    action = Action(ExceptionA("always"))
    backoff = Backoff.sequence([1, 2, 3], max_attempts=10).no_jitter()
    with pytest.raises(ExceptionA, match="always"):
        backoff.attempt(action)
    assert action.calls == 4
    assert clock.sleeps == [1.0, 2.0, 3.0]


def test_unmatched_exception_is_reraised_immediately() -> None:
    """An exception no policy matches ends the run on the spot."""
    action = Action(ExceptionA())
    backoff = Backoff.noop(max_attempts=5).retry_exceptions(ExceptionB, default="X")
    with pytest.raises(ExceptionA):
        backoff.attempt(action)
    assert action.calls == 1


def test_retry_all_exceptions_with_default() -> None:
    """An exhausted catch-all policy returns its default after the failure and finally callbacks."""
    events: list[str] = []
    action = Action(ExceptionA())
    result = (
        Backoff.noop(max_attempts=3)
        .retry_all_exceptions(default=42)
        .failure_callback(_recorder(events, "failure"))
        .finally_callback(_recorder(events, "finally"))
        .attempt(action)
    )
    assert result == 42
    assert action.calls == 3
    assert events == ["failure", "finally"]


def test_no_policy_retries_every_exception() -> None:
    """Without an exception policy every Exception is retried."""
    action = Action(ExceptionA(), KeyError("k"), "ok")
    assert Backoff.noop(max_attempts=3).attempt(action) == "ok"


def test_base_exceptions_are_not_retried() -> None:
    """KeyboardInterrupt and friends are never caught."""
    action = Action(KeyboardInterrupt())
    backoff = Backoff.noop(max_attempts=3)
    with pytest.raises(KeyboardInterrupt):
        backoff.attempt(action)
    assert action.calls == 1
    assert backoff.has_started is False


def test_none_never_retries() -> None:
    """none() makes exactly one attempt."""
    action = Action(ExceptionA())
    with pytest.raises(ExceptionA):
        Backoff.none().attempt(action)
    assert action.calls == 1


def test_no_attempts_allowed_returns_default() -> None:
    """With no attempts allowed the action never runs."""
    action = Action("ok")
    assert Backoff.noop(max_attempts=0).attempt(action, default="d") == "d"
    assert Backoff.noop(max_attempts=0).attempt(action) is None
    assert action.calls == 0


# ═════════════════════════════════════════════════════════════════════════════
# Defaults
# ═════════════════════════════════════════════════════════════════════════════


def test_specific_default_beats_catch_all() -> None:
    """A class-specific default wins over a catch-all default."""
    backoff = Backoff.noop(max_attempts=2).retry_all_exceptions(default="any").retry_exceptions(ExceptionA, default="a")
    assert backoff.attempt(Action(ExceptionA())) == "a"
    assert backoff.attempt(Action(ExceptionB())) == "any"


def test_policy_default_beats_caller_default() -> None:
    """A matched policy default wins over the caller's default."""
    backoff = Backoff.noop(max_attempts=2).retry_exceptions(ExceptionA, default="policy")
    assert backoff.attempt(Action(ExceptionA()), default="caller") == "policy"
    assert backoff.attempt(Action(ExceptionB()), default="caller") == "caller"


def test_caller_default_without_policy_default() -> None:
    """The caller's default replaces re-raising when policies carry none."""
    action = Action(ExceptionA())
    assert Backoff.noop(max_attempts=2).attempt(action, default=None) is None
    assert action.calls == 2


def test_defaults_are_resolved_lazily() -> None:
    """Callable defaults run only when they become the outcome."""
    calls: list[str] = []

    def fallback() -> str:
        calls.append("called")
        return "lazy"

    backoff = Backoff.noop(max_attempts=2)
    assert backoff.attempt(Action("ok"), default=fallback) == "ok"
    assert calls == []
    assert backoff.attempt(Action(ExceptionA()), default=fallback) == "lazy"
    assert calls == ["called"]


def test_predicate_exception_policy() -> None:
    """Predicates decide which exceptions are retried."""
    backoff = Backoff.noop(max_attempts=3).retry_exceptions(lambda e: "transient" in str(e))
    action = Action(ExceptionA("transient"), ExceptionA("transient"), "ok")
    assert backoff.attempt(action) == "ok"
    with pytest.raises(ExceptionA, match="fatal"):
        backoff.attempt(Action(ExceptionA("fatal")))


def test_retry_exceptions_accepts_iterables() -> None:
    """Matchers may come in lists."""
    backoff = Backoff.noop(max_attempts=3).retry_exceptions([ExceptionA, ExceptionB])
    assert backoff.attempt(Action(ExceptionA(), ExceptionB(), "ok")) == "ok"


def test_dont_retry_exceptions() -> None:
    """dont_retry_exceptions() stops at the first exception, re-raising it or returning its default."""
    action = Action(ExceptionA())
    with pytest.raises(ExceptionA):
        Backoff.noop(max_attempts=3).dont_retry_exceptions().attempt(action)
    assert action.calls == 1

    action = Action(ExceptionA())
    assert Backoff.noop(max_attempts=3).dont_retry_exceptions(default="d").attempt(action) == "d"
    assert action.calls == 1


def test_retry_exceptions_after_dont_retry() -> None:
    """retry_exceptions() after dont_retry_exceptions() drops its default."""
    backoff = Backoff.noop(max_attempts=3).dont_retry_exceptions(default="d").retry_exceptions(ExceptionA)
    with pytest.raises(ExceptionB):
        backoff.attempt(Action(ExceptionB()))


# ═════════════════════════════════════════════════════════════════════════════
# Result Policies
# ═════════════════════════════════════════════════════════════════════════════


def test_retry_when_result_matches() -> None:
    """Matching results are retried until one does not match."""
    action = Action(None, None, 7)
    assert Backoff.noop(max_attempts=5).retry_when(None).attempt(action) == 7
    assert action.calls == 3


def test_retry_when_exhausted_returns_last_result() -> None:
    """Exhausted result retries return the last result."""
    action = Action(None)
    assert Backoff.noop(max_attempts=3).retry_when(None).attempt(action) is None
    assert action.calls == 3


def test_earlier_exception_reraised_after_invalid_results() -> None:
    """An exception from any attempt is re-raised when later attempts only return invalid results."""
    action = Action(ExceptionA("first"), None)
    with pytest.raises(ExceptionA, match="first"):
        Backoff.noop(max_attempts=2).retry_when(None).attempt(action)
    assert action.calls == 2


def test_earlier_exception_forgotten_on_success() -> None:
    """A later success returns its result even after an earlier exception."""
    action = Action(ExceptionA(), None, "ok")
    assert Backoff.noop(max_attempts=3).retry_when(None).attempt(action) == "ok"


def test_caller_default_beats_earlier_exception() -> None:
    """A caller default wins over re-raising an earlier exception."""
    action = Action(ExceptionA(), None)
    assert Backoff.noop(max_attempts=2).retry_when(None).attempt(action, default="d") == "d"


def test_retry_when_with_default() -> None:
    """A retry_when() default replaces the last invalid result."""
    backoff = Backoff.noop(max_attempts=2).retry_when(lambda r: r < 0, default="negative")
    assert backoff.attempt(Action(-1)) == "negative"
    assert backoff.attempt(Action(-1, 3)) == 3


def test_retry_when_strict() -> None:
    """Strict matching distinguishes 0 from 0.0."""
    backoff = Backoff.noop(max_attempts=3).retry_when(0, strict=True)
    assert backoff.attempt(Action(0.0)) == 0.0
    action = Action(0, 0, 1)
    assert backoff.attempt(action) == 1
    assert action.calls == 3


def test_retry_until() -> None:
    """retry_until() retries until the result matches, then returns it."""
    action = Action("a", "b", "done")
    assert Backoff.noop(max_attempts=5).retry_until("done").attempt(action) == "done"
    assert action.calls == 3

    action = Action("a", "b", "done")
    assert Backoff.noop(max_attempts=2).retry_until("done").attempt(action) == "b"


def test_result_policies_replace_each_other() -> None:
    """retry_when() and retry_until() clear each other."""
    action = Action(3)
    assert Backoff.noop(max_attempts=3).retry_until(5).retry_when(None).attempt(action) == 3
    assert action.calls == 1

    action = Action(None, 5)
    assert Backoff.noop(max_attempts=3).retry_when(5).retry_until(5).attempt(action) == 5
    assert action.calls == 2


# ═════════════════════════════════════════════════════════════════════════════
# Callbacks
# ═════════════════════════════════════════════════════════════════════════════


def test_callback_order_on_eventual_success() -> None:
    """Exception callbacks for each failure, then success, then finally."""
    events: list[str] = []

    def on_exception(error: Exception, log: AttemptLog, will_retry: bool) -> None:
        events.append(f"exception:{log.attempt_number}:{will_retry}")

    def on_success(result: Any, log: AttemptLog) -> None:
        events.append(f"success:{log.attempt_number}:{result}")

    def on_finally(logs: list[AttemptLog]) -> None:
        events.append(f"finally:{len(logs)}")

    (
        Backoff.noop(max_attempts=5)
        .exception_callback(on_exception)
        .success_callback(on_success)
        .failure_callback(_recorder(events, "failure"))
        .finally_callback(on_finally)
        .attempt(Action(ExceptionA(), ExceptionA(), "ok"))
    )
    assert events == ["exception:1:True", "exception:2:True", "success:3:ok", "finally:3"]


def test_callback_order_on_failure() -> None:
    """Exception callbacks for each failure, then failure, then finally."""
    events: list[str] = []

    def on_exception(error: Exception, log: AttemptLog, will_retry: bool) -> None:
        events.append(f"exception:{log.attempt_number}:{will_retry}")

    def on_failure(logs: list[AttemptLog]) -> None:
        events.append(f"failure:{len(logs)}")

    backoff = (
        Backoff.noop(max_attempts=2)
        .exception_callback(on_exception)
        .success_callback(_recorder(events, "success"))
        .fallback_callback(on_failure)
        .finally_callback(_recorder(events, "finally"))
    )
    with pytest.raises(ExceptionA):
        backoff.attempt(Action(ExceptionA()))
    assert events == ["exception:1:True", "exception:2:False", "failure:2", "finally"]


def test_unmatched_exception_reports_no_retry() -> None:
    """Exception callbacks see will_retry=False for unmatched exceptions."""
    seen: list[bool] = []
    backoff = Backoff.noop(max_attempts=5).retry_exceptions(ExceptionB).exception_callback(
        lambda error, log, will_retry: seen.append(will_retry)
    )
    with pytest.raises(ExceptionA):
        backoff.attempt(Action(ExceptionA()))
    assert seen == [False]


def test_invalid_result_callbacks() -> None:
    """Invalid-result callbacks get the result, will_retry and the log."""
    seen: list[tuple[Any, bool, int]] = []
    backoff = Backoff.noop(max_attempts=3).retry_when(None).invalid_result_callback(
        lambda result, will_retry, log: seen.append((result, will_retry, log.attempt_number))
    )
    backoff.attempt(Action(None))
    assert seen == [(None, True, 1), (None, True, 2), (None, False, 3)]


def test_callbacks_run_in_registration_order() -> None:
    """Callbacks run in registration order, lists included."""
    events: list[str] = []
    backoff = Backoff.noop(max_attempts=1).finally_callback(
        [_recorder(events, "one"), _recorder(events, "two")],
        _recorder(events, "three"),
    ).finally_callback(_recorder(events, "four"))
    backoff.attempt(Action("ok"))
    assert events == ["one", "two", "three", "four"]


def test_success_callback_error_propagates() -> None:
    """An error from a success callback propagates and skips the rest."""
    events: list[str] = []

    def explode(result: Any, log: AttemptLog) -> None:
        raise RuntimeError("callback failed")

    action = Action("ok")
    backoff = (
        Backoff.noop(max_attempts=3)
        .success_callback(explode)
        .failure_callback(_recorder(events, "failure"))
        .finally_callback(_recorder(events, "finally"))
    )
    with pytest.raises(RuntimeError, match="callback failed"):
        backoff.attempt(action)
    assert action.calls == 1
    assert events == []


def test_exception_callback_error_ends_run() -> None:
    """An error from an exception callback ends the run."""
    def explode(error: Exception, log: AttemptLog, will_retry: bool) -> None:
        raise RuntimeError("callback failed")

    action = Action(ExceptionA())
    with pytest.raises(RuntimeError, match="callback failed"):
        Backoff.noop(max_attempts=5).exception_callback(explode).attempt(action)
    assert action.calls == 1


def test_invalid_result_callback_error_ends_run() -> None:
    """An error from an invalid-result callback ends the run."""
    def explode(result: Any, will_retry: bool, log: AttemptLog) -> None:
        raise RuntimeError("callback failed")

    action = Action(None)
    with pytest.raises(RuntimeError):
        Backoff.noop(max_attempts=5).retry_when(None).invalid_result_callback(explode).attempt(action)
    assert action.calls == 1


# ═════════════════════════════════════════════════════════════════════════════
# Reuse
# ═════════════════════════════════════════════════════════════════════════════


def test_instance_is_reusable(clock: FakeClock) -> None:
    """Each attempt() call starts from a fresh state."""
    backoff = Backoff.fixed(1, max_attempts=3).no_jitter()

    first = Action(ExceptionA(), "one")
    assert backoff.attempt(first) == "one"
    second = Action(ExceptionA(), ExceptionA(), "two")
    assert backoff.attempt(second) == "two"

    assert (first.calls, second.calls) == (2, 3)
    assert clock.sleeps == [1.0, 1.0, 1.0]
    assert backoff.has_started is False
    assert backoff.config.runs_at_start_of_loop is False
    assert len(backoff.logs()) == 3


def test_runs_at_start_of_loop_is_restored() -> None:
    """attempt() restores the caller's loop position setting."""
    backoff = Backoff.noop(max_attempts=2).runs_at_start_of_loop()
    backoff.attempt(Action("ok"))
    assert backoff.config.runs_at_start_of_loop is True


def test_attempt_logs_are_available_afterwards() -> None:
    """The logs of the last run stay readable after attempt() returns."""
    backoff = Backoff.noop(max_attempts=3)
    with pytest.raises(ExceptionA):
        backoff.attempt(Action(ExceptionA()))
    logs = backoff.logs()
    assert [log.attempt_number for log in logs] == [1, 2, 3]
    assert all(log.is_finished for log in logs)
