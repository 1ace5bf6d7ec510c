"""Shared fixtures: isolated settings and a controllable clock."""

from __future__ import annotations

import os
from collections.abc import Iterator

import pytest

from backoffkit.foundation.config import clear_settings_cache
from backoffkit.runtime.retry import strategy as strategy_module


class FakeClock:
    """Stands in for the time module inside the strategy.

    sleep() advances the clock instead of blocking, and every requested
    sleep is recorded in seconds.
    """

    def __init__(self) -> None:
        self.now_ns = 1_000_000_000
        self.sleeps: list[float] = []

    def monotonic_ns(self) -> int:
        return self.now_ns

    def perf_counter(self) -> float:
        return self.now_ns / 1_000_000_000

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now_ns += max(1, round(seconds * 1_000_000_000))

    def advance(self, seconds: float) -> None:
        self.now_ns += round(seconds * 1_000_000_000)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Ignore BACKOFFKIT_* variables from the real environment."""
    for key in [k for k in os.environ if k.startswith("BACKOFFKIT_")]:
        monkeypatch.delenv(key)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    fake = FakeClock()
    monkeypatch.setattr(strategy_module, "time", fake)
    return fake
