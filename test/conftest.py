from __future__ import annotations

import itertools
import threading

import pytest


class StepClock:
    """Deterministic clock: returns start, start + step, ..."""

    def __init__(self, start: int = 1_700_000_000, step: int = 1) -> None:
        self._ticks = itertools.count(start, step)
        self._lock = threading.Lock()

    def __call__(self) -> int:
        with self._lock:
            return next(self._ticks)


class FixedClock:
    def __init__(self, now: int) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def clock() -> StepClock:
    return StepClock()
