"""
Shared fixtures: a hand-driven millisecond clock, and a scheduler and
event hub wired to it.  No display is opened anywhere in the tests.
"""

import os
import random

os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

import pytest

from events import EventManager
from scheduler import TimerScheduler


class FakeClock:
    """Milliseconds that only move when a test says so."""

    def __init__(self, start: float = 0.0):
        self.t = start

    def __call__(self) -> float:
        return self.t

    def advance(self, ms: float, sched: TimerScheduler = None) -> None:
        """Move time forward by *ms*, running *sched* at every due time on the way."""
        end = self.t + ms
        if sched is not None:
            while True:
                due = sched.next_due()
                if due is None or due > end:
                    break
                self.t = max(self.t, due)
                sched.run_pending()
        self.t = end
        if sched is not None:
            sched.run_pending()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sched(clock):
    return TimerScheduler(clock, rng=random.Random(1234))


@pytest.fixture
def events():
    return EventManager()

