"""
scheduler.py – cooperative timers for the main loop.

Nothing here runs on its own thread.  The owner calls `run_pending()` once
per frame and every due callback runs right there, interleaved with the
event handling of the same frame:

    sched = TimerScheduler()
    h = sched.start(5_000, 10_000, move_watermark)   # jittered repeat
    ...
    while running:
        events.pump()
        sched.run_pending()
    sched.cancel(h)

All times are milliseconds on the scheduler's clock.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import math
import random
from typing import Callable, Optional

import timing
from errors import ConfigurationError

log = logging.getLogger("lecture_player.scheduler")

Callback = Callable[[], None]

# heap entries allowed per live handle before cancel() compacts
_COMPACT_RATIO = 2


def _finite(v) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)


class TimerHandle:
    """One scheduled action, owned by whoever started it."""

    __slots__ = ("interval_min_ms", "interval_max_ms", "callback", "label",
                 "due", "fired", "failures", "active", "_owner")

    def __init__(self, owner: "TimerScheduler", callback: Callback,
                 min_ms: Optional[float], max_ms: Optional[float],
                 label: Optional[str]):
        self._owner          = owner
        self.callback        = callback
        self.interval_min_ms = min_ms
        self.interval_max_ms = max_ms
        self.label           = label or getattr(callback, "__name__", "timer")
        self.due             = 0.0
        self.fired           = 0
        self.failures        = 0
        self.active          = True

    @property
    def repeating(self) -> bool:
        return self.interval_min_ms is not None

    def __repr__(self) -> str:
        state = "active" if self.active else "done"
        return f"<TimerHandle {self.label} due={self.due:.0f} {state}>"


class TimerScheduler:
    def __init__(self, clock: Callable[[], float] = timing.monotonic_ms,
                 rng: Optional[random.Random] = None):
        self._clock = clock
        self._rng   = rng or random.Random()
        self._heap: list[tuple[float, int, TimerHandle]] = []
        self._seq   = itertools.count()
        self._live: set[TimerHandle] = set()

    # ── scheduling ─────────────────────────────────────────────────────
    def start(self, min_ms: float, max_ms: float, callback: Callback,
              label: Optional[str] = None) -> TimerHandle:
        """Call *callback* repeatedly, each gap drawn fresh from [min_ms, max_ms]."""
        if not (_finite(min_ms) and _finite(max_ms)) or min_ms <= 0 or max_ms <= 0:
            raise ConfigurationError(
                f"timer bounds must be positive, got [{min_ms}, {max_ms}]")
        if min_ms > max_ms:
            raise ConfigurationError(
                f"timer min {min_ms} ms is greater than max {max_ms} ms")
        h = TimerHandle(self, callback, float(min_ms), float(max_ms), label)
        self._push(h, self.now() + self._draw(h))
        return h

    def call_every(self, interval_ms: float, callback: Callback,
                   label: Optional[str] = None) -> TimerHandle:
        return self.start(interval_ms, interval_ms, callback, label)

    def call_later(self, delay_ms: float, callback: Callback,
                   label: Optional[str] = None) -> TimerHandle:
        """One-shot."""
        if not _finite(delay_ms) or delay_ms < 0:
            raise ConfigurationError(f"delay must be >= 0, got {delay_ms}")
        h = TimerHandle(self, callback, None, None, label)
        self._push(h, self.now() + float(delay_ms))
        return h

    def cancel(self, handle: Optional[TimerHandle]) -> None:
        """Stop *handle* for good.  Stale, foreign or None handles are ignored."""
        if handle is None or handle._owner is not self:
            return
        handle.active = False
        self._live.discard(handle)
        if len(self._heap) > _COMPACT_RATIO * len(self._live) + 8:
            self._compact()

    def cancel_all(self) -> None:
        for h in list(self._live):
            h.active = False
        self._live.clear()
        self._heap.clear()

    # ── queries ────────────────────────────────────────────────────────
    def now(self) -> float:
        return self._clock()

    @property
    def pending(self) -> int:
        return len(self._live)

    def next_due(self) -> Optional[float]:
        self._drop_stale()
        return self._heap[0][0] if self._heap else None

    # ── main-loop hook ─────────────────────────────────────────────────
    def run_pending(self, now: Optional[float] = None) -> int:
        """Run every callback that is due; each handle at most once per pass."""
        now = self.now() if now is None else now
        due: list[TimerHandle] = []
        while self._heap and self._heap[0][0] <= now:
            when, _, h = heapq.heappop(self._heap)
            if h.active and when == h.due:
                due.append(h)

        ran = 0
        for h in due:
            # an earlier callback in this pass may have cancelled it
            if not h.active:
                continue
            if h.repeating:
                nxt = h.due + self._draw(h)
                if nxt <= now:                      # fell behind, no bursts
                    nxt = now + self._draw(h)
                self._push(h, nxt)
            else:
                h.active = False
                self._live.discard(h)
            ran += 1
            self._invoke(h)
        return ran

    # ── internals ──────────────────────────────────────────────────────
    def _draw(self, h: TimerHandle) -> float:
        if h.interval_min_ms == h.interval_max_ms:
            return h.interval_min_ms
        return self._rng.uniform(h.interval_min_ms, h.interval_max_ms)

    def _push(self, h: TimerHandle, when: float) -> None:
        h.due = when
        self._live.add(h)
        heapq.heappush(self._heap, (when, next(self._seq), h))

    def _compact(self) -> None:
        """Rebuild the heap from live entries only."""
        self._heap = [e for e in self._heap if e[2].active and e[0] == e[2].due]
        heapq.heapify(self._heap)

    def _drop_stale(self) -> None:
        while self._heap and (not self._heap[0][2].active
                              or self._heap[0][0] != self._heap[0][2].due):
            heapq.heappop(self._heap)

    def _invoke(self, h: TimerHandle) -> None:
        h.fired += 1
        try:
            h.callback()
        except Exception:
            h.failures += 1
            log.exception("timer %r raised; keeping schedule", h.label)
