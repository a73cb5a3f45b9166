"""
session.py

Client session lifecycle: inactivity timeout and maximum session duration.

A `SessionTracker` is owned by the auth session.  `initialize()` after
login/registration, `teardown()` on logout.  When a limit is hit the
caller's ``on_expire(reason)`` runs with ``"inactivity"`` or
``"maxDuration"``; deciding what happens next (usually: tear down, drop
credentials, back to the login screen) is the caller's job.  The tracker
stays ACTIVE until `teardown()`.

Two behaviours are kept as they have always been and are easy to mistake
for bugs:

* ``session_timeout_minutes`` is accepted and merged but no expiry check
  reads it.
* `minutes_until_inactivity_timeout()` returns the configured limit, not
  the time remaining before the deadline.
"""

from __future__ import annotations

import dataclasses
import enum
import logging
import math
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

import config
from errors import ConfigurationError
from events import ACTIVITY_KINDS, EventManager
from scheduler import TimerHandle, TimerScheduler

log = logging.getLogger("lecture_player.session")

EXPIRE_INACTIVITY   = "inactivity"
EXPIRE_MAX_DURATION = "maxDuration"

_MS_PER_MINUTE = 60_000
_MS_PER_HOUR   = 3_600_000


@dataclass(frozen=True)
class SessionConfig:
    session_timeout_minutes:    float = config.SESSION_TIMEOUT_MINUTES
    inactivity_timeout_minutes: float = config.INACTIVITY_TIMEOUT_MINUTES
    max_session_duration_hours: float = config.MAX_SESSION_DURATION_HOURS
    max_duration_check_ms:      float = config.MAX_DURATION_CHECK_MS

    def merged(self, overrides: Optional[Mapping[str, float]] = None) -> "SessionConfig":
        """Copy with *overrides* applied; unknown keys are an error."""
        overrides = dict(overrides or {})
        known = {f.name for f in dataclasses.fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ConfigurationError(f"unknown session setting(s): {', '.join(unknown)}")
        cfg = dataclasses.replace(self, **overrides)
        cfg.validate()
        return cfg

    def validate(self) -> None:
        for f in dataclasses.fields(self):
            v = getattr(self, f.name)
            if (isinstance(v, bool) or not isinstance(v, (int, float))
                    or not math.isfinite(v) or v <= 0):
                raise ConfigurationError(f"{f.name} must be a positive number, got {v!r}")


@dataclass
class SessionState:
    started_at:          float
    last_activity_at:    float
    inactivity_limit_ms: float
    max_duration_ms:     float


class SessionPhase(enum.Enum):
    INACTIVE = "inactive"
    ACTIVE   = "active"


class SessionTracker:
    def __init__(self, scheduler: TimerScheduler, events: EventManager,
                 defaults: Optional[SessionConfig] = None):
        self._sched    = scheduler
        self._events   = events
        self._config   = defaults or SessionConfig()
        self._on_expire: Optional[Callable[[str], None]] = None
        self._inactivity: Optional[TimerHandle] = None
        self._max_check:  Optional[TimerHandle] = None
        self.state: Optional[SessionState] = None

    # ── lifecycle ──────────────────────────────────────────────────────
    def initialize(self, overrides: Optional[Mapping[str, float]] = None,
                   on_expire: Optional[Callable[[str], None]] = None) -> None:
        """
        Start a session.  An already active session is torn down first, so
        no timer or listener of the old one survives.
        """
        if on_expire is not None and not callable(on_expire):
            raise ConfigurationError("on_expire must be callable")
        cfg = self._config.merged(overrides)

        if self.active:
            log.warning("session re-initialized while active; tearing down the old one")
            self.teardown()

        self._config    = cfg
        self._on_expire = on_expire
        now = self._sched.now()
        self.state = SessionState(
            started_at=now,
            last_activity_at=now,
            inactivity_limit_ms=cfg.inactivity_timeout_minutes * _MS_PER_MINUTE,
            max_duration_ms=cfg.max_session_duration_hours * _MS_PER_HOUR,
        )
        self._arm_inactivity(self.state.inactivity_limit_ms)
        self._max_check = self._sched.call_every(
            cfg.max_duration_check_ms, self._check_max_duration, "session-max-duration")
        for kind in ACTIVITY_KINDS:
            self._events.add_listener(kind, self._on_activity, capture=True)
        log.info("session started (inactivity %s min, max %s h)",
                 cfg.inactivity_timeout_minutes, cfg.max_session_duration_hours)

    def teardown(self) -> None:
        self._sched.cancel(self._inactivity)
        self._sched.cancel(self._max_check)
        self._inactivity = self._max_check = None
        for kind in ACTIVITY_KINDS:
            self._events.remove_listener(kind, self._on_activity)
        if self.state is not None:
            log.info("session ended after %d min", self.session_duration_minutes())
        self.state = None
        self._on_expire = None

    def record_activity(self) -> None:
        state = self.state
        if state is None:
            return
        state.last_activity_at = self._sched.now()
        # the pending deadline re-checks last_activity_at when it fires, so it
        # only has to move when a shorter limit makes it come earlier
        deadline = state.last_activity_at + state.inactivity_limit_ms
        if self._inactivity is None or deadline < self._inactivity.due:
            self._arm_inactivity(state.inactivity_limit_ms)

    # ── configuration ──────────────────────────────────────────────────
    @property
    def config(self) -> SessionConfig:
        return self._config

    def update_config(self, **overrides: float) -> None:
        """Takes effect at the next activity reset / duration poll."""
        self._config = self._config.merged(overrides)
        if self.state is not None:
            self.state.inactivity_limit_ms = (
                self._config.inactivity_timeout_minutes * _MS_PER_MINUTE)
            self.state.max_duration_ms = (
                self._config.max_session_duration_hours * _MS_PER_HOUR)

    # ── queries ────────────────────────────────────────────────────────
    @property
    def phase(self) -> SessionPhase:
        return SessionPhase.ACTIVE if self.state is not None else SessionPhase.INACTIVE

    @property
    def active(self) -> bool:
        return self.state is not None

    def session_duration_minutes(self) -> int:
        if self.state is None:
            return 0
        return int((self._sched.now() - self.state.started_at) // _MS_PER_MINUTE)

    def minutes_until_inactivity_timeout(self) -> float:
        """The configured inactivity limit (constant, not a countdown)."""
        return self._config.inactivity_timeout_minutes

    def hours_until_max_session(self) -> float:
        if self.state is None:
            return self._config.max_session_duration_hours
        elapsed = (self._sched.now() - self.state.started_at) / _MS_PER_HOUR
        return max(0.0, self._config.max_session_duration_hours - elapsed)

    # ── internals ──────────────────────────────────────────────────────
    def _on_activity(self, _event=None) -> None:
        self.record_activity()

    def _arm_inactivity(self, delay_ms: float) -> None:
        self._sched.cancel(self._inactivity)
        self._inactivity = self._sched.call_later(
            delay_ms, self._inactivity_deadline, "session-inactivity")

    def _inactivity_deadline(self) -> None:
        """One deadline per session; activity since it was set pushes it on."""
        self._inactivity = None
        state = self.state
        if state is None:
            return
        remaining = state.last_activity_at + state.inactivity_limit_ms - self._sched.now()
        if remaining > 0:
            self._arm_inactivity(remaining)
        else:
            self._expire(EXPIRE_INACTIVITY)

    def _check_max_duration(self) -> None:
        if self.state is None:
            return
        elapsed = self._sched.now() - self.state.started_at
        if elapsed >= self.state.max_duration_ms:
            # reported once; the session stays active until teardown
            self._sched.cancel(self._max_check)
            self._max_check = None
            self._expire(EXPIRE_MAX_DURATION)

    def _expire(self, reason: str) -> None:
        log.info("session expired: %s", reason)
        if self._on_expire is not None:
            self._on_expire(reason)
