"""
Session lifecycle tests

Inactivity and max-duration expiry, teardown, re-initialization and the
query helpers, all on a fake millisecond clock.
"""

import pytest

from errors import ConfigurationError
from events import ACTIVITY_KINDS
from session import (EXPIRE_INACTIVITY, EXPIRE_MAX_DURATION, SessionConfig,
                     SessionPhase, SessionTracker)

MINUTE = 60_000
HOUR = 60 * MINUTE


@pytest.fixture
def tracker(sched, events):
    return SessionTracker(sched, events)


@pytest.fixture
def expired(clock):
    calls = []

    def on_expire(reason):
        calls.append((reason, clock.t))

    on_expire.calls = calls
    return on_expire


class TestInactivity:

    def test_reset_moves_deadline(self, clock, sched, events, tracker, expired):
        tracker.initialize({"inactivity_timeout_minutes": 15}, expired)

        clock.advance(14 * MINUTE, sched)
        events.dispatch("pointer_move")

        clock.advance(MINUTE + 1, sched)            # t = 15 min
        assert expired.calls == []

        clock.advance(14 * MINUTE - 1, sched)       # t = 29 min
        assert expired.calls == [(EXPIRE_INACTIVITY, 29 * MINUTE)]

    @pytest.mark.parametrize("kind", ACTIVITY_KINDS)
    def test_every_interaction_kind_counts(self, clock, sched, events, tracker, expired, kind):
        tracker.initialize({"inactivity_timeout_minutes": 1}, expired)
        clock.advance(50_000, sched)
        events.dispatch(kind)
        clock.advance(50_000, sched)
        assert expired.calls == []
        assert tracker.state.last_activity_at == 50_000

    def test_other_events_do_not_count(self, clock, sched, events, tracker, expired):
        tracker.initialize({"inactivity_timeout_minutes": 1}, expired)
        clock.advance(50_000, sched)
        events.dispatch("resize")
        clock.advance(10_000, sched)
        assert [r for r, _ in expired.calls] == [EXPIRE_INACTIVITY]

    def test_capture_listener_sees_stopped_events(self, clock, sched, events, tracker, expired):
        events.add_listener("click", lambda e: True)     # a consumer that stops it
        tracker.initialize(None, expired)
        clock.advance(MINUTE, sched)
        events.dispatch("click")
        assert tracker.state.last_activity_at == MINUTE

    def test_steady_activity_keeps_timer_queue_small(self, clock, sched, events, tracker, expired):
        tracker.initialize(None, expired)
        for _ in range(20_000):
            clock.advance(5, sched)
            events.dispatch("pointer_move")
        assert expired.calls == []
        assert sched.pending == 2
        assert len(sched._heap) < 10

    def test_activity_never_moves_start(self, clock, sched, events, tracker, expired):
        tracker.initialize(None, expired)
        clock.advance(5 * MINUTE, sched)
        events.dispatch("key_press")
        assert tracker.state.started_at == 0
        assert tracker.state.last_activity_at >= tracker.state.started_at


class TestMaxDuration:

    def test_fires_once_despite_activity(self, clock, sched, events, tracker, expired):
        tracker.initialize({"max_session_duration_hours": 8}, expired)
        for _ in range(9 * 60):
            clock.advance(MINUTE, sched)
            events.dispatch("pointer_down")

        assert expired.calls == [(EXPIRE_MAX_DURATION, 8 * HOUR)]
        assert tracker.phase is SessionPhase.ACTIVE

    def test_concrete_scenario(self, clock, sched, tracker, expired):
        tracker.initialize({"inactivity_timeout_minutes": 1,
                            "max_session_duration_hours": 1}, expired)
        clock.advance(61_000, sched)
        assert [r for r, _ in expired.calls] == [EXPIRE_INACTIVITY]

        tracker.teardown()
        clock.advance(2 * HOUR, sched)
        assert [r for r, _ in expired.calls] == [EXPIRE_INACTIVITY]


class TestTeardown:

    def test_no_expiry_after_teardown(self, clock, sched, events, tracker, expired):
        tracker.initialize({"inactivity_timeout_minutes": 1,
                            "max_session_duration_hours": 1}, expired)
        clock.advance(30_000, sched)
        tracker.teardown()

        for _ in range(120):
            clock.advance(MINUTE, sched)
            events.dispatch("click")

        assert expired.calls == []
        assert sched.pending == 0
        assert events.listener_count() == 0
        assert tracker.phase is SessionPhase.INACTIVE
        assert tracker.state is None

    def test_teardown_is_idempotent(self, tracker, expired):
        tracker.teardown()
        tracker.initialize(None, expired)
        tracker.teardown()
        tracker.teardown()
        assert not tracker.active

    def test_activity_while_inactive_is_ignored(self, events, tracker):
        tracker.record_activity()
        events.dispatch("click")
        assert tracker.state is None


class TestReinitialize:

    def test_previous_session_is_released(self, clock, sched, events, tracker, expired):
        tracker.initialize({"inactivity_timeout_minutes": 1}, expired)
        clock.advance(30_000, sched)

        second = []
        tracker.initialize({"inactivity_timeout_minutes": 2}, second.append)

        assert sched.pending == 2
        assert events.listener_count() == len(ACTIVITY_KINDS)
        assert tracker.state.started_at == 30_000

        clock.advance(10 * MINUTE, sched)
        assert expired.calls == []
        assert second == [EXPIRE_INACTIVITY]

    def test_bad_config_leaves_session_alone(self, clock, sched, tracker, expired):
        tracker.initialize(None, expired)
        with pytest.raises(ConfigurationError):
            tracker.initialize({"inactivity_timeout_minutes": 0}, expired)
        assert tracker.active
        assert tracker.state.started_at == 0
        assert sched.pending == 2


class TestConfig:

    def test_defaults(self):
        cfg = SessionConfig()
        assert cfg.session_timeout_minutes == 30
        assert cfg.inactivity_timeout_minutes == 15
        assert cfg.max_session_duration_hours == 8

    def test_partial_merge(self):
        cfg = SessionConfig().merged({"inactivity_timeout_minutes": 5})
        assert cfg.inactivity_timeout_minutes == 5
        assert cfg.max_session_duration_hours == 8

    @pytest.mark.parametrize("overrides", [
        {"inactivity_timeout_minutes": 0},
        {"max_session_duration_hours": -1},
        {"session_timeout_minutes": "30"},
        {"inactivity_timeout_minutes": True},
        {"inactivity_timeout_minutes": float("nan")},
        {"max_session_duration_hours": float("inf")},
        {"idle_minutes": 5},
    ])
    def test_invalid_overrides(self, overrides):
        with pytest.raises(ConfigurationError):
            SessionConfig().merged(overrides)

    def test_non_callable_handler(self, tracker):
        with pytest.raises(ConfigurationError):
            tracker.initialize(None, "not a function")

    def test_update_config_applies_to_next_reset(self, clock, sched, events, tracker, expired):
        tracker.initialize({"inactivity_timeout_minutes": 15}, expired)
        tracker.update_config(inactivity_timeout_minutes=2)
        events.dispatch("pointer_move")
        clock.advance(2 * MINUTE, sched)
        assert [r for r, _ in expired.calls] == [EXPIRE_INACTIVITY]


class TestQueries:

    def test_inactive_values(self, tracker):
        assert tracker.session_duration_minutes() == 0
        assert tracker.hours_until_max_session() == 8
        assert tracker.minutes_until_inactivity_timeout() == 15

    def test_active_values(self, clock, sched, events, tracker, expired):
        tracker.initialize(None, expired)
        for _ in range(90):
            clock.advance(MINUTE, sched)
            events.dispatch("scroll")
        clock.advance(30_000, sched)

        assert tracker.session_duration_minutes() == 90
        assert tracker.hours_until_max_session() == pytest.approx(8 - 90.5 / 60)
        # the configured limit, not a countdown
        assert tracker.minutes_until_inactivity_timeout() == 15

    def test_hours_left_never_negative(self, clock, tracker, expired):
        tracker.initialize({"max_session_duration_hours": 1}, expired)
        clock.t = 3 * HOUR
        assert tracker.hours_until_max_session() == 0.0


def test_failing_handler_is_contained(clock, sched, tracker, caplog):
    def on_expire(reason):
        raise RuntimeError("handler broke")

    tracker.initialize({"inactivity_timeout_minutes": 1}, on_expire)
    clock.advance(2 * MINUTE, sched)
    assert tracker.active
    assert any("raised" in r.getMessage() for r in caplog.records)
