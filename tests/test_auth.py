"""
Auth session tests: login starts the session, expiry and 401s end it.
"""

import threading

import httpx
import pytest

from api_client import LmsClient
from auth import AuthSession
from errors import ApiError
from session import EXPIRE_INACTIVITY, EXPIRE_MAX_DURATION, SessionTracker

MINUTE = 60_000


class FakeClient:
    def __init__(self, user=None, me_error=None):
        self.token = None
        self.on_unauthorized = None
        self._user = user or {"_id": "u1", "email": "student@example.com", "token": "jwt"}
        self._me_error = me_error

    def login(self, email, password):
        if password != "pw":
            raise ApiError("Invalid credentials", 401)
        self.token = self._user.get("token")
        return dict(self._user)

    def register(self, name, email, password, role="student"):
        self.token = "jwt-new"
        return {"_id": "u2", "email": email, "name": name, "role": role}

    def get_me(self):
        if self._me_error:
            raise self._me_error
        return {"_id": "u1", "email": "renamed@example.com"}


@pytest.fixture
def tracker(sched, events):
    return SessionTracker(sched, events)


@pytest.fixture
def auth(tracker, events):
    return AuthSession(FakeClient(), tracker, events)


class TestLogin:

    def test_login_starts_session(self, auth, tracker):
        auth.login("student@example.com", "pw")
        assert auth.is_authenticated
        assert auth.token == "jwt"
        assert tracker.active

    def test_failed_login_starts_nothing(self, auth, tracker):
        with pytest.raises(ApiError):
            auth.login("student@example.com", "wrong")
        assert not auth.is_authenticated
        assert not tracker.active

    def test_register_starts_session(self, auth, tracker):
        user = auth.register("Ann", "ann@example.com", "pw")
        assert user["role"] == "student"
        assert tracker.active
        assert auth.user_identifier == "ann@example.com"

    def test_logout(self, auth, tracker, sched, events):
        auth.login("student@example.com", "pw")
        auth.logout()
        assert not auth.is_authenticated
        assert auth.token is None
        assert not tracker.active
        assert sched.pending == 0
        assert events.listener_count() == 0

    def test_relogin_replaces_session(self, auth, tracker, sched):
        auth.login("student@example.com", "pw")
        auth.login("student@example.com", "pw")
        assert sched.pending == 2


class TestIdentifier:

    @pytest.mark.parametrize("user,expected", [
        ({"email": "a@b.c", "_id": "x"}, "a@b.c"),
        ({"_id": "x"}, "x"),
        ({"id": "y"}, "y"),
        ({}, "Unknown User"),
        (None, "Unknown User"),
    ])
    def test_fallbacks(self, auth, user, expected):
        auth.user = user
        assert auth.user_identifier == expected


class TestExpiry:

    def test_inactivity_logs_out_and_navigates(self, clock, sched, events, auth, tracker):
        auth.login("student@example.com", "pw")
        clock.advance(15 * MINUTE, sched)

        assert not auth.is_authenticated
        assert not tracker.active
        assert events.poll() == {"type": "navigate", "to": "login",
                                 "reason": EXPIRE_INACTIVITY}

    def test_max_duration_reason(self, clock, sched, events, auth, tracker):
        tracker.update_config(max_session_duration_hours=1)
        auth.login("student@example.com", "pw")
        for _ in range(60):
            clock.advance(MINUTE, sched)
            events.dispatch("pointer_move")
        assert events.poll()["reason"] == EXPIRE_MAX_DURATION
        assert not tracker.active

    def test_unauthorized_while_logged_in(self, events, auth, tracker):
        auth.login("student@example.com", "pw")
        auth.client.on_unauthorized("Token expired")
        assert not tracker.active
        assert auth.user is None
        assert events.poll() == {"type": "navigate", "to": "login", "reason": "Token expired"}

    def test_unauthorized_while_logged_out(self, events, auth):
        auth.client.on_unauthorized("Token expired")
        assert events.poll() is None


class TestRefresh:

    def test_refresh(self, auth):
        auth.login("student@example.com", "pw")
        assert auth.refresh_user()["email"] == "renamed@example.com"

    def test_refresh_failure(self, tracker, events):
        auth = AuthSession(FakeClient(me_error=ApiError("down", 503)), tracker, events)
        auth.login("student@example.com", "pw")
        assert auth.refresh_user() is None
        assert auth.user is not None


class TestUnauthorizedOffLoop:

    def test_progress_401_on_worker_defers_teardown(self, tracker, events):
        def handler(req):
            if req.url.path == "/api/auth/login":
                return httpx.Response(200, json={"success": True, "data": {
                    "_id": "u1", "email": "student@example.com", "token": "jwt"}})
            return httpx.Response(401, json={"success": False, "error": "Token expired"})

        client = LmsClient(base_url="http://lms.test/api",
                           transport=httpx.MockTransport(handler))
        auth = AuthSession(client, tracker, events)
        auth.login("student@example.com", "pw")

        on_main = []
        teardown = tracker.teardown

        def spy():
            on_main.append(threading.current_thread() is threading.main_thread())
            teardown()

        tracker.teardown = spy

        errors = []

        def send():
            try:
                client.update_progress("v1", 50.0, False)
            except ApiError as e:
                errors.append(e.status)

        worker = threading.Thread(target=send)
        worker.start()
        worker.join(timeout=5)

        assert errors == [401]
        assert on_main == []
        assert tracker.active
        assert events.poll() == {"type": "logout", "reason": "Token expired"}

        # what the lecture window does with that action
        auth.logout()
        assert on_main == [True]
        assert not tracker.active
        assert auth.user is None
