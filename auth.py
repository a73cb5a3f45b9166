"""
auth.py – who is logged in, and the session that goes with it.

Login and registration start the session tracker; logout and session
expiry stop it and drop the credentials.  On expiry a
``{"type": "navigate", "to": "login"}`` action is posted so the main loop
can leave the lecture view.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from api_client import LmsClient
from errors import ApiError
from events import EventManager
from session import SessionTracker

log = logging.getLogger("lecture_player.auth")


class AuthSession:
    def __init__(self, client: LmsClient, tracker: SessionTracker,
                 events: EventManager):
        self.client  = client
        self.tracker = tracker
        self.events  = events
        self.user: Optional[dict[str, Any]] = None
        # thread that owns the tracker (the one running the main loop)
        self._loop_thread = threading.current_thread()
        client.on_unauthorized = self._on_unauthorized

    # ── state ──────────────────────────────────────────────────────────
    @property
    def token(self) -> Optional[str]:
        return self.client.token

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and bool(self.client.token)

    @property
    def user_identifier(self) -> str:
        u = self.user or {}
        return u.get("email") or u.get("_id") or u.get("id") or "Unknown User"

    # ── transitions ────────────────────────────────────────────────────
    def login(self, email: str, password: str) -> dict[str, Any]:
        self.user = self.client.login(email, password)
        log.info("logged in as %s", self.user_identifier)
        self.tracker.initialize(None, self._on_expire)
        return self.user

    def register(self, name: str, email: str, password: str,
                 role: str = "student") -> dict[str, Any]:
        self.user = self.client.register(name, email, password, role)
        log.info("registered %s", self.user_identifier)
        self.tracker.initialize(None, self._on_expire)
        return self.user

    def logout(self) -> None:
        self.tracker.teardown()
        self._clear_credentials()
        log.info("logged out")

    # ── callbacks ──────────────────────────────────────────────────────
    def _on_expire(self, reason: str) -> None:
        log.warning("session expired (%s); returning to login", reason)
        self.logout()
        self.events.post({"type": "navigate", "to": "login", "reason": reason})

    def _on_unauthorized(self, message: str) -> None:
        if self.user is None:
            return
        if threading.current_thread() is not self._loop_thread:
            # the tracker is only touched from the loop thread
            log.warning("request rejected off the main loop (%s); queueing logout", message)
            self.events.post({"type": "logout", "reason": message})
            return
        self.tracker.teardown()
        self._clear_credentials()
        self.events.post({"type": "navigate", "to": "login", "reason": message})

    def _clear_credentials(self) -> None:
        self.user = None
        self.client.token = None

    def refresh_user(self) -> Optional[dict[str, Any]]:
        """Re-read the profile; None on failure (a 401 also logs out)."""
        try:
            self.user = self.client.get_me()
        except ApiError as e:
            log.warning("could not refresh user: %s", e)
            return None
        return self.user
