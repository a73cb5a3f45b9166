"""
LMS REST client

Usage:
    from api_client import LmsClient

    client = LmsClient(on_unauthorized=handle_logout)
    user = client.login("student@example.com", "secret")
    video = client.get_video(video_id)

Every endpoint answers ``{"success": bool, "data": ..., "error": str}``;
methods return ``data`` and raise `ApiError` otherwise.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

import config
from errors import ApiError

log = logging.getLogger("lecture_player.api")


class LmsClient:
    """Thin wrapper around httpx with bearer-token auth."""

    def __init__(self, base_url: str = None, token: str = None,
                 timeout: float = None,
                 on_unauthorized: Optional[Callable[[str], None]] = None,
                 transport: httpx.BaseTransport = None):
        self.base_url = (base_url or config.API_BASE_URL).rstrip("/")
        self.token = token
        self.on_unauthorized = on_unauthorized
        self._http = httpx.Client(
            base_url=self.base_url,
            headers={"Content-Type": "application/json"},
            timeout=timeout or config.API_TIMEOUT,
            transport=transport,
        )

    def close(self):
        self._http.close()

    def __enter__(self) -> "LmsClient":
        return self

    def __exit__(self, *exc):
        self.close()

    # ------------------------------------------------------------------ core

    def request(self, method: str, path: str, **kwargs) -> Any:
        """Send a request and return the unwrapped ``data`` field."""
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            resp = self._http.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise ApiError(f"{method} {path} failed: {e}") from e

        try:
            body = resp.json()
        except ValueError:
            body = {}

        if resp.status_code >= 400 or body.get("success") is False:
            message = body.get("error") or body.get("message") or resp.reason_phrase
            if resp.status_code in (401, 403):
                self._handle_auth_failure(resp.status_code, message)
            raise ApiError(message, resp.status_code)

        return body.get("data", body)

    def _handle_auth_failure(self, status: int, message: str):
        blocked = "blocked" in message or "deactivated" in message
        if not blocked and status != 401:
            return
        self.token = None
        if blocked:
            log.warning("account blocked, logging out: %s", message)
        if self.on_unauthorized:
            self.on_unauthorized(message)

    # ------------------------------------------------------------------ auth

    def login(self, email: str, password: str) -> Dict[str, Any]:
        user = self.request("POST", "/auth/login", json={"email": email, "password": password})
        self.token = user.get("token")
        return user

    def register(self, name: str, email: str, password: str, role: str = "student") -> Dict[str, Any]:
        user = self.request("POST", "/auth/register", json={
            "name": name, "email": email, "password": password, "role": role,
        })
        self.token = user.get("token")
        return user

    def get_me(self) -> Dict[str, Any]:
        return self.request("GET", "/auth/me")

    # ---------------------------------------------------------------- videos

    def get_video(self, video_id: str) -> Dict[str, Any]:
        return self.request("GET", f"/videos/{video_id}")

    def get_course(self, course_id: str) -> Dict[str, Any]:
        return self.request("GET", f"/courses/{course_id}")

    def get_course_videos(self, course_id: str) -> List[Dict[str, Any]]:
        return self.request("GET", f"/videos/course/{course_id}") or []

    def get_stream_token(self, video_id: str) -> Optional[str]:
        data = self.request("GET", f"/videos/{video_id}/stream-token")
        return (data or {}).get("streamToken")

    def update_progress(self, video_id: str, progress: float, completed: bool) -> Any:
        return self.request("PUT", f"/videos/{video_id}/progress", json={
            "progress": round(progress, 1), "completed": completed,
        })
