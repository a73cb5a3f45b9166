"""
protection.py – keep casual users from saving or inspecting a lecture.

While enabled, a few shortcuts (dev tools, view source, save, print,
print-screen) and the context-menu button are swallowed before the main
loop sees them.  Anyone determined gets around this in seconds; it only
removes the obvious buttons.

Also holds the per-view stream token the player appends to protected
video URLs.
"""

from __future__ import annotations

import logging
from typing import Optional

import pygame

import config
from errors import ApiError
from events import EventManager

log = logging.getLogger("lecture_player.protection")

_SPECIAL_KEYS = {
    pygame.K_F12:         "f12",
    pygame.K_PRINTSCREEN: "print screen",
}


def _key_name(key: int) -> str:
    """Lower-case name as in config.BLOCKED_SHORTCUTS."""
    if pygame.K_a <= key <= pygame.K_z:
        return chr(key)
    return _SPECIAL_KEYS.get(key, "")


class VideoProtection:
    def __init__(self, events: EventManager,
                 shortcuts=config.BLOCKED_SHORTCUTS):
        self._events = events
        self._shortcuts = {(name, ctrl, shift) for name, ctrl, shift in shortcuts}
        self.enabled = False
        self.blocked_count = 0
        self._token: Optional[str] = None

    # ── on / off ───────────────────────────────────────────────────────
    def enable(self) -> None:
        if self.enabled:
            return
        self._events.add_listener("key_press", self._on_key, capture=True)
        self._events.add_listener("context_menu", self._on_context_menu, capture=True)
        self.enabled = True

    def disable(self) -> None:
        self._events.remove_listener("key_press", self._on_key)
        self._events.remove_listener("context_menu", self._on_context_menu)
        self.enabled = False

    def is_blocked(self, key_name: str, ctrl: bool, shift: bool) -> bool:
        return (key_name.lower(), ctrl, shift) in self._shortcuts

    # ── listeners ──────────────────────────────────────────────────────
    def _on_key(self, event) -> bool:
        mod   = getattr(event, "mod", 0)
        ctrl  = bool(mod & (pygame.KMOD_CTRL | pygame.KMOD_META))
        shift = bool(mod & pygame.KMOD_SHIFT)
        name  = _key_name(event.key)
        if self.is_blocked(name, ctrl, shift):
            self.blocked_count += 1
            log.debug("blocked shortcut %s (ctrl=%s shift=%s)", name, ctrl, shift)
            return True
        return False

    def _on_context_menu(self, _event) -> bool:
        self.blocked_count += 1
        return True

    # ── stream token ───────────────────────────────────────────────────
    @property
    def token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: Optional[str]) -> None:
        self._token = token

    def clear_token(self) -> None:
        self._token = None

    def request_stream_token(self, client, video_id: str) -> Optional[str]:
        """Fetch and keep a stream token for *video_id*; None on any failure."""
        try:
            token = client.get_stream_token(video_id)
        except ApiError as e:
            log.error("failed to get video stream token: %s", e)
            return None
        if token:
            self.set_token(token)
        return token
