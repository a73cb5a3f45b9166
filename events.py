#!/usr/bin/env python3
"""
events.py  – central hub

• Translates raw Pygame events to interaction kinds (pointer_down, key_press,
  resize, …) and hands them to registered listeners, document-style.
• Translates the same events to high-level action dicts for the main loop.
• Exposes a thread-safe queue so *any* external source can inject the same
  actions (web remote, auth expiry, etc.).

Listeners registered with ``capture=True`` always run, before the others and
regardless of what they return; a nested consumer cannot hide an event from
them.  A listener returning ``True`` prevents the default action, and a
non-capture listener returning ``True`` also stops the remaining non-capture
listeners.
"""

from __future__ import annotations
import logging
import queue
from typing import Any, Callable, Optional

import pygame
from pygame.locals import *

import config

log = logging.getLogger("lecture_player.events")

Action   = dict      # alias for readability
Listener = Callable[[Any], Optional[bool]]

# interaction kinds that count as user activity
ACTIVITY_KINDS = ("pointer_down", "pointer_move", "key_press",
                  "scroll", "touch_start", "click")


class EventManager:
    def __init__(self) -> None:
        self._fifo: "queue.Queue[Action]" = queue.Queue()      # thread-safe
        self._listeners: dict[str, list[tuple[Listener, bool]]] = {}

    # ── listener registry ──────────────────────────────────────────────
    def add_listener(self, kind: str, fn: Listener, capture: bool = False) -> None:
        entries = self._listeners.setdefault(kind, [])
        if (fn, capture) not in entries:
            entries.append((fn, capture))

    def remove_listener(self, kind: str, fn: Listener) -> None:
        entries = self._listeners.get(kind)
        if not entries:
            return
        entries[:] = [(f, c) for f, c in entries if f != fn]
        if not entries:
            del self._listeners[kind]

    def listener_count(self, kind: Optional[str] = None) -> int:
        if kind is not None:
            return len(self._listeners.get(kind, ()))
        return sum(len(v) for v in self._listeners.values())

    def dispatch(self, kind: str, event: Any = None) -> bool:
        """Run listeners for *kind*; True when one of them prevented the default."""
        entries = list(self._listeners.get(kind, ()))
        prevented = False
        for fn, capture in entries:
            if capture and self._call(kind, fn, event):
                prevented = True
        for fn, capture in entries:
            if not capture and self._call(kind, fn, event):
                return True
        return prevented

    @staticmethod
    def _call(kind: str, fn: Listener, event: Any) -> bool:
        try:
            return bool(fn(event))
        except Exception:
            log.exception("listener for %r raised", kind)
            return False

    # ── SDL / keyboard path ────────────────────────────────────────────
    def handle(self, event) -> None:
        """Dispatch one Pygame event to listeners, then enqueue its action."""
        prevented = False
        for kind in self._kinds(event):
            prevented |= self.dispatch(kind, event)
        if prevented:
            return
        act = self._translate_pygame(event)
        if act:
            self._fifo.put(act)

    def pump(self) -> None:
        for e in pygame.event.get():
            self.handle(e)

    # ── external / programmatic path ───────────────────────────────────
    def post(self, action: Action) -> None:
        """
        Any thread may call this to inject an already-formed action dict, e.g.:
            events.post({"type": "seek", "delta": 10.0})
        """
        self._fifo.put(action)

    # ── main-loop consumer ─────────────────────────────────────────────
    def poll(self) -> Action | None:
        """Return next queued action or None (non-blocking)."""
        try:
            return self._fifo.get_nowait()
        except queue.Empty:
            return None

    # ── internal translators ──────────────────────────────────────────
    @staticmethod
    def _kinds(event) -> tuple[str, ...]:
        t = event.type
        if t == MOUSEBUTTONDOWN:
            if getattr(event, "button", 1) == config.CONTEXT_MENU_BUTTON:
                return ("pointer_down", "context_menu")
            return ("pointer_down",)
        if t == MOUSEBUTTONUP:
            return ("click",)
        if t == MOUSEMOTION:
            return ("pointer_move",)
        if t == KEYDOWN:
            return ("key_press",)
        if t == MOUSEWHEEL:
            return ("scroll",)
        if t == FINGERDOWN:
            return ("touch_start",)
        if t in (VIDEORESIZE, WINDOWRESIZED, WINDOWSIZECHANGED):
            return ("resize",)
        return ()

    @staticmethod
    def _translate_pygame(event) -> Action | None:
        if event.type == QUIT:
            return {"type": "quit"}

        if event.type == KEYDOWN:
            if event.key in (K_ESCAPE, K_q):
                return {"type": "quit"}
            if event.key == K_SPACE:
                return {"type": "toggle_pause"}
            if event.key == K_RIGHT:
                return {"type": "seek", "delta": config.SEEK_STEP_SEC}
            if event.key == K_LEFT:
                return {"type": "seek", "delta": -config.SEEK_STEP_SEC}
            if event.key == K_n:
                return {"type": "switch_lecture", "to": "next"}
            if event.key == K_p:
                return {"type": "switch_lecture", "to": "prev"}
            if event.key == K_i:
                return {"type": "toggle_hud"}
            if event.key == K_f:
                return {"type": "toggle_fullscreen"}

        if event.type == MOUSEBUTTONUP and getattr(event, "button", 1) == 1:
            return {"type": "click", "pos": getattr(event, "pos", (0, 0))}

        return None
