#!/usr/bin/env python3
"""
app.py – the lecture window

Plays one course's lectures through a single VideoPlayer, with a moving
user watermark over the video, shortcut suppression while it is shown,
and the login session's timers running in the same loop.  Input is
dispatched by events.py, timers by scheduler.py; both are pumped once per
frame, so nothing here needs a lock.
"""
from __future__ import annotations

import logging
import threading
from typing import Optional

import pygame

import config
from auth import AuthSession
from course_playlist import CoursePlaylist, Lecture
from errors import ApiError
from events import EventManager
from hud import draw_hud, hud_lines
from overlays import Node, OverlayPositioner
from protection import VideoProtection
from renderer import fit_rect, render_frame
from scheduler import TimerHandle, TimerScheduler
from video_player import VideoPlayer
from watermark import Watermark, watermark_text

log = logging.getLogger("lecture_player.app")

# why run() returned
EXIT_QUIT  = "quit"
EXIT_LOGIN = "login"


class LectureViewer:
    def __init__(self, playlist: CoursePlaylist,
                 scheduler: TimerScheduler, events: EventManager,
                 auth: Optional[AuthSession] = None,
                 start_lecture: Optional[str] = None,
                 label: Optional[str] = None):
        self.playlist = playlist
        self.sched    = scheduler
        self.events   = events
        self.auth     = auth
        self.protection = VideoProtection(events)

        # window ----------------------------------------------------------
        pygame.init()
        pygame.display.set_caption(config.WINDOW_TITLE)
        self.fullscreen = config.FULLSCREEN
        self.screen = self._set_mode()
        self.clock  = pygame.time.Clock()

        # element tree: window → video container → watermark ---------------
        self.root      = Node("window", *self.screen.get_size(), root=True)
        self.container = self.root.append_child(Node("video-container"))

        # core state ------------------------------------------------------
        self.player   = VideoPlayer()
        self.lecture: Optional[Lecture] = None
        self.show_hud = config.SHOW_HUD
        self._start   = start_lecture
        self._progress: Optional[TimerHandle] = None
        self._frame_size: Optional[tuple[int, int]] = None

        # watermark -------------------------------------------------------
        self.watermark: Optional[Watermark] = None
        self.positioner: Optional[OverlayPositioner] = None
        self.relabel(label)

    def relabel(self, label: Optional[str] = None) -> None:
        """Set the watermark text; defaults to the logged-in user and course."""
        if label is None and self.authenticated:
            label = watermark_text(self.auth.user_identifier, self.playlist.title or None)
        if not label:
            return
        if self.watermark is not None:
            self.watermark.set_text(label)
            return
        self.watermark = Watermark(label)
        self.positioner = OverlayPositioner(
            self.watermark.node, self.container, self.sched, self.events,
            fallback=lambda: self.root,
        )

    # ── window ------------------------------------------------------------
    def _set_mode(self) -> pygame.Surface:
        return pygame.display.set_mode(
            (0, 0) if self.fullscreen else config.WINDOWED_SIZE,
            pygame.FULLSCREEN if self.fullscreen else pygame.RESIZABLE,
        )

    def _layout(self, _event=None) -> None:
        """Size the element tree to the current window and video."""
        size = self.screen.get_size()
        self.root.set_box(0, 0, *size)
        r = fit_rect(size, self._frame_size, self.player.sar)
        self._place_container(r)

    def _place_container(self, r: pygame.Rect) -> None:
        if self.positioner:
            self.positioner.fit_container(r.x, r.y, r.w, r.h)
        else:
            self.container.set_box(r.x, r.y, r.w, r.h)

    # ── lectures ------------------------------------------------------------
    @property
    def authenticated(self) -> bool:
        return self.auth is not None and self.auth.is_authenticated

    def _open_lecture(self, lec: Lecture) -> None:
        self._stop_progress()
        self.protection.clear_token()
        token = None
        if not lec.is_preview and self.authenticated:
            token = self.protection.request_stream_token(self.auth.client, lec.id)

        self.lecture = lec
        self._frame_size = None
        try:
            self.player.open(lec.uri, 0.0, token)
        except RuntimeError as e:
            log.error("cannot play %s: %s", lec.title, e)
            self.player.close()
            return

        if self.authenticated and self.playlist.course_id:
            self._progress = self.sched.call_every(
                config.PROGRESS_REPORT_MS, self._report_progress, "progress-report")

    def _switch(self, where: str) -> None:
        if self.lecture is None:
            nxt = self.playlist.lectures[0] if self.playlist.lectures else None
        elif where == "prev":
            nxt = self.playlist.prev(self.lecture.id)
        else:
            nxt = self.playlist.next(self.lecture.id)
        if nxt is not None:
            self._open_lecture(nxt)

    # ── progress (fire-and-forget) ------------------------------------------
    def _report_progress(self, force_complete: bool = False) -> None:
        if self.lecture is None or (self.player.paused and not force_complete):
            return
        dur = self.player.duration or self.lecture.duration
        if not dur:
            return
        frac = 1.0 if force_complete else min(1.0, self.player.position / dur)
        args = (self.lecture.id, frac * 100.0, frac >= config.COMPLETED_FRACTION)
        threading.Thread(target=self._send_progress, args=args, daemon=True).start()

    def _send_progress(self, video_id: str, percent: float, completed: bool) -> None:
        try:
            self.auth.client.update_progress(video_id, percent, completed)
        except ApiError as e:
            log.debug("progress update failed: %s", e)

    def _stop_progress(self) -> None:
        self.sched.cancel(self._progress)
        self._progress = None

    # ── status (also read by the web remote) -------------------------------
    def status(self) -> dict:
        tracker = self.auth.tracker if self.auth else None
        lec = self.lecture
        return {
            "session":            tracker.phase.value if tracker else "none",
            "session_minutes":    tracker.session_duration_minutes() if tracker else 0,
            "hours_until_max":    round(tracker.hours_until_max_session(), 3) if tracker else None,
            "inactivity_minutes": tracker.minutes_until_inactivity_timeout() if tracker else None,
            "user":               self.auth.user_identifier if self.authenticated else None,
            "course":             self.playlist.title,
            "lecture":            lec.title if lec else None,
            "position":           round(self.player.position, 1) if lec else 0.0,
            "duration":           round(self.player.duration, 1) if lec else 0.0,
            "paused":             self.player.paused,
            "watermark_moves":    self.positioner.moves if self.positioner else 0,
            "blocked_inputs":     self.protection.blocked_count,
        }

    # ── actions ---------------------------------------------------------------
    def _handle(self, act: dict) -> Optional[str]:
        t = act["type"]
        if t == "quit":
            return EXIT_QUIT
        if t == "navigate" and act.get("to") == "login":
            log.info("leaving lecture view: %s", act.get("reason", ""))
            return EXIT_LOGIN
        if t == "logout":
            log.info("logging out: %s", act.get("reason", "requested"))
            if self.auth:
                self.auth.logout()
            return EXIT_LOGIN
        if t == "toggle_pause":
            self.player.toggle_pause()
        elif t == "seek":
            self.player.seek_to(self.player.position + act.get("delta", 0.0))
        elif t == "switch_lecture":
            self._switch(act.get("to", "next"))
        elif t == "toggle_hud":
            self.show_hud ^= True
        elif t == "click":
            if self.root.hit_test(*act["pos"]) is self.container:
                self.player.toggle_pause()
        elif t == "toggle_fullscreen":
            self.fullscreen ^= True
            self.screen = self._set_mode()
            self._layout()
            self.events.dispatch("fullscreen_change")
        return None

    # ── main loop ---------------------------------------------------------
    def run(self) -> str:
        self.events.add_listener("resize", self._layout, capture=True)
        self.protection.enable()
        if self.positioner:
            self.positioner.mount()

        first = self.lecture or (self.playlist.get(self._start) if self._start else None)
        first = first or (self.playlist.lectures[0] if self.playlist.lectures else None)
        if first:
            self._open_lecture(first)

        result = None
        try:
            while result is None:
                self.events.pump()
                self.sched.run_pending()

                while result is None and (act := self.events.poll()):
                    result = self._handle(act)
                if result is not None:
                    break

                if self.player.ended and self.lecture is not None:
                    self._report_progress(force_complete=True)
                    self.player.ended = False
                    self._stop_progress()
                    nxt = self.playlist.next(self.lecture.id)
                    if nxt is not None:
                        self._open_lecture(nxt)

                frame = self.player.decode_frame() if self.lecture else None
                if frame is not None:
                    self._frame_size = (frame.shape[1], frame.shape[0])
                rect = render_frame(self.screen, frame, self.player.sar)
                self.root.set_box(0, 0, *self.screen.get_size())
                self._place_container(rect)

                if self.watermark:
                    self.watermark.draw(self.screen)
                if self.show_hud:
                    s = self.status()
                    draw_hud(self.screen, hud_lines(
                        s["lecture"] or "(no lecture)", s["position"], s["duration"],
                        s["session_minutes"], s["hours_until_max"] or 0.0,
                        s["inactivity_minutes"] or 0.0, s["paused"]))

                pygame.display.flip()
                self.clock.tick(config.FPS)
        finally:
            self.close()
        return result

    def close(self) -> None:
        self._stop_progress()
        if self.positioner:
            self.positioner.unmount()
        self.protection.disable()
        self.protection.clear_token()
        self.events.remove_listener("resize", self._layout)
        self.player.close()
