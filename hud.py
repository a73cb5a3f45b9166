"""
hud.py

Status panel for the lecture window: clock, lecture, playback position and
the session timers.
"""

from __future__ import annotations

import time

import pygame

from timing import fmt_hms

# ── colours ────────────────────────────────────────────────────────────────
WHITE = (255, 255, 255)
GREEN = (0, 255, 0)
YEL   = (200, 200, 50)
BG    = (0, 0, 0, 180)

pygame.font.init()


def _compute_font_sizes(h: int) -> tuple[int, int]:
    return max(12, h // 60), max(16, h // 45)


def hud_lines(lecture_title: str, position: float, duration: float,
              session_minutes: int, hours_left: float,
              inactivity_limit: float, paused: bool = False) -> list[str]:
    state = "PAUSED" if paused else "playing"
    return [
        f"{lecture_title}",
        f"{fmt_hms(position)} / {fmt_hms(duration)}  {state}",
        f"Session   {session_minutes} min",
        f"Max left  {hours_left:.2f} h",
        f"Idle limit {inactivity_limit:g} min",
    ]


def _panel(font: pygame.font.Font, rows: list[tuple[str, tuple]], pad: int) -> pygame.Surface:
    """Translucent box with one rendered line per (text, colour) row."""
    line_h = font.get_linesize() + 2
    width  = max(font.size(text)[0] for text, _ in rows)
    box = pygame.Surface((width + 2 * pad, len(rows) * line_h + pad), pygame.SRCALPHA)
    box.fill(BG)
    for i, (text, colour) in enumerate(rows):
        box.blit(font.render(text, True, colour), (pad, pad // 2 + i * line_h))
    return box


def draw_hud(surface: pygame.Surface, lines: list[str]) -> None:
    """Clock top-left, status lines top-right (first line highlighted)."""
    tiny_pt, small_pt = _compute_font_sizes(surface.get_height())
    clock_font = pygame.font.SysFont("monospace", small_pt)
    body_font  = pygame.font.SysFont("monospace", tiny_pt)

    surface.blit(_panel(clock_font, [(time.strftime("%H:%M:%S"), YEL)], small_pt // 3), (10, 10))
    if not lines:
        return
    rows = [(t, GREEN if i == 0 else WHITE) for i, t in enumerate(lines)]
    box = _panel(body_font, rows, 10)
    surface.blit(box, (surface.get_width() - box.get_width() - 10, 10))
