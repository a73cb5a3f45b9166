"""
watermark.py

User-identifying label drawn over the lecture video.  Where it sits is
decided by overlays.OverlayPositioner; this module only renders it.
"""

from __future__ import annotations

import pygame

import config
from overlays import Node

# ── colours ────────────────────────────────────────────────────────────────
TEXT   = (255, 255, 255)
SHADOW = (0, 0, 0)
BG     = (0, 0, 0, 77)          # rgba(0,0,0,0.3)


def watermark_text(user_identifier: str | None, course_name: str | None = None) -> str:
    who = user_identifier or "Unknown User"
    return f"{who} | {course_name}" if course_name else who


class Watermark:
    """Semi-transparent, non-interactive text label bound to a `Node`."""

    def __init__(self, text: str, opacity: float = config.WATERMARK_OPACITY,
                 font_pt: int = config.WATERMARK_FONT_PT):
        pygame.font.init()
        self.node    = Node("video-watermark")
        self.opacity = max(0.0, min(1.0, opacity))
        self._font   = pygame.font.SysFont("arial", font_pt)
        self._pad    = (8, 4)
        self.text    = ""
        self._surf: pygame.Surface | None = None
        self.set_text(text)

    def set_text(self, text: str) -> None:
        if text == self.text and self._surf is not None:
            return
        self.text  = text
        self._surf = self._render(text)
        self.node.width, self.node.height = self._surf.get_size()

    def _render(self, text: str) -> pygame.Surface:
        fg = self._font.render(text, True, TEXT)
        sh = self._font.render(text, True, SHADOW)
        px, py = self._pad
        surf = pygame.Surface((fg.get_width() + 2 * px + 2, fg.get_height() + 2 * py + 2),
                              pygame.SRCALPHA)
        surf.fill(BG)
        surf.blit(sh, (px + 2, py + 2))
        surf.blit(fg, (px, py))
        surf.set_alpha(int(255 * self.opacity))
        return surf

    def draw(self, screen: pygame.Surface) -> None:
        """Blit at the node's place; nothing is drawn while detached."""
        if self._surf is None or not self.node.is_connected:
            return
        x, y, _, _ = self.node.absolute_rect()
        screen.blit(self._surf, (x, y))
