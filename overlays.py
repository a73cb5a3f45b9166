"""
overlays.py

Element tree for things drawn on top of the video, and the positioner that
keeps the watermark moving.

The tree is DOM-like: a `Node` has a parent, children and a
box (`left`, `top`, `width`, `height`, relative to its parent).  The lecture
window owns the root node; the video container node tracks the
letter-boxed video rect; the watermark node lives inside the container.
"""

from __future__ import annotations

import logging
import random
from typing import Callable, NamedTuple, Optional

import config
from errors import ConfigurationError
from events import EventManager
from scheduler import TimerHandle, TimerScheduler

log = logging.getLogger("lecture_player.overlays")


class OverlayPosition(NamedTuple):
    top:  int
    left: int


# ── element tree ───────────────────────────────────────────────────────────
class Node:
    def __init__(self, name: str, width: int = 0, height: int = 0, *,
                 root: bool = False):
        self.name   = name
        self.width  = width
        self.height = height
        self.top    = 0
        self.left   = 0
        self.parent: Optional[Node] = None
        self.children: list[Node] = []
        self.pointer_events = True
        self.selectable     = True
        self.draggable      = True
        self._root = root

    def __repr__(self) -> str:
        return f"<Node {self.name} {self.width}x{self.height}@{self.left},{self.top}>"

    # tree edits --------------------------------------------------------
    def append_child(self, child: "Node") -> "Node":
        if child.parent is not None:
            child.parent.remove_child(child)
        child.parent = self
        self.children.append(child)
        return child

    def remove_child(self, child: "Node") -> None:
        if child in self.children:
            self.children.remove(child)
            child.parent = None

    def detach(self) -> None:
        if self.parent is not None:
            self.parent.remove_child(self)

    def contains(self, node: "Node") -> bool:
        return any(c is node or c.contains(node) for c in self.children)

    @property
    def is_connected(self) -> bool:
        """True when the chain of parents ends in a root node."""
        n = self
        while n.parent is not None:
            n = n.parent
        return n._root

    # geometry ----------------------------------------------------------
    def set_box(self, left: int, top: int, width: int, height: int) -> None:
        self.left, self.top, self.width, self.height = left, top, width, height

    def absolute_rect(self) -> tuple[int, int, int, int]:
        x, y, n = self.left, self.top, self.parent
        while n is not None:
            x += n.left
            y += n.top
            n = n.parent
        return x, y, self.width, self.height

    def hit_test(self, x: int, y: int) -> Optional["Node"]:
        """Topmost node under (x, y) that takes pointer events."""
        for child in reversed(self.children):
            hit = child.hit_test(x, y)
            if hit is not None:
                return hit
        if not self.pointer_events:
            return None
        ax, ay, w, h = self.absolute_rect()
        if ax <= x < ax + w and ay <= y < ay + h:
            return self
        return None


# ── placement ──────────────────────────────────────────────────────────────
def compute_random_position(container_w: float, container_h: float,
                            overlay_w: float, overlay_h: float,
                            margin: int = 10,
                            rng: Optional[random.Random] = None) -> OverlayPosition:
    """
    Random top/left keeping the overlay *margin* px inside the container.
    A container too small (or not measured yet) gives (margin, margin).
    """
    max_top  = int(container_h - overlay_h - margin)
    max_left = int(container_w - overlay_w - margin)
    if container_w <= 0 or container_h <= 0 or max_top < margin or max_left < margin:
        return OverlayPosition(margin, margin)
    rng = rng or random
    return OverlayPosition(rng.randint(margin, max_top), rng.randint(margin, max_left))


class OverlayPositioner:
    """
    Moves *node* around inside *container* on a jittered cadence.

    Three things run while mounted, each cancelled by `unmount()`:
    the reposition timer, the resize / fullscreen listeners, and a watchdog
    that puts the node back if something detached it.  The watchdog is
    cosmetic upkeep and never raises.
    """

    def __init__(self, node: Node, container: Node,
                 scheduler: TimerScheduler, events: EventManager, *,
                 fallback: Optional[Callable[[], Optional[Node]]] = None,
                 min_ms: float = config.WATERMARK_MIN_MS,
                 max_ms: float = config.WATERMARK_MAX_MS,
                 initial_delay_ms: float = config.WATERMARK_INITIAL_MS,
                 schedule_delay_ms: float = config.WATERMARK_SCHEDULE_MS,
                 watchdog_ms: float = config.WATERMARK_WATCHDOG_MS,
                 margin: int = config.WATERMARK_MARGIN,
                 rng: Optional[random.Random] = None):
        if min_ms <= 0 or min_ms > max_ms:
            raise ConfigurationError(
                f"reposition cadence must satisfy 0 < min <= max, got [{min_ms}, {max_ms}]")
        self.node      = node
        self.container = container
        self.fallback  = fallback
        self.margin    = margin
        self.moves     = 0
        self._sched    = scheduler
        self._events   = events
        self._rng      = rng
        self._min_ms, self._max_ms = min_ms, max_ms
        self._initial_delay_ms  = initial_delay_ms
        self._schedule_delay_ms = schedule_delay_ms
        self._watchdog_ms       = watchdog_ms
        self._handles: dict[str, Optional[TimerHandle]] = {}
        self.mounted = False

    def mount(self) -> None:
        if self.mounted:
            return
        self.node.pointer_events = False
        self.node.selectable     = False
        self.node.draggable      = False
        if self.node.parent is not self.container:
            self.container.append_child(self.node)

        s = self._sched
        self._handles = {
            "initial":  s.call_later(self._initial_delay_ms, self.reposition, "overlay-initial"),
            "schedule": s.call_later(self._schedule_delay_ms, self._start_cadence, "overlay-schedule"),
            "watchdog": s.call_every(self._watchdog_ms, self.ensure_attached, "overlay-watchdog"),
        }
        self._events.add_listener("resize", self._on_resize)
        self._events.add_listener("fullscreen_change", self._on_resize)
        self.mounted = True

    def unmount(self) -> None:
        for h in self._handles.values():
            self._sched.cancel(h)
        self._handles.clear()
        self._events.remove_listener("resize", self._on_resize)
        self._events.remove_listener("fullscreen_change", self._on_resize)
        self.mounted = False

    def reposition(self) -> OverlayPosition:
        parent = self.node.parent or self.container
        pos = compute_random_position(parent.width, parent.height,
                                      self.node.width, self.node.height,
                                      self.margin, self._rng)
        self.node.top, self.node.left = pos
        self.moves += 1
        return pos

    def fit_container(self, left: int, top: int, width: int, height: int) -> bool:
        """Set the container box; a new size repositions at once.  True if resized."""
        resized = (width, height) != (self.container.width, self.container.height)
        self.container.set_box(left, top, width, height)
        if resized and self.mounted:
            self.reposition()
        return resized

    def ensure_attached(self) -> None:
        if self.node.parent is not None and self.node.is_connected:
            return
        target = self.container if self.container.is_connected else None
        if target is None and self.fallback is not None:
            try:
                target = self.fallback()
            except Exception:
                log.debug("overlay fallback container lookup failed", exc_info=True)
                target = None
        if target is None:
            log.debug("overlay %s detached and no container to re-attach to", self.node.name)
            return
        if target.contains(self.node):
            return
        target.append_child(self.node)
        log.debug("overlay %s re-attached to %s", self.node.name, target.name)

    # ── internals ──────────────────────────────────────────────────────
    def _start_cadence(self) -> None:
        self._handles["cadence"] = self._sched.start(
            self._min_ms, self._max_ms, self.reposition, "overlay-cadence")

    def _on_resize(self, _event=None) -> None:
        self.reposition()
