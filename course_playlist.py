"""
course_playlist.py

Ordered lectures of one course, with next/prev navigation.

Two sources:
* `CoursePlaylist.from_api()` – the course's videos from the LMS API.
* `CoursePlaylist.from_directory()` – every video file in a local folder,
  natural-sorted.  Durations are probed once with PyAV and cached in a
  ``playlist.json`` next to the files, so later start-ups skip probing.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from typing import List, Optional

import av  # PyAV – thin FFmpeg bindings

import config

log = logging.getLogger("lecture_player.playlist")

# ── Regex helpers ───────────────────────────────────────────────────────────
_VIDEO_RE = re.compile(r"\.(?:mkv|mp4|mov|avi|webm|flv)$", re.IGNORECASE)

CACHE_NAME = "playlist.json"


def _nat_key(s: str) -> list:
    return [int(t) if t.isdigit() else t.lower()
            for t in re.split(r"(\d+)", s)]


# ── Duration probe ──────────────────────────────────────────────────────────
def probe_duration(fp: str) -> float:
    """Return clip length in seconds. Zero on error."""
    try:
        with av.open(fp) as container:
            stream = next(
                (s for s in container.streams if s.type == "video"),
                container.streams[0],
            )
            if stream.duration and stream.time_base:
                return max(0.0, float(stream.duration * stream.time_base))
            if container.duration:
                return max(0.0, container.duration / av.time_base)
    except Exception:
        log.debug("could not probe %s", fp, exc_info=True)
    return 0.0


# ── Data structures ─────────────────────────────────────────────────────────
@dataclass
class Lecture:
    id: str
    title: str
    uri: str
    duration: float = 0.0          # seconds, 0 when unknown
    is_preview: bool = False
    order: int = 0

    @classmethod
    def from_api(cls, data: dict, order: int = 0) -> "Lecture":
        return cls(
            id=str(data.get("_id") or data.get("id")),
            title=data.get("title") or "Untitled lecture",
            uri=data.get("videoUrl") or data.get("url") or "",
            duration=float(data.get("duration") or 0.0),
            is_preview=bool(data.get("isPreview", False)),
            order=int(data.get("order", order)),
        )


@dataclass
class CoursePlaylist:
    course_id: Optional[str] = None
    title: str = ""
    lectures: List[Lecture] = field(default_factory=list)

    # ---------------------------------------------------------------- sources
    @classmethod
    def from_api(cls, client, course_id: str) -> "CoursePlaylist":
        course = client.get_course(course_id) or {}
        videos = client.get_course_videos(course_id)
        lectures = [Lecture.from_api(v, i) for i, v in enumerate(videos)]
        lectures.sort(key=lambda lec: lec.order)
        return cls(course_id=course_id, title=course.get("title", ""), lectures=lectures)

    @classmethod
    def from_directory(cls, dir_path: str | None = None) -> "CoursePlaylist":
        dir_path = os.path.abspath(dir_path or config.LECTURES_PATH)
        title = os.path.basename(dir_path)
        if not os.path.isdir(dir_path):
            return cls(title=title)

        cache = cls._read_cache(dir_path)
        names = sorted((n for n in os.listdir(dir_path)
                        if _VIDEO_RE.search(n) and os.path.isfile(os.path.join(dir_path, n))),
                       key=_nat_key)

        lectures, dirty = [], False
        for i, name in enumerate(names):
            dur = cache.get(name)
            if dur is None:
                dur = probe_duration(os.path.join(dir_path, name))
                dirty = True
            lectures.append(Lecture(
                id=name,
                title=os.path.splitext(name)[0],
                uri=os.path.join(dir_path, name),
                duration=dur,
                is_preview=True,           # local files need no stream token
                order=i,
            ))

        if dirty:
            cls._write_cache(dir_path, {lec.id: lec.duration for lec in lectures})
        return cls(title=title, lectures=lectures)

    # ------------------------------------------------------------------ cache
    @staticmethod
    def _read_cache(dir_path: str) -> dict:
        path = os.path.join(dir_path, CACHE_NAME)
        if not os.path.isfile(path):
            return {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                return {k: float(v) for k, v in json.load(f)["durations"].items()}
        except (OSError, ValueError, KeyError, TypeError, AttributeError):
            log.warning("ignoring unreadable %s", path)
            return {}

    @staticmethod
    def _write_cache(dir_path: str, durations: dict) -> None:
        try:
            with open(os.path.join(dir_path, CACHE_NAME), "w", encoding="utf-8") as f:
                json.dump({"durations": durations}, f, indent=2)
        except OSError:
            log.warning("could not write playlist cache in %s", dir_path)

    # ------------------------------------------------------------- navigation
    def __len__(self) -> int:
        return len(self.lectures)

    def get(self, lecture_id: str) -> Optional[Lecture]:
        return next((lec for lec in self.lectures if lec.id == lecture_id), None)

    def index_of(self, lecture_id: str) -> int:
        for i, lec in enumerate(self.lectures):
            if lec.id == lecture_id:
                return i
        return -1

    def next(self, cur: str) -> Optional[Lecture]:
        """Lecture after *cur*, None at the end of the course."""
        i = self.index_of(cur)
        if not self.lectures:
            return None
        if i < 0:
            return self.lectures[0]
        return self.lectures[i + 1] if i + 1 < len(self.lectures) else None

    def prev(self, cur: str) -> Optional[Lecture]:
        i = self.index_of(cur)
        if not self.lectures:
            return None
        if i < 0:
            return self.lectures[-1]
        return self.lectures[i - 1] if i > 0 else None
