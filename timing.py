# =========  timing.py  =========
"""
Clock helpers.
The scheduler and session tracker run on a monotonic millisecond clock so
that wall-clock jumps (NTP, suspend/resume) never fire or delay an expiry.
"""

import time


def wall_clock() -> float:
    """Seconds since the UNIX epoch (what the HUD shows)."""
    return time.time()


def monotonic_ms() -> float:
    """
    Milliseconds from an arbitrary origin, never going backwards.
    Only differences between two readings are meaningful.
    """
    return time.monotonic() * 1000.0


def fmt_hms(sec: float) -> str:
    sec = int(max(0, sec))
    m, s = divmod(sec, 60)
    h, m = divmod(m, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


def fmt_duration(secs: float) -> str:
    d, rem = divmod(int(secs), 86400)
    h, rem = divmod(rem, 3600)
    m, s   = divmod(rem, 60)
    return f"{d}d {h:02}:{m:02}:{s:02}"
