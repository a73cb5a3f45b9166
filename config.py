# config.py
"""
Configuration settings for the lecture player.
"""
FPS   = 30

# ── Window ─────────────────────────────────────────────────────────────────

FULLSCREEN    = False
WINDOWED_SIZE = (1280, 720)
WINDOW_TITLE  = "Lecture Player"

# Status panel (clock, lecture, session timers) shown at start-up
SHOW_HUD = False

# ── Session lifecycle ──────────────────────────────────────────────────────

# Reserved: accepted and merged but never consulted by an expiry check
SESSION_TIMEOUT_MINUTES    = 30
INACTIVITY_TIMEOUT_MINUTES = 15
MAX_SESSION_DURATION_HOURS = 8

# How often the max-duration poller looks at the clock
MAX_DURATION_CHECK_MS = 60_000

# ── Watermark ──────────────────────────────────────────────────────────────

WATERMARK_MIN_MS          = 5_000   # jittered reposition cadence
WATERMARK_MAX_MS          = 10_000
WATERMARK_INITIAL_MS      = 100     # first placement after mount
WATERMARK_SCHEDULE_MS     = 1_000   # cadence starts after mount
WATERMARK_WATCHDOG_MS     = 2_000   # re-attach check
WATERMARK_MARGIN          = 10
WATERMARK_OPACITY         = 0.5
WATERMARK_FONT_PT         = 14

# ── Video protection ───────────────────────────────────────────────────────

# (lower-case key name, ctrl, shift)
BLOCKED_SHORTCUTS = (
    ("f12",          False, False),   # dev tools
    ("i",            True,  True),
    ("j",            True,  True),    # console
    ("c",            True,  True),    # inspect element
    ("k",            True,  True),
    ("u",            True,  False),   # view source
    ("s",            True,  False),   # save
    ("p",            True,  False),   # print
    ("print screen", False, False),
)
CONTEXT_MENU_BUTTON = 3

# ── LMS API ────────────────────────────────────────────────────────────────

API_BASE_URL = "http://localhost:5000/api"
API_TIMEOUT  = 10.0

# Watch progress is reported this often while playing
PROGRESS_REPORT_MS = 10_000

# Lecture counts as completed past this fraction
COMPLETED_FRACTION = 0.9

SEEK_STEP_SEC = 10.0

# ── Local lectures ─────────────────────────────────────────────────────────

# Used when no course id is given: every video file in here is a lecture
LECTURES_PATH = "lectures"

# ── Web remote & diagnostics ───────────────────────────────────────────────

WEB_PORT              = 8080
DIAG_REFRESH_INTERVAL = 1.0

# ── Logging ────────────────────────────────────────────────────────────────

LOG_FILE  = "runtime.log"
LOG_LEVEL = "INFO"
