#!/usr/bin/env python3
"""
web_remote.py  –  browser remote and health page for the lecture window

Endpoints
---------
/               → remote page (buttons + live session / health tables)
/session        → JSON: session phase and timers, lecture, position
/diag, /data    → JSON: host and process health (psutil)
/action?cmd=…   → queue a command: pause, next, prev, seek&s=±N, hud, logout, quit
/log            → runtime log, if one is being written
"""

from __future__ import annotations
import http.server
import json
import logging
import os
import platform
import socketserver
import threading
import time
import urllib.parse
from typing import TYPE_CHECKING, Any

import psutil

import config
from timing import fmt_duration

if TYPE_CHECKING:                       # app imports us indirectly via main
    from app import LectureViewer

log = logging.getLogger("lecture_player.web")

# ── health snapshot, refreshed at most every DIAG_REFRESH_INTERVAL s ──────
_refresh_every = getattr(config, "DIAG_REFRESH_INTERVAL", 1.0)
_refresh_lock  = threading.Lock()
_refreshed_at  = 0.0

_started   = time.monotonic()
_booted    = psutil.boot_time()
_this_proc = psutil.Process()

monitor_data: dict[str, Any] = {
    "cpu_percent":     0.0,
    "proc_cpu_percent": 0.0,
    "proc_rss_mb":     0,
    "proc_threads":    0,
    "mem_percent":     0.0,
    "player_uptime":   fmt_duration(0),
    "host_uptime":     fmt_duration(0),
    "python":          platform.python_version(),
    "last_http_crash": "",
}


def _maybe_update_diagnostics() -> None:
    global _refreshed_at
    with _refresh_lock:
        now = time.monotonic()
        if now - _refreshed_at < _refresh_every:
            return
        _refreshed_at = now
        _update_diagnostics()


def _update_diagnostics() -> None:
    with _this_proc.oneshot():
        monitor_data["proc_cpu_percent"] = _this_proc.cpu_percent()
        monitor_data["proc_rss_mb"]      = _this_proc.memory_info().rss // 1024**2
        monitor_data["proc_threads"]     = _this_proc.num_threads()
    monitor_data["cpu_percent"]   = psutil.cpu_percent()
    monitor_data["mem_percent"]   = psutil.virtual_memory().percent
    monitor_data["player_uptime"] = fmt_duration(time.monotonic() - _started)
    monitor_data["host_uptime"]   = fmt_duration(time.time() - _booted)


# ── threaded server that can rebind right after a crash ───────────────────
class ReusableTCPServer(socketserver.ThreadingMixIn, http.server.HTTPServer):
    daemon_threads      = True
    allow_reuse_address = True


# ── action table ───────────────────────────────────────────────────────────
_SIMPLE_ACTIONS = {
    "pause":  {"type": "toggle_pause"},
    "next":   {"type": "switch_lecture", "to": "next"},
    "prev":   {"type": "switch_lecture", "to": "prev"},
    "hud":    {"type": "toggle_hud"},
    "logout": {"type": "logout"},
    "quit":   {"type": "quit"},
}


def action_for(qs: dict[str, list[str]]) -> dict | None:
    """Map a parsed query string to an action dict; None if invalid."""
    cmd = qs.get("cmd", [""])[0]
    if cmd in _SIMPLE_ACTIONS:
        return dict(_SIMPLE_ACTIONS[cmd])
    if cmd == "seek":
        try:
            delta = float(qs.get("s", [""])[0])
        except ValueError:
            return None
        return {"type": "seek", "delta": delta}
    return None


# ── request handler ────────────────────────────────────────────────────────
class RemoteHandler(http.server.BaseHTTPRequestHandler):
    """GET-only; `self.server.viewer` is the running LectureViewer."""

    def log_message(self, fmt, *args):
        log.debug("http %s", fmt % args)

    def do_GET(self):
        url = urllib.parse.urlparse(self.path)
        route = self.ROUTES.get(url.path)
        if route is None:
            return self.send_error(404, "Not found")
        return route(self, url.query)

    def _reply(self, code: int, body: bytes = b"", ctype: str | None = None):
        self.send_response(code)
        if ctype:
            self.send_header("Content-Type", ctype)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if body:
            self.wfile.write(body)

    # ── routes ─────────────────────────────────────────────────────────
    def _index(self, _query):
        self._reply(200, HTML_PAGE.encode("utf-8"), "text/html; charset=utf-8")

    def _session(self, _query):
        state = self.server.viewer.status()        # type: ignore[attr-defined]
        self._reply(200, json.dumps(state).encode("utf-8"), "application/json")

    def _diag(self, _query):
        _maybe_update_diagnostics()
        self._reply(200, json.dumps(monitor_data).encode("utf-8"), "application/json")

    def _log(self, _query):
        path = getattr(config, "LOG_FILE", None)
        if not path or not os.path.isfile(path):
            return self.send_error(404, "Log file not found")
        with open(path, "rb") as fh:
            self._reply(200, fh.read(), "text/plain; charset=utf-8")

    def _action(self, query):
        act = action_for(urllib.parse.parse_qs(query))
        if act is None:
            return self.send_error(400, "Unknown cmd")
        self.server.viewer.events.post(act)        # type: ignore[attr-defined]
        self._reply(204)

    ROUTES = {
        "/":        _index,
        "/session": _session,
        "/diag":    _diag,
        "/data":    _diag,
        "/log":     _log,
        "/action":  _action,
    }


# ── remote page ────────────────────────────────────────────────────────────
HTML_PAGE = """
<!doctype html><html><head><meta charset="utf-8">
<title>Lecture Player Remote</title>
<style>
 body{background:#15171a;color:#ddd;font-family:sans-serif;margin:1.5em;}
 button{margin:3px;padding:8px 14px;background:#262a30;color:#ddd;border:1px solid #555;}
 table{border-collapse:collapse;margin-top:.5em;font-family:monospace;}
 td{padding:2px 12px 2px 0;}
</style></head><body>
<h2>Lecture Player</h2>
<div id="controls"></div>
<p><a href="/log" style="color:#8ab">runtime log</a></p>
<h3>Session</h3><table id="session"></table>
<h3>Health</h3><table id="diag"></table>
<script>
 const CONTROLS = [
   ['Previous','prev'], ['Play / Pause','pause'], ['Next','next'],
   ['-10 s','seek&s=-10'], ['+10 s','seek&s=10'], ['HUD','hud'],
   ['Log out','logout'], ['Quit','quit'],
 ];
 for (const [label, cmd] of CONTROLS){
   const b = document.createElement('button');
   b.textContent = label;
   b.onclick = () => fetch('/action?cmd=' + cmd);
   document.getElementById('controls').appendChild(b);
 }
 function fill(id, obj){
   document.getElementById(id).innerHTML = Object.entries(obj)
     .map(([k, v]) => `<tr><td>${k}</td><td>${v ?? '-'}</td></tr>`).join('');
 }
 async function poll(){
   try {
     fill('session', await (await fetch('/session')).json());
     fill('diag', await (await fetch('/diag')).json());
   } catch (e) { /* player restarting */ }
 }
 setInterval(poll, 1000);
 poll();
</script>
</body></html>
"""


# ── server thread; rebinds after a crash ──────────────────────────────────
def start(viewer: "LectureViewer", port: int | None = None) -> threading.Thread:
    port = port or getattr(config, "WEB_PORT", 8080)

    def _serve():
        while True:
            try:
                with ReusableTCPServer(("", port), RemoteHandler) as httpd:
                    httpd.viewer = viewer
                    httpd.serve_forever()
            except Exception as e:
                log.exception("web remote stopped; rebinding in 1 s")
                monitor_data["last_http_crash"] = f"{type(e).__name__}: {e}"
                time.sleep(1)

    t = threading.Thread(target=_serve, name="web-remote", daemon=True)
    t.start()
    log.info("web remote on port %d", port)
    return t
