# =========  video_player.py  =========
"""
Lecture playback through GStreamer (local files or HTTP streams).

    player = VideoPlayer()
    player.open(lecture.uri, start=0.0, token=stream_token)
    frame = player.decode_frame()        # HxWx3 uint8, or None before the first
    player.seek_to(player.position + 10)
    player.close()

Attributes
----------
.source  what is playing now ("" when closed)
.sar     sample-aspect ratio of the current video
.paused  set by toggle_pause()
.ended   end of stream (or a fatal stream error) was reached
"""
import logging
import os
import threading
import urllib.parse

import gi
import numpy as np
gi.require_version("Gst", "1.0")
from gi.repository import Gst, GLib

log = logging.getLogger("lecture_player.player")

OPEN_TIMEOUT_S = 15            # preroll wait; HTTP sources can be slow


def stream_uri(source: str, token: str | None = None) -> str:
    """URI for *source*; HTTP(S) sources carry the stream token as ?token=."""
    parsed = urllib.parse.urlsplit(source)
    if parsed.scheme in ("http", "https"):
        if not token:
            return source
        q = urllib.parse.parse_qsl(parsed.query, keep_blank_values=True)
        q = [(k, v) for k, v in q if k != "token"] + [("token", token)]
        return urllib.parse.urlunsplit(parsed._replace(query=urllib.parse.urlencode(q)))
    if parsed.scheme in ("file", "rtsp"):
        return source
    return Gst.filename_to_uri(os.path.abspath(source))


class VideoPlayer:
    def __init__(self):
        Gst.init(None)
        self.pipeline = Gst.ElementFactory.make("playbin", "lecture")
        self._sink = Gst.ElementFactory.make("appsink", "frames")
        for prop, value in (("emit-signals", True), ("max-buffers", 1),
                            ("drop", True), ("sync", True),
                            ("caps", Gst.Caps.from_string("video/x-raw,format=RGB"))):
            self._sink.set_property(prop, value)
        self._sink.connect("new-sample", self._on_sample)
        self.pipeline.set_property("video-sink", self._sink)
        self.pipeline.set_property("audio-sink", Gst.ElementFactory.make("autoaudiosink", "audio"))

        # newest raw frame from the streaming thread, converted on demand
        self._lock    = threading.Lock()
        self._pending: bytes | None = None
        self._frame   = None
        self._size    = (0, 0)

        self.source = ""
        self.sar    = 1.0
        self.paused = False
        self.ended  = False

        self._loop: GLib.MainLoop | None = None
        self._loop_thread: threading.Thread | None = None
        self._bus_handler = None

    # ── open / close ───────────────────────────────────────────────────
    def open(self, source: str, start: float = 0.0, token: str | None = None):
        """Preroll *source*, seek to *start* and play.  RuntimeError if it won't open."""
        self.close()
        self.source = source
        self.ended = self.paused = False
        self.pipeline.set_property("uri", stream_uri(source, token))
        self.pipeline.set_state(Gst.State.PAUSED)

        msg = self.pipeline.get_bus().timed_pop_filtered(
            OPEN_TIMEOUT_S * Gst.SECOND,
            Gst.MessageType.ASYNC_DONE | Gst.MessageType.ERROR)
        if msg is None:
            self.close()
            raise RuntimeError(f"timed out opening {source}")
        if msg.type == Gst.MessageType.ERROR:
            self.close()
            raise RuntimeError(msg.parse_error()[0].message)

        self._read_caps()
        if start > 0:
            self.seek_to(start)
        self.pipeline.set_state(Gst.State.PLAYING)
        self._watch_bus()
        log.info("playing %s from %.1fs", source, start)

    def close(self):
        self._unwatch_bus()
        self.pipeline.set_state(Gst.State.NULL)
        with self._lock:
            self._pending = None
        self._frame = None
        self.source = ""

    stop = close

    # ── frames ─────────────────────────────────────────────────────────
    def decode_frame(self):
        with self._lock:
            raw, self._pending = self._pending, None
        if raw is not None:
            self._frame = self._to_array(raw)
        return self._frame

    # ── transport ──────────────────────────────────────────────────────
    @property
    def position(self) -> float:
        ok, ns = self.pipeline.query_position(Gst.Format.TIME)
        return ns / Gst.SECOND if ok else 0.0

    @property
    def duration(self) -> float:
        ok, ns = self.pipeline.query_duration(Gst.Format.TIME)
        return ns / Gst.SECOND if ok and ns > 0 else 0.0

    def seek_to(self, sec: float):
        dur = self.duration
        sec = max(0.0, min(sec, dur) if dur else sec)
        self.ended = False
        self.pipeline.seek_simple(Gst.Format.TIME,
                                  Gst.SeekFlags.FLUSH | Gst.SeekFlags.KEY_UNIT,
                                  int(sec * Gst.SECOND))

    def toggle_pause(self):
        self.paused = not self.paused
        self.pipeline.set_state(Gst.State.PAUSED if self.paused else Gst.State.PLAYING)

    def set_volume(self, vol: float):
        self.pipeline.set_property("volume", min(1.0, max(0.0, vol)))

    # ── internals ──────────────────────────────────────────────────────
    def _read_caps(self):
        s = self._sink.get_static_pad("sink").get_current_caps().get_structure(0)
        self._size = (s.get_int("width")[1], s.get_int("height")[1])
        self.sar = 1.0
        if s.has_field("pixel-aspect-ratio"):
            ok, num, den = s.get_fraction("pixel-aspect-ratio")
            if ok and den:
                self.sar = num / den

    def _to_array(self, raw: bytes):
        """RGB rows, possibly padded to a 4-byte stride → HxWx3 uint8."""
        w, h = self._size
        stride = len(raw) // h
        return np.frombuffer(raw, np.uint8).reshape(h, stride)[:, : w * 3].reshape(h, w, 3).copy()

    def _on_sample(self, sink):
        sample = sink.emit("pull-sample")
        if sample is None:
            return Gst.FlowReturn.OK
        buf = sample.get_buffer()
        ok, info = buf.map(Gst.MapFlags.READ)
        if ok:
            with self._lock:
                self._pending = bytes(info.data)
            buf.unmap(info)
        return Gst.FlowReturn.OK

    def _watch_bus(self):
        bus = self.pipeline.get_bus()
        bus.add_signal_watch()
        self._bus_handler = bus.connect("message", self._on_bus_msg)
        self._loop = GLib.MainLoop()
        self._loop_thread = threading.Thread(target=self._loop.run, name="gst-bus", daemon=True)
        self._loop_thread.start()

    def _unwatch_bus(self):
        if self._loop is not None:
            self._loop.quit()
            if threading.current_thread() is not self._loop_thread:
                self._loop_thread.join(timeout=0.5)
            self._loop = self._loop_thread = None
        if self._bus_handler is not None:
            bus = self.pipeline.get_bus()
            bus.disconnect(self._bus_handler)
            bus.remove_signal_watch()
            self._bus_handler = None

    def _on_bus_msg(self, _bus, msg):
        if msg.type == Gst.MessageType.EOS:
            self.ended = True
        elif msg.type == Gst.MessageType.ERROR:
            err, dbg = msg.parse_error()
            log.error("GStreamer error on %s: %s (%s)", self.source, err.message, dbg)
            self.ended = True
        return True
