"""
Web remote tests: query parsing and the HTTP routes against a fake viewer.
"""

import threading

import httpx
import pytest

import web_remote
from events import EventManager


class TestActionFor:

    @pytest.mark.parametrize("cmd,expected", [
        ("pause", {"type": "toggle_pause"}),
        ("next", {"type": "switch_lecture", "to": "next"}),
        ("prev", {"type": "switch_lecture", "to": "prev"}),
        ("hud", {"type": "toggle_hud"}),
        ("logout", {"type": "logout"}),
        ("quit", {"type": "quit"}),
    ])
    def test_simple(self, cmd, expected):
        assert web_remote.action_for({"cmd": [cmd]}) == expected

    def test_seek(self):
        assert web_remote.action_for({"cmd": ["seek"], "s": ["-10"]}) == {"type": "seek", "delta": -10.0}

    @pytest.mark.parametrize("qs", [{}, {"cmd": ["dance"]}, {"cmd": ["seek"]}, {"cmd": ["seek"], "s": ["x"]}])
    def test_invalid(self, qs):
        assert web_remote.action_for(qs) is None

    def test_returns_copies(self):
        act = web_remote.action_for({"cmd": ["pause"]})
        act["type"] = "changed"
        assert web_remote.action_for({"cmd": ["pause"]}) == {"type": "toggle_pause"}


class FakeViewer:
    def __init__(self):
        self.events = EventManager()

    def status(self):
        return {"user": "student@example.com", "session_minutes": 3}


@pytest.fixture
def server():
    viewer = FakeViewer()
    httpd = web_remote.ReusableTCPServer(("127.0.0.1", 0), web_remote.RemoteHandler)
    httpd.viewer = viewer
    t = threading.Thread(target=httpd.serve_forever, daemon=True)
    t.start()
    base = f"http://127.0.0.1:{httpd.server_address[1]}"
    with httpx.Client(base_url=base, timeout=5.0) as client:
        yield client, viewer
    httpd.shutdown()
    httpd.server_close()


class TestRoutes:

    def test_index(self, server):
        client, _ = server
        r = client.get("/")
        assert r.status_code == 200
        assert "Lecture Player" in r.text

    def test_session(self, server):
        client, _ = server
        assert client.get("/session").json()["session_minutes"] == 3

    def test_diag(self, server):
        client, _ = server
        data = client.get("/diag").json()
        assert "cpu_percent" in data
        assert isinstance(data["proc_rss_mb"], int)

    def test_action_posts_to_queue(self, server):
        client, viewer = server
        assert client.get("/action", params={"cmd": "seek", "s": "10"}).status_code == 204
        assert viewer.events.poll() == {"type": "seek", "delta": 10.0}

    def test_bad_action(self, server):
        client, viewer = server
        assert client.get("/action", params={"cmd": "dance"}).status_code == 400
        assert viewer.events.poll() is None

    def test_unknown_path(self, server):
        client, _ = server
        assert client.get("/nope").status_code == 404
