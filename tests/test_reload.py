"""Tests for sitepipe.reload — the reload channel and notifier."""

from __future__ import annotations

import asyncio
import json
import socket
from pathlib import Path
from unittest.mock import MagicMock, patch

from tornado.iostream import StreamClosedError
from tornado.websocket import WebSocketClosedError, websocket_connect

from sitepipe.io_utils import write_text
from sitepipe.reload import (
    ChannelOnlyWatcher,
    LiveReloadNotifier,
    ReloadChannel,
    alert_event,
    channel_only_server,
    reload_event,
)


class TestEvents:
    """Tests for the livereload.js command payloads."""

    def test_full_reload(self):
        assert reload_event() == {
            "command": "reload",
            "path": "*",
            "liveCSS": False,
            "liveImg": False,
        }

    def test_stream_reload(self):
        event = reload_event("/assets/css/main.css", stream=True)
        assert event["path"] == "/assets/css/main.css"
        assert event["liveCSS"] is True
        assert event["liveImg"] is True

    def test_alert(self):
        assert alert_event("Running: sass") == {"command": "alert", "message": "Running: sass"}


class TestReloadChannel:
    """Tests for at-most-once fan-out."""

    def test_publish_to_all(self):
        channel = ReloadChannel()
        a, b = [], []
        channel.subscribe(a.append)
        channel.subscribe(b.append)
        assert channel.publish({"command": "reload"}) == 2
        assert a == b == [{"command": "reload"}]

    def test_no_subscribers_drops_event(self):
        """Events published while nobody listens are not replayed later."""
        channel = ReloadChannel()
        assert channel.publish({"command": "reload"}) == 0
        late = []
        channel.subscribe(late.append)
        assert late == []

    def test_unsubscribe(self):
        channel = ReloadChannel()
        seen = []
        unsubscribe = channel.subscribe(seen.append)
        unsubscribe()
        unsubscribe()
        assert channel.subscriber_count() == 0
        channel.publish({"command": "reload"})
        assert seen == []

    def test_failing_subscriber_dropped(self):
        """A subscriber that raises is removed; others still get the event."""
        channel = ReloadChannel()
        broken = MagicMock(side_effect=ConnectionError("gone"))
        seen = []
        channel.subscribe(broken)
        channel.subscribe(seen.append)

        assert channel.publish({"n": 1}) == 1
        assert channel.publish({"n": 2}) == 1
        assert broken.call_count == 1
        assert seen == [{"n": 1}, {"n": 2}]
        assert channel.subscriber_count() == 1


class TestNotifier:
    """Tests for LiveReloadNotifier without a running server."""

    def test_notify_publishes_alert_when_enabled(self, channel_events):
        notifier, events = channel_events
        notifier.notify("Running: jekyll build")
        assert events == [alert_event("Running: jekyll build")]

    def test_notify_log_only_by_default(self):
        notifier = LiveReloadNotifier(Path("."))
        events = []
        notifier.channel.subscribe(events.append)
        notifier.notify("Running: sass")
        assert events == []

    def test_reload_publishes(self, channel_events):
        notifier, events = channel_events
        notifier.reload()
        notifier.reload("/assets/css/main.css", stream=True)
        assert events == [reload_event(), reload_event("/assets/css/main.css", stream=True)]

    def test_shared_channel(self):
        channel = ReloadChannel()
        notifier = LiveReloadNotifier(Path("."), channel=channel)
        assert notifier.channel is channel

    def test_url(self):
        assert LiveReloadNotifier(Path("."), port=4000).url == "http://localhost:4000"
        assert LiveReloadNotifier(Path("."), host="127.0.0.1").url == "http://127.0.0.1:3000"

    def test_not_running_until_started(self):
        notifier = LiveReloadNotifier(Path("."))
        assert not notifier.running
        notifier.stop()

    def test_start_serves_site(self, tmp_path):
        """start() hands the site root and options to the livereload server."""
        server = MagicMock()
        notifier = LiveReloadNotifier(tmp_path, port=4567, server_factory=lambda: server)
        notifier.start()
        notifier._thread.join(timeout=5)

        server.serve.assert_called_once_with(
            root=str(tmp_path),
            host="0.0.0.0",
            port=4567,
            debug=False,
            live_css=True,
            open_url_delay=None,
        )
        assert notifier.channel.subscriber_count() == 1
        notifier.stop()
        assert notifier.channel.subscriber_count() == 0


class TestBroadcast:
    """Tests for pushing events to connected browsers."""

    def test_writes_to_waiters(self):
        waiter = MagicMock()
        with patch("sitepipe.reload.LiveReloadHandler") as handler:
            handler.waiters = {waiter}
            LiveReloadNotifier._broadcast(reload_event())
        waiter.write_message.assert_called_once_with(reload_event())

    def test_closed_waiter_discarded(self):
        closed = MagicMock()
        closed.write_message.side_effect = WebSocketClosedError()
        with patch("sitepipe.reload.LiveReloadHandler") as handler:
            handler.waiters = {closed}
            LiveReloadNotifier._broadcast(reload_event())
            assert handler.waiters == set()


# ═══════════════════════════════════════════════════════════════════
#  Real livereload server
# ═══════════════════════════════════════════════════════════════════


def _free_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def _connect_browser(port: int):
    """Open the livereload websocket and complete the livereload.js handshake."""
    url = f"ws://127.0.0.1:{port}/livereload"
    for _ in range(50):
        try:
            conn = await websocket_connect(url)
            break
        except (OSError, StreamClosedError):
            await asyncio.sleep(0.1)
    else:
        conn = await websocket_connect(url)

    await conn.write_message(json.dumps({
        "command": "hello",
        "protocols": ["http://livereload.com/protocols/official-7"],
    }))
    hello = json.loads(await asyncio.wait_for(conn.read_message(), 5))
    assert hello["command"] == "hello"
    await conn.write_message(json.dumps({"command": "info", "url": f"http://127.0.0.1:{port}/"}))
    # let the server register the page before anything changes
    await asyncio.sleep(0.3)
    return conn


async def _edit_then_reload(port: int, site_root: Path, notifier: LiveReloadNotifier) -> list[dict]:
    conn = await _connect_browser(port)
    received: list[dict] = []
    pending = asyncio.ensure_future(conn.read_message())

    write_text(site_root / "assets" / "scss" / "main.scss", "body { color: blue; }\n")
    done, _ = await asyncio.wait({pending}, timeout=2.5)
    if done:
        received.append(json.loads(pending.result()))
        conn.close()
        return received

    notifier.reload()
    received.append(json.loads(await asyncio.wait_for(pending, 5)))
    conn.close()
    return received


class TestLiveServer:
    """Tests against a running livereload server and a websocket client."""

    def test_watcher_reports_nothing(self, site_root):
        watcher = ChannelOnlyWatcher()
        watcher.watch(str(site_root))
        write_text(site_root / "index.html", "<p>changed</p>")
        assert watcher.examine() == (None, None)

    def test_default_server_uses_quiet_watcher(self):
        assert isinstance(channel_only_server().watcher, ChannelOnlyWatcher)

    def test_source_edit_reaches_browser_only_through_channel(self, site_root, monkeypatch):
        """Editing a source file pushes nothing until a reload is published."""
        monkeypatch.chdir(site_root)
        port = _free_port()
        notifier = LiveReloadNotifier(site_root / "_site", host="127.0.0.1", port=port)
        notifier.start()
        try:
            received = asyncio.run(_edit_then_reload(port, site_root, notifier))
        finally:
            notifier.stop()

        assert received == [reload_event()]
