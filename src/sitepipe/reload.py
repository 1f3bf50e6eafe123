"""Live reload: a publish/subscribe channel plus the development server.

Events are plain dicts in the livereload.js protocol (``reload`` and
``alert`` commands). Delivery is at most once: no acknowledgement, no retry,
and events published while nobody is subscribed are dropped.
"""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from typing import Any, Callable

from livereload import Server
from livereload.handlers import LiveReloadHandler
from livereload.watcher import Watcher
from tornado.ioloop import IOLoop
from tornado.websocket import WebSocketClosedError

from sitepipe import log

Event = dict[str, Any]
Subscriber = Callable[[Event], None]


class ReloadChannel:
    """Thread-safe fan-out of reload events to subscribers."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register *callback*; returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event: Event) -> int:
        """Deliver *event* once to each subscriber. Returns the delivery count.

        A subscriber that raises is dropped; delivery to the others goes on.
        """
        with self._lock:
            targets = list(self._subscribers)
        delivered = 0
        for callback in targets:
            try:
                callback(event)
            except Exception as exc:
                log.warn(f"Dropping live-reload subscriber after error: {exc}")
                with self._lock:
                    if callback in self._subscribers:
                        self._subscribers.remove(callback)
                continue
            delivered += 1
        return delivered


class ChannelOnlyWatcher(Watcher):
    """Never reports a file change.

    Without watch tasks the livereload server polls the working directory and
    reloads browsers on its own; reloads must come from the channel only.
    """

    def examine(self) -> tuple[None, None]:
        self._changes.clear()
        return None, None


def channel_only_server() -> Server:
    return Server(watcher=ChannelOnlyWatcher())


def reload_event(path: str | None = None, *, stream: bool = False) -> Event:
    """Build a reload command. ``stream`` lets clients hot-swap CSS/images."""
    return {
        "command": "reload",
        "path": path or "*",
        "liveCSS": stream,
        "liveImg": stream,
    }


def alert_event(message: str) -> Event:
    return {"command": "alert", "message": message}


class LiveReloadNotifier:
    """Serves the built site and pushes reload/status events to browsers.

    ``start()`` runs the ``livereload`` server on its own thread with its own
    event loop; ``notify`` and ``reload`` are fire-and-forget and may be
    called from any thread.
    """

    def __init__(
        self,
        root: Path,
        *,
        host: str = "0.0.0.0",
        port: int = 3000,
        open_browser: bool = False,
        browser_notices: bool = False,
        channel: ReloadChannel | None = None,
        server_factory: Callable[[], Server] = channel_only_server,
    ) -> None:
        self.root = root
        self.host = host
        self.port = port
        self.open_browser = open_browser
        self.browser_notices = browser_notices
        self.channel = channel or ReloadChannel()
        self._server_factory = server_factory
        self._loop: IOLoop | None = None
        self._thread: threading.Thread | None = None
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def url(self) -> str:
        host = "localhost" if self.host in ("", "0.0.0.0") else self.host
        return f"http://{host}:{self.port}"

    # ── server lifecycle ─────────────────────────────────────────

    def start(self) -> None:
        if self._thread is not None:
            return
        ready = threading.Event()

        def serve() -> None:
            asyncio.set_event_loop(asyncio.new_event_loop())
            self._loop = IOLoop.current()
            self._unsubscribe = self.channel.subscribe(self._forward)
            ready.set()
            server = self._server_factory()
            server.serve(
                root=str(self.root),
                host=self.host,
                port=self.port,
                debug=False,
                live_css=True,
                open_url_delay=0.5 if self.open_browser else None,
            )

        self._thread = threading.Thread(target=serve, name="sitepipe-livereload", daemon=True)
        self._thread.start()
        ready.wait(timeout=5)
        log.success(f"Serving {self.root} at {self.url}")

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._loop is not None:
            self._loop.add_callback(self._loop.stop)
            self._loop = None
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None

    def _forward(self, event: Event) -> None:
        loop = self._loop
        if loop is not None:
            loop.add_callback(self._broadcast, event)

    @staticmethod
    def _broadcast(event: Event) -> None:
        # runs on the server's event loop
        for waiter in list(LiveReloadHandler.waiters):
            try:
                waiter.write_message(event)
            except WebSocketClosedError:
                LiveReloadHandler.waiters.discard(waiter)

    # ── notifications ────────────────────────────────────────────

    def notify(self, message: str) -> None:
        """Show a status message; pushed to browsers when notices are on."""
        log.info(message)
        if self.browser_notices:
            self.channel.publish(alert_event(message))

    def reload(self, path: str | None = None, *, stream: bool = False) -> None:
        """Reload connected pages, or hot-swap one asset when ``stream`` is set."""
        log.debug(f"reload path={path or '*'} stream={stream}")
        self.channel.publish(reload_event(path, stream=stream))
