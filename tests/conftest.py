"""Shared fixtures for sitepipe tests.

File handling in tests:
- Use tmp_path for any directory or file creation so tests are isolated and cleaned up.
- Use sitepipe.io_utils read_text/write_text for consistent UTF-8 I/O.
"""

from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest

from sitepipe.config import SiteConfig
from sitepipe.io_utils import write_text
from sitepipe.reload import LiveReloadNotifier
from sitepipe.tasks.model import TaskRegistry


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register opt-in switch for tests that need the real external tools."""
    parser.addoption(
        "--run-e2e",
        action="store_true",
        default=False,
        help="Run end-to-end tests marked with 'e2e'.",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "e2e: needs real external tools (sass, jekyll, ...)")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip e2e tests unless explicitly enabled."""
    if config.getoption("--run-e2e"):
        return

    skip_e2e = pytest.mark.skip(
        reason="E2E tests are skipped by default. Use --run-e2e to include them.",
    )
    for item in items:
        if "e2e" in item.keywords:
            item.add_marker(skip_e2e)


class Recorder:
    """Instrumented actions that log start/end events with timestamps."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, float]] = []
        self._lock = threading.Lock()

    def _log(self, name: str, kind: str) -> None:
        with self._lock:
            self.events.append((name, kind, time.monotonic()))

    def action(self, name: str, *, fail: Exception | None = None, delay: float = 0.0):
        def _action() -> None:
            self._log(name, "start")
            if delay:
                time.sleep(delay)
            if fail is not None:
                self._log(name, "error")
                raise fail
            self._log(name, "end")

        return _action

    def started(self) -> list[str]:
        return [name for name, kind, _ in self.events if kind == "start"]

    def time_of(self, name: str, kind: str) -> float:
        for event_name, event_kind, stamp in self.events:
            if event_name == name and event_kind == kind:
                return stamp
        raise KeyError((name, kind))


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def registry() -> TaskRegistry:
    return TaskRegistry()


@pytest.fixture
def failures() -> list[str]:
    """Collects failure notices; pass ``failures.append`` as ``on_failure``."""
    return []


@pytest.fixture
def site_root(tmp_path: Path) -> Path:
    """A minimal Jekyll-shaped project tree."""
    write_text(tmp_path / "index.html", "<html><body><p>hi</p></body></html>\n")
    write_text(tmp_path / "assets" / "scss" / "main.scss", "body { color: red; }\n")
    write_text(tmp_path / "assets" / "scss" / "base" / "_reset.scss", "* { margin: 0; }\n")
    write_text(tmp_path / "assets" / "js" / "app.js", "console.log('hi');\n")
    write_text(tmp_path / "_posts" / "2014-01-01-hello.md", "# Hello\n")
    (tmp_path / "_site").mkdir()
    return tmp_path


@pytest.fixture
def site_config(site_root: Path) -> SiteConfig:
    return SiteConfig(root=site_root)


@pytest.fixture
def channel_events():
    """Notifier that never starts a server, plus the events it published."""
    notifier = LiveReloadNotifier(Path("."), browser_notices=True)
    events: list[dict] = []
    notifier.channel.subscribe(events.append)
    return notifier, events
