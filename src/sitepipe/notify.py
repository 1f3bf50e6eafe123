"""Failure alerts: terminal bell plus an optional desktop toast, best-effort."""

from __future__ import annotations

import subprocess
import sys

from sitepipe import log


def _run_quiet(*cmd: str) -> None:
    """Fire-and-forget subprocess, ignore failures."""
    try:
        subprocess.Popen(
            cmd,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except (FileNotFoundError, OSError):
        pass


def desktop_notify(message: str, title: str = "sitepipe - Error") -> None:
    """Show a desktop notification toast on the current platform."""
    if sys.platform == "darwin":
        _run_quiet(
            "osascript", "-e",
            f'display notification "{message}" with title "{title}"',
        )
    elif sys.platform.startswith("linux"):
        _run_quiet("notify-send", "-u", "critical", title, message)
    elif sys.platform == "win32":
        _run_quiet(
            "powershell.exe", "-Command",
            "[System.Media.SystemSounds]::Hand.Play()",
        )


def alert_failure(message: str, *, desktop: bool = False) -> None:
    """Beep and log *message*; optionally raise a desktop toast as well."""
    log.bell()
    log.error(message)
    if desktop:
        desktop_notify(message)
