"""Tests for sitepipe.notify — failure alerts."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from sitepipe import notify


class TestAlertFailure:
    def test_beeps_and_logs(self):
        with patch("sitepipe.notify.log") as log, \
                patch("sitepipe.notify.desktop_notify") as toast:
            notify.alert_failure("'sass' failed: boom")
        log.bell.assert_called_once()
        log.error.assert_called_once_with("'sass' failed: boom")
        toast.assert_not_called()

    def test_desktop_toast_opt_in(self):
        with patch("sitepipe.notify.log"), \
                patch("sitepipe.notify.desktop_notify") as toast:
            notify.alert_failure("boom", desktop=True)
        toast.assert_called_once_with("boom")


class TestDesktopNotify:
    @pytest.mark.parametrize("platform,tool", [
        ("darwin", "osascript"),
        ("linux", "notify-send"),
        ("win32", "powershell.exe"),
    ])
    def test_platform_command(self, platform, tool):
        with patch("sitepipe.notify.sys.platform", platform), \
                patch("sitepipe.notify._run_quiet") as run:
            notify.desktop_notify("boom")
        assert run.call_args.args[0] == tool

    def test_missing_tool_is_ignored(self):
        with patch("sitepipe.notify.subprocess.Popen", side_effect=FileNotFoundError()):
            notify._run_quiet("notify-send", "x")
