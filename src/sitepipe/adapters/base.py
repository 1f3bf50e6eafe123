"""Shared process handling for external tool adapters."""

from __future__ import annotations

import os
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from sitepipe import log
from sitepipe.errors import ToolError


@dataclass
class ToolResult:
    """Uniform result from any tool invocation."""

    stdout: str = ""
    stderr: str = ""
    returncode: int = 0
    duration_ms: int = 0


def with_bundle_exec(cmd: Sequence[str], enabled: bool) -> list[str]:
    """Prefix *cmd* with ``bundle exec`` when requested."""
    if enabled:
        return ["bundle", "exec", *cmd]
    return list(cmd)


def run_tool(
    cmd: Sequence[str],
    *,
    cwd: Path | None = None,
    input_text: str | None = None,
    env: dict[str, str] | None = None,
    inherit_output: bool = False,
    timeout: int | None = None,
) -> ToolResult:
    """Run *cmd* to completion.

    Output is captured unless ``inherit_output`` is set, in which case the
    tool writes straight to this terminal. A missing executable, a timeout or
    a non-zero exit raises :class:`ToolError`.
    """
    cmd = list(cmd)
    tool = Path(cmd[0]).name
    log.debug(f"$ {' '.join(cmd)}")
    start = time.monotonic()
    try:
        proc = subprocess.run(
            cmd,
            input=input_text,
            capture_output=not inherit_output,
            text=True,
            encoding="utf-8",
            errors="replace",
            cwd=cwd,
            env={**os.environ, **env} if env else None,
            timeout=timeout,
        )
    except FileNotFoundError:
        raise ToolError(tool, 127, f"{cmd[0]} not found in PATH") from None
    except subprocess.TimeoutExpired:
        raise ToolError(tool, 124, f"timeout after {timeout}s") from None

    result = ToolResult(
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
        returncode=proc.returncode,
        duration_ms=int((time.monotonic() - start) * 1000),
    )
    if proc.returncode != 0:
        # Surface the first stderr line; some tools print nothing else useful.
        stderr = result.stderr.strip()
        message = stderr.splitlines()[0] if stderr else f"exit code {proc.returncode}"
        raise ToolError(tool, proc.returncode, message)
    return result
