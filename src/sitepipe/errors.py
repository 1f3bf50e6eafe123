"""Exception types shared by the registry, scheduler and tool adapters."""

from __future__ import annotations

from dataclasses import dataclass


class SitepipeError(Exception):
    """Base class for sitepipe errors."""


class ConfigurationError(SitepipeError):
    """Invalid task graph or watch setup. Fatal at startup."""


@dataclass
class ToolError(SitepipeError):
    """An external tool could not run or exited non-zero."""

    tool: str
    returncode: int
    message: str = ""

    def __str__(self) -> str:
        detail = self.message or f"exit code {self.returncode}"
        return f"{self.tool} failed: {detail}"


@dataclass
class ActionFailed(SitepipeError):
    """A task action failed; carries the exit code to propagate."""

    task: str
    message: str
    returncode: int = 1

    def __str__(self) -> str:
        return f"Task '{self.task}' failed: {self.message}"
