"""Jekyll site generation."""

from __future__ import annotations

from sitepipe.adapters.base import ToolResult, run_tool, with_bundle_exec
from sitepipe.config import SiteConfig


def build(cfg: SiteConfig) -> ToolResult:
    """Run ``jekyll build`` in the project root with the terminal attached."""
    cmd = with_bundle_exec(cfg.jekyll_command, cfg.bundle_exec)
    return run_tool(cmd, cwd=cfg.root, inherit_output=True)
