"""HTML cleanup: minify with minify-html, prettify with js-beautify's html-beautify."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator

import minify_html

from sitepipe.adapters.base import ToolResult, run_tool
from sitepipe.artifacts import FileRecord


def minify(records: Iterable[FileRecord]) -> Iterator[FileRecord]:
    """Collapse whitespace in each HTML record; tags and attributes are kept."""
    for record in records:
        text = minify_html.minify(
            record.text,
            keep_closing_tags=True,
            keep_html_and_head_opening_tags=True,
        )
        yield record.with_text(text)


def prettify(paths: Iterable[Path], *, config_file: Path | None = None, cwd: Path | None = None) -> ToolResult | None:
    """Re-indent HTML files in place. Returns ``None`` when there is nothing to do."""
    files = [str(p) for p in paths]
    if not files:
        return None
    cmd = ["html-beautify", "--replace"]
    if config_file is not None and config_file.is_file():
        cmd += ["--config", str(config_file)]
    return run_tool([*cmd, *files], cwd=cwd)
