"""Sass compilation and autoprefixing through their command-line tools."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Iterable, Iterator, Sequence

from sitepipe import log
from sitepipe.adapters.base import run_tool, with_bundle_exec
from sitepipe.artifacts import FileRecord
from sitepipe.config import SiteConfig


def is_partial(path: Path) -> bool:
    return path.name.startswith("_")


def compile_sass(sources: Iterable[Path], cfg: SiteConfig) -> Iterator[FileRecord]:
    """Yield one expanded CSS record per main stylesheet. Partials are skipped."""
    cmd = with_bundle_exec(cfg.sass_command, cfg.bundle_exec)
    for src in sources:
        if is_partial(src):
            continue
        result = run_tool(
            [*cmd, "--style=expanded", "--no-source-map", str(src)],
            cwd=cfg.root,
        )
        yield FileRecord(Path(src.name).with_suffix(".css").as_posix(), result.stdout.encode("utf-8"))


def autoprefix(
    records: Iterable[FileRecord],
    browsers: Sequence[str],
    *,
    cwd: Path | None = None,
) -> Iterator[FileRecord]:
    """Pipe each stylesheet through ``postcss --use autoprefixer``."""
    npx = shutil.which("npx")
    if npx is None:
        log.warn("npx not found in PATH; skipping autoprefixer")
        yield from records
        return

    env = {"BROWSERSLIST": ", ".join(browsers)}
    for record in records:
        result = run_tool(
            [npx, "--no-install", "postcss", "--use", "autoprefixer", "--no-map"],
            cwd=cwd,
            input_text=record.text,
            env=env,
        )
        yield record.with_text(result.stdout)
