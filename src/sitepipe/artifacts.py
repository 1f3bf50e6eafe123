"""Build artifacts: in-memory file records streamed between pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterable, Iterator

from sitepipe import globs, log
from sitepipe.io_utils import write_bytes


@dataclass(frozen=True)
class FileRecord:
    """A file's contents plus its path relative to some base directory."""

    path: str
    contents: bytes

    @property
    def name(self) -> str:
        return Path(self.path).name

    @property
    def text(self) -> str:
        return self.contents.decode("utf-8")

    def with_text(self, text: str) -> "FileRecord":
        return replace(self, contents=text.encode("utf-8"))


def read_records(root: Path, patterns: Iterable[str], *, base: Path | None = None) -> Iterator[FileRecord]:
    """Yield a record for every file under *root* matching *patterns*.

    Record paths are relative to *base* (default: the matched file's own
    directory, so only the file name is kept).
    """
    for path in globs.expand(root, patterns):
        rel = path.relative_to(base).as_posix() if base else path.name
        yield FileRecord(rel, path.read_bytes())


def write_records(records: Iterable[FileRecord], *dests: Path) -> Iterator[FileRecord]:
    """Write each record under every destination, then pass it on.

    Prior artifacts at the same path are overwritten.
    """
    for record in records:
        for dest in dests:
            target = dest / record.path
            write_bytes(target, record.contents)
            log.debug(f"wrote {target}")
        yield record
