"""Wrappers for file I/O with consistent encoding (UTF-8)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

PathLike = Path | str


def read_text(path: PathLike, errors: str = "strict", **kwargs: Any) -> str:
    """Read path as text with UTF-8 encoding. Forwards extra kwargs to Path.read_text."""
    p = path if isinstance(path, Path) else Path(path)
    return p.read_text(encoding="utf-8", errors=errors, **kwargs)


def write_text(path: PathLike, text: str, **kwargs: Any) -> None:
    """Write text to path with UTF-8 encoding, creating parent directories."""
    p = path if isinstance(path, Path) else Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text, encoding="utf-8", **kwargs)


def write_bytes(path: PathLike, data: bytes) -> None:
    """Write raw bytes to path, creating parent directories."""
    p = path if isinstance(path, Path) else Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_bytes(data)


def read_json(path: PathLike) -> Any:
    """Parse a UTF-8 JSON file."""
    return json.loads(read_text(path))
