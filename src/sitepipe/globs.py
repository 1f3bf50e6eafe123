"""Glob matching for task inputs and watch patterns.

Patterns are POSIX-style and relative to the project root:

* ``*`` matches within one path segment, ``?`` one character,
  ``[abc]`` / ``[!abc]`` a character class;
* ``**`` as a whole segment matches any number of segments, including none;
* wildcards never match a leading dot, so editor swap files and hidden
  directories stay out unless named explicitly.
"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path, PurePath
from typing import Iterable

_WILDCARDS = ("*", "?", "[")


def _normalize(pattern: str) -> str:
    pattern = pattern.replace("\\", "/")
    while pattern.startswith("./"):
        pattern = pattern[2:]
    return pattern.rstrip("/")


def has_magic(pattern: str) -> bool:
    return any(ch in pattern for ch in _WILDCARDS)


def _translate_segment(part: str) -> str:
    out: list[str] = []
    if part[:1] in ("*", "?", "["):
        out.append(r"(?!\.)")
    i = 0
    n = len(part)
    while i < n:
        ch = part[i]
        if ch == "*":
            out.append("[^/]*")
        elif ch == "?":
            out.append("[^/]")
        elif ch == "[":
            end = part.find("]", i + 1)
            if end == -1:
                out.append(re.escape(ch))
            else:
                body = part[i + 1:end].replace("\\", "\\\\")
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                i = end
        else:
            out.append(re.escape(ch))
        i += 1
    return "".join(out)


@lru_cache(maxsize=256)
def compile_glob(pattern: str) -> re.Pattern[str]:
    """Compile a glob pattern into an anchored regular expression."""
    parts = _normalize(pattern).split("/")
    regex: list[str] = []
    for idx, part in enumerate(parts):
        last = idx == len(parts) - 1
        if part == "**":
            regex.append(r"(?:(?!\.)[^/]+(?:/|$))*" if last else r"(?:(?!\.)[^/]+/)*")
            continue
        regex.append(_translate_segment(part))
        if not last:
            regex.append("/")
    return re.compile("^" + "".join(regex) + "$")


def to_posix(path: str | PurePath) -> str:
    return _normalize(str(path))


def matches(path: str | PurePath, patterns: Iterable[str]) -> bool:
    """Return ``True`` if the root-relative *path* matches any pattern."""
    rel = to_posix(path)
    return any(compile_glob(p).match(rel) for p in patterns)


def static_prefix(pattern: str) -> str:
    """Leading directory of *pattern* that contains no wildcard.

    ``assets/scss/**/*.scss`` -> ``assets/scss``; ``index.html`` -> ``""``.
    """
    parts = _normalize(pattern).split("/")
    fixed: list[str] = []
    for part in parts[:-1]:
        if has_magic(part):
            break
        fixed.append(part)
    return "/".join(fixed)


def relative_to(path: str | Path, root: Path) -> str | None:
    """POSIX path of *path* relative to *root*, or ``None`` when outside it."""
    p = Path(path)
    if not p.is_absolute():
        return to_posix(p)
    try:
        return p.resolve().relative_to(root.resolve()).as_posix()
    except ValueError:
        return None


def expand(root: Path, patterns: Iterable[str]) -> list[Path]:
    """Return every existing file under *root* matching any pattern, sorted."""
    found: set[Path] = set()
    for pattern in patterns:
        norm = _normalize(pattern)
        if not has_magic(norm):
            candidate = root / norm
            if candidate.is_file():
                found.add(candidate)
            continue

        base = root / static_prefix(norm)
        if not base.is_dir():
            continue
        regex = compile_glob(norm)
        for candidate in base.rglob("*"):
            if not candidate.is_file():
                continue
            if regex.match(candidate.relative_to(root).as_posix()):
                found.add(candidate)
    return sorted(found)
