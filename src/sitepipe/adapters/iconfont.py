"""Icon font generation: SVG icons -> font files (FontForge) + SCSS (Jinja2).

Codepoints are assigned from the private use area starting at ``U+EA01`` in
glyph-name order. An icon file named ``uE001-star.svg`` pins glyph ``star``
to ``U+E001``; the remaining glyphs fill the free codepoints after the start.
"""

from __future__ import annotations

import json
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Iterator

from jinja2 import ChoiceLoader, Environment, FileSystemLoader, PackageLoader

from sitepipe import globs, log
from sitepipe.adapters.base import run_tool
from sitepipe.artifacts import FileRecord, write_records
from sitepipe.config import IconFontConfig, SiteConfig
from sitepipe.errors import ConfigurationError
from sitepipe.io_utils import write_text

_PINNED = re.compile(r"^u([0-9A-Fa-f]{4,6})-(.+)$")

FONTFORGE_SCRIPT = """\
import json
import sys

import fontforge

spec = json.load(open(sys.argv[1]))
font = fontforge.font()
font.encoding = "UnicodeFull"
font.fontname = font.familyname = font.fullname = spec["font_name"]
for glyph in spec["glyphs"]:
    char = font.createChar(glyph["codepoint"], glyph["name"])
    char.importOutlines(glyph["path"])
    char.width = font.em
for fmt in spec["formats"]:
    font.generate(spec["output"] + "." + fmt)
"""


@dataclass(frozen=True)
class Glyph:
    name: str
    codepoint: int
    path: Path

    @property
    def hex(self) -> str:
        return f"{self.codepoint:x}"

    @property
    def char(self) -> str:
        return chr(self.codepoint)


def assign_codepoints(icons: Iterable[Path], start: int = 0xEA01) -> list[Glyph]:
    """Map icon files to glyphs, honouring ``uXXXX-name`` pinned codepoints."""
    pinned: dict[str, tuple[int, Path]] = {}
    free: dict[str, Path] = {}
    for icon in icons:
        match = _PINNED.match(icon.stem)
        if match:
            pinned[match.group(2)] = (int(match.group(1), 16), icon)
        else:
            free[icon.stem] = icon

    clash = sorted(set(pinned) & set(free))
    if clash:
        raise ConfigurationError(f"Duplicate icon names: {', '.join(clash)}")

    used = {cp for cp, _ in pinned.values()}
    glyphs = [Glyph(name, cp, path) for name, (cp, path) in pinned.items()]
    next_cp = start
    for name in sorted(free):
        while next_cp in used:
            next_cp += 1
        glyphs.append(Glyph(name, next_cp, free[name]))
        used.add(next_cp)
        next_cp += 1
    return sorted(glyphs, key=lambda g: g.name)


def generate_font(glyphs: list[Glyph], icfg: IconFontConfig, out_dir: Path) -> list[Path]:
    """Run FontForge to build one font file per configured format."""
    out_dir.mkdir(parents=True, exist_ok=True)
    output = out_dir / icfg.font_name
    spec: dict[str, Any] = {
        "font_name": icfg.font_name,
        "output": str(output),
        "formats": list(icfg.formats),
        "glyphs": [
            {"name": g.name, "codepoint": g.codepoint, "path": str(g.path)} for g in glyphs
        ],
    }
    with tempfile.TemporaryDirectory(prefix="sitepipe-iconfont-") as tmp:
        script = Path(tmp) / "build_font.py"
        spec_file = Path(tmp) / "font.json"
        write_text(script, FONTFORGE_SCRIPT)
        write_text(spec_file, json.dumps(spec))
        run_tool(["fontforge", "-lang=py", "-script", str(script), str(spec_file)])
    return [output.with_name(f"{icfg.font_name}.{fmt}") for fmt in icfg.formats]


def template_env(templates_dir: Path) -> Environment:
    """Project templates first, then the templates shipped with sitepipe."""
    return Environment(
        loader=ChoiceLoader([
            FileSystemLoader(str(templates_dir)),
            PackageLoader("sitepipe", "templates"),
        ]),
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def render_stylesheet(glyphs: list[Glyph], icfg: IconFontConfig, templates_dir: Path) -> FileRecord:
    """Render the icon stylesheet as ``_<font_name>.scss``."""
    template = template_env(templates_dir).get_template(f"{icfg.template}.scss")
    text = template.render(
        glyphs=glyphs,
        font_name=icfg.font_name,
        font_path=icfg.font_path,
        class_name=icfg.class_name,
    )
    return FileRecord(f"_{icfg.font_name}.scss", text.encode("utf-8"))


def build(cfg: SiteConfig) -> Iterator[Path | FileRecord]:
    """Generate the font files and the icon stylesheet; yields what was written."""
    icfg = cfg.iconfont
    icons = globs.expand(cfg.root, [icfg.icons_src])
    if not icons:
        log.warn(f"No icons match {icfg.icons_src}; nothing to do")
        return
    glyphs = assign_codepoints(icons, icfg.start_codepoint)
    log.info(f"Building {icfg.font_name} font from {len(glyphs)} glyph(s)")
    yield from generate_font(glyphs, icfg, cfg.path(icfg.fonts_dir))
    stylesheet = render_stylesheet(glyphs, icfg, cfg.path(icfg.templates_dir))
    yield from write_records([stylesheet], cfg.path(icfg.scss_dest))
