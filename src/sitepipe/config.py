"""Configuration defaults, env vars, and path helpers for a site project."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path

DEFAULT_CACHE_CONTROL = "max-age=315360000, no-transform, public"

DEFAULT_AUTOPREFIXER_BROWSERS: tuple[str, ...] = (
    "last 2 version",
    "safari 5",
    "ie 8",
    "ie 9",
    "opera 12.1",
    "ios 6",
    "android 4",
)

DEFAULT_SITE_WATCH: tuple[str, ...] = (
    "index.html",
    "_sections/*",
    "_data/*",
    "_includes/**/*",
    "_layouts/*",
    "_posts/*",
    "**/_posts/*",
)


@dataclass(frozen=True)
class IconFontConfig:
    """Where the SVG icons live and what the generated font is called."""

    icons_src: str = "assets/icons/**/*.svg"
    font_name: str = "icons"
    fonts_dir: str = "assets/fonts"
    templates_dir: str = "assets/icons/templates"
    template: str = "foundation-style"
    scss_dest: str = "assets/scss/base"
    # relative to the generated stylesheet
    font_path: str = "../fonts/"
    class_name: str = "icon"
    formats: tuple[str, ...] = ("svg", "ttf", "woff")
    start_codepoint: int = 0xEA01


@dataclass(frozen=True)
class SiteConfig:
    """Static project settings. Immutable once loaded."""

    root: Path = field(default_factory=Path.cwd)

    # Jekyll output
    doc_root: str = "_site"

    # Stylesheets and scripts
    scss_src: str = "assets/scss/*.scss"
    all_scss: str = "assets/scss/**/*.scss"
    css_dest: str = "assets/css"
    all_js: str = "assets/js/**/*.js"

    # Watching
    site_watch: tuple[str, ...] = DEFAULT_SITE_WATCH
    watch_ignore: tuple[str, ...] = (".git/**", ".sass-cache/**", "node_modules/**")

    # External tools
    jekyll_command: tuple[str, ...] = ("jekyll", "build")
    sass_command: tuple[str, ...] = ("sass",)
    bundle_exec: bool = False
    autoprefixer_browsers: tuple[str, ...] = DEFAULT_AUTOPREFIXER_BROWSERS
    jsbeautify_config: str = ".jsbeautifyrc"
    iconfont: IconFontConfig = field(default_factory=IconFontConfig)

    # Deploy
    s3_config: str = ".s3config"
    cache_control: str = DEFAULT_CACHE_CONTROL

    # Dev server
    host: str = "0.0.0.0"
    port: int = 3000
    open_browser: bool = False
    browser_notices: bool = False

    # Misc
    desktop_notifications: bool = False
    verbose: bool = False

    def path(self, rel: str | Path) -> Path:
        """Resolve *rel* against the project root."""
        return self.root / rel

    @property
    def site_dir(self) -> Path:
        return self.path(self.doc_root)

    @property
    def watch_excludes(self) -> tuple[str, ...]:
        """Ignore patterns for the watcher: the build output plus ``watch_ignore``."""
        return (f"{Path(self.doc_root).as_posix().strip('/')}/**", *self.watch_ignore)

    def with_overrides(self, **overrides: object) -> "SiteConfig":
        """Return a copy with the non-``None`` overrides applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self


def _env_bool(name: str) -> bool | None:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return None
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str) -> int | None:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def load_config(root: str | Path | None = None, **overrides: object) -> SiteConfig:
    """Build the project config: defaults, then env vars, then explicit overrides."""
    base = SiteConfig(root=Path(root).resolve() if root else Path.cwd())
    cfg = base.with_overrides(
        host=os.environ.get("SITEPIPE_HOST") or None,
        port=_env_int("SITEPIPE_PORT"),
        desktop_notifications=_env_bool("SITEPIPE_DESKTOP_NOTIFY"),
    )
    return cfg.with_overrides(**overrides)
