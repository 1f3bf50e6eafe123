"""The site workflow: tasks, watch bindings and the live-reload server.

    default        -> serve, watch
    serve          -> sass, jekyll-build     (alias: browser-sync)
    jekyll-rebuild -> jekyll-build
    deploy         -> prettify-html, push-to-s3
"""

from __future__ import annotations

from functools import partial
from pathlib import Path
from typing import Callable, Iterable, Iterator

from watchdog.observers import Observer

from sitepipe import globs, log
from sitepipe.adapters import html, iconfont, jekyll, s3, sass
from sitepipe.artifacts import FileRecord, read_records, write_records
from sitepipe.config import SiteConfig
from sitepipe.errors import ActionFailed
from sitepipe.notify import alert_failure
from sitepipe.reload import LiveReloadNotifier
from sitepipe.scheduler import Scheduler
from sitepipe.tasks.model import TaskRegistry
from sitepipe.watch import WatchDispatcher

MESSAGES = {
    "jekyll-build": "Running: jekyll build",
    "sass": "Running: sass",
}


class SiteWorkflow:
    """Owns the registry, scheduler, watcher and notifier for one site."""

    def __init__(
        self,
        cfg: SiteConfig,
        *,
        notifier: LiveReloadNotifier | None = None,
        observer_factory: Callable[[], Observer] = Observer,
    ) -> None:
        self.cfg = cfg
        self.notifier = notifier or LiveReloadNotifier(
            cfg.site_dir,
            host=cfg.host,
            port=cfg.port,
            open_browser=cfg.open_browser,
            browser_notices=cfg.browser_notices,
        )
        self.registry = TaskRegistry()
        self._register_tasks()
        self.scheduler = Scheduler(
            self.registry,
            on_failure=partial(alert_failure, desktop=cfg.desktop_notifications),
        )
        self.watcher = WatchDispatcher(
            self.scheduler,
            cfg.root,
            ignore=cfg.watch_excludes,
            observer_factory=observer_factory,
        )
        self._register_watches()

    def _register_tasks(self) -> None:
        reg = self.registry
        reg.register("jekyll-build", (), self.jekyll_build, "Build the Jekyll site")
        reg.register("jekyll-rebuild", ("jekyll-build",), self.jekyll_rebuild,
                     "Rebuild the Jekyll site and reload the page")
        reg.register("sass", (), self.sass, "Compile and autoprefix the stylesheets")
        reg.register("serve", ("sass", "jekyll-build"), self.serve,
                     "Build, then serve the site with live reload")
        reg.register("browser-sync", ("serve",), None, "Alias of serve")
        reg.register("iconfont", (), self.iconfont, "Generate the icon font and its stylesheet")
        reg.register("minify-html", (), self.minify_html, "Minify the generated HTML")
        reg.register("prettify-html", (), self.prettify_html, "Prettify the generated HTML")
        reg.register("push-to-s3", (), self.push_to_s3, "Upload the generated site to S3")
        reg.register("deploy", ("prettify-html", "push-to-s3"), None, "Prettify HTML, then upload to S3")
        reg.register("watch", (), self.watch, "Rebuild on file changes")
        reg.register("default", ("serve", "watch"), None, "Build, serve and watch")

    def _register_watches(self) -> None:
        cfg = self.cfg
        self.watcher.watch(cfg.all_scss, "sass")
        self.watcher.watch(cfg.iconfont.icons_src, "iconfont")
        self.watcher.watch([*cfg.site_watch, cfg.all_js], "jekyll-rebuild")

    # ── Jekyll ───────────────────────────────────────────────────

    def jekyll_build(self) -> object:
        self.notifier.notify(MESSAGES["jekyll-build"])
        return jekyll.build(self.cfg)

    def jekyll_rebuild(self) -> None:
        self.notifier.reload()

    # ── Sass ─────────────────────────────────────────────────────

    def sass(self) -> Iterator[FileRecord]:
        """Compile into both the built site (for live injection) and the
        source tree (for future Jekyll builds)."""
        cfg = self.cfg
        self.notifier.notify(MESSAGES["sass"])
        sources = globs.expand(cfg.root, [cfg.scss_src])
        css = sass.autoprefix(
            sass.compile_sass(sources, cfg),
            cfg.autoprefixer_browsers,
            cwd=cfg.root,
        )
        injected = self._inject(write_records(css, cfg.site_dir / cfg.css_dest))
        return write_records(injected, cfg.path(cfg.css_dest))

    def _inject(self, records: Iterable[FileRecord]) -> Iterator[FileRecord]:
        for record in records:
            url = f"/{self.cfg.css_dest.strip('/')}/{record.path}"
            log.task("sass", f"injecting {url}")
            self.notifier.reload(url, stream=True)
            yield record

    # ── Server / watch ───────────────────────────────────────────

    def serve(self) -> None:
        self.notifier.start()

    def watch(self) -> None:
        self.watcher.start()

    # ── Icon font ────────────────────────────────────────────────

    def iconfont(self) -> Iterator[object]:
        return iconfont.build(self.cfg)

    # ── HTML cleanup ─────────────────────────────────────────────

    def _built_site(self, task: str) -> Path:
        site = self.cfg.site_dir
        if not site.is_dir():
            raise ActionFailed(task, f"{site} does not exist; run jekyll-build first")
        return site

    def minify_html(self) -> Iterator[FileRecord]:
        site = self._built_site("minify-html")
        records = read_records(site, ["**/*.html"], base=site)
        return write_records(html.minify(records), site)

    def prettify_html(self) -> object:
        return html.prettify(
            globs.expand(self._built_site("prettify-html"), ["**/*.html"]),
            config_file=self.cfg.path(self.cfg.jsbeautify_config),
            cwd=self.cfg.root,
        )

    # ── Deploy ───────────────────────────────────────────────────

    def push_to_s3(self) -> Iterator[str]:
        site = self._built_site("push-to-s3")
        settings = s3.load_settings(self.cfg.path(self.cfg.s3_config))
        return s3.upload_tree(site, settings, self.cfg.cache_control)

    # ── lifecycle ────────────────────────────────────────────────

    def is_running(self) -> bool:
        return self.notifier.running or self.watcher.is_alive()

    def shutdown(self) -> None:
        self.watcher.stop()
        self.notifier.stop()
