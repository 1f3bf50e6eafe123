"""Watch dispatcher: glob patterns bound to tasks, driven by watchdog events."""

from __future__ import annotations

import os
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from sitepipe import globs, log
from sitepipe.errors import ConfigurationError
from sitepipe.scheduler import RunResult, Scheduler

_CHANGE_EVENTS = frozenset({"created", "modified", "deleted", "moved"})


@dataclass(frozen=True)
class WatchBinding:
    patterns: tuple[str, ...]
    tasks: tuple[str, ...]

    def matches(self, rel_path: str) -> bool:
        return globs.matches(rel_path, self.patterns)


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, dispatcher: "WatchDispatcher") -> None:
        super().__init__()
        self._dispatcher = dispatcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in _CHANGE_EVENTS:
            return
        paths = [event.src_path]
        dest = getattr(event, "dest_path", "")
        if event.event_type == "moved" and dest:
            paths.insert(0, dest)
        self._dispatcher.dispatch(*(os.fsdecode(p) for p in paths))


def _as_tuple(values: str | Iterable[str]) -> tuple[str, ...]:
    if isinstance(values, str):
        return (values,)
    return tuple(values)


class WatchDispatcher:
    """Triggers bound tasks when a file matching their patterns changes.

    Every matching change submits its own trigger to a thread pool, so a
    change never waits for an earlier run to finish. Within one trigger the
    bound task names run in listed order, each as an independent scheduler
    run.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        root: Path,
        *,
        ignore: Iterable[str] = (),
        max_workers: int = 8,
        observer_factory: Callable[[], Observer] = Observer,
    ) -> None:
        self._scheduler = scheduler
        self.root = Path(root).resolve()
        self._ignore = tuple(ignore)
        self._bindings: list[WatchBinding] = []
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="sitepipe-watch"
        )
        self._observer_factory = observer_factory
        self._observer: Observer | None = None

    @property
    def bindings(self) -> tuple[WatchBinding, ...]:
        return tuple(self._bindings)

    def watch(self, patterns: str | Iterable[str], tasks: str | Iterable[str]) -> WatchBinding:
        """Bind *patterns* to *tasks*. Must be called before :meth:`start`."""
        if self._observer is not None:
            raise ConfigurationError("Watch bindings must be registered before the watcher starts")
        binding = WatchBinding(_as_tuple(patterns), _as_tuple(tasks))
        if not binding.patterns or not binding.tasks:
            raise ConfigurationError("A watch binding needs at least one pattern and one task")
        for name in binding.tasks:
            self._scheduler.registry.get(name)
        self._bindings.append(binding)
        log.debug(f"watch {list(binding.patterns)} -> {list(binding.tasks)}")
        return binding

    # ── dispatch ─────────────────────────────────────────────────

    def dispatch(self, *paths: str | Path) -> list[Future[list[RunResult]]]:
        """Submit one trigger per binding matching any of *paths*.

        Several paths describe a single change (a move's source and
        destination), so each binding fires at most once per call.
        """
        rels = [rel for rel in (globs.relative_to(p, self.root) for p in paths) if rel is not None]
        rels = [rel for rel in rels if not globs.matches(rel, self._ignore)]
        if not rels:
            return []
        futures: list[Future[list[RunResult]]] = []
        for binding in self._bindings:
            rel = next((r for r in rels if binding.matches(r)), None)
            if rel is None:
                continue
            log.info(f"{rel} changed -> {', '.join(binding.tasks)}")
            future = self._executor.submit(self._trigger, binding)
            future.add_done_callback(self._report)
            futures.append(future)
        return futures

    def _trigger(self, binding: WatchBinding) -> list[RunResult]:
        return [self._scheduler.run(name) for name in binding.tasks]

    @staticmethod
    def _report(future: Future[list[RunResult]]) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            log.error(f"Watch trigger crashed: {exc}")

    # ── observer ─────────────────────────────────────────────────

    def watch_dirs(self) -> list[Path]:
        """Directories to observe: the nearest existing static prefix of each pattern."""
        dirs: set[Path] = set()
        for binding in self._bindings:
            for pattern in binding.patterns:
                base = self.root / globs.static_prefix(pattern)
                while not base.is_dir() and base != self.root:
                    base = base.parent
                dirs.add(base)
        ordered = sorted(dirs, key=lambda p: len(p.parts))
        kept: list[Path] = []
        for d in ordered:
            if not any(d == k or k in d.parents for k in kept):
                kept.append(d)
        return kept

    def start(self) -> None:
        if self._observer is not None:
            return
        observer = self._observer_factory()
        handler = _ChangeHandler(self)
        for directory in self.watch_dirs():
            observer.schedule(handler, str(directory), recursive=True)
            log.debug(f"observing {directory}")
        observer.start()
        self._observer = observer
        log.success(f"Watching {len(self._bindings)} binding(s) under {self.root}")

    def is_alive(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def join(self, timeout: float | None = None) -> None:
        if self._observer is not None:
            self._observer.join(timeout)

    def stop(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
        self._executor.shutdown(wait=True)
