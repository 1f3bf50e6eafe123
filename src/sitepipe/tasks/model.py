"""Task and TaskRegistry: the declared task graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from sitepipe.errors import ConfigurationError

Action = Callable[[], Any]


@dataclass(frozen=True)
class Task:
    name: str
    dependencies: tuple[str, ...] = ()
    action: Action | None = None
    description: str = ""


@dataclass
class TaskRegistry:
    """Explicit name -> Task map with a build / validate / freeze lifecycle."""

    _tasks: dict[str, Task] = field(default_factory=dict)
    _frozen: bool = False

    # ── build ────────────────────────────────────────────────────

    def register(
        self,
        name: str,
        dependencies: Iterable[str] = (),
        action: Action | None = None,
        description: str = "",
    ) -> Task:
        if self._frozen:
            raise ConfigurationError(f"Cannot register '{name}': registry is frozen")
        if not name:
            raise ConfigurationError("Task name must not be empty")
        if name in self._tasks:
            raise ConfigurationError(f"Task '{name}' is registered more than once")
        task = Task(
            name=name,
            dependencies=tuple(dependencies),
            action=action,
            description=description,
        )
        self._tasks[name] = task
        return task

    def task(
        self,
        name: str | None = None,
        *,
        depends_on: Iterable[str] = (),
        description: str | None = None,
    ) -> Callable[[Action], Action]:
        """Decorator form of :meth:`register`.

        The task name defaults to the function name with ``_`` replaced by
        ``-``; the description defaults to the first docstring line.
        """

        def decorator(fn: Action) -> Action:
            doc = (fn.__doc__ or "").strip().splitlines()
            self.register(
                name or fn.__name__.replace("_", "-"),
                depends_on,
                fn,
                description if description is not None else (doc[0] if doc else ""),
            )
            return fn

        return decorator

    # ── queries ──────────────────────────────────────────────────

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def names(self) -> list[str]:
        return list(self._tasks)

    def get(self, name: str) -> Task:
        try:
            return self._tasks[name]
        except KeyError:
            known = ", ".join(self._tasks) or "(none)"
            raise ConfigurationError(f"Unknown task '{name}'. Known tasks: {known}") from None

    # ── validation ───────────────────────────────────────────────

    def validate(self) -> None:
        """Reject unknown dependency names and dependency cycles."""
        for task in self._tasks.values():
            for dep in task.dependencies:
                if dep not in self._tasks:
                    raise ConfigurationError(
                        f"Task '{task.name}' depends on unregistered task '{dep}'"
                    )

        # 0 = unvisited, 1 = on the current path, 2 = finished
        marks: dict[str, int] = {}

        def visit(name: str, path: list[str]) -> None:
            mark = marks.get(name, 0)
            if mark == 2:
                return
            if mark == 1:
                cycle = path[path.index(name):] + [name]
                raise ConfigurationError(f"Dependency cycle: {' -> '.join(cycle)}")
            marks[name] = 1
            path.append(name)
            for dep in self._tasks[name].dependencies:
                visit(dep, path)
            path.pop()
            marks[name] = 2

        for name in self._tasks:
            visit(name, [])

    def freeze(self) -> None:
        if self._frozen:
            return
        self.validate()
        self._frozen = True
