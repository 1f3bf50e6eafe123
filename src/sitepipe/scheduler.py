"""Dependency-ordered task execution with a single completion contract."""

from __future__ import annotations

import subprocess
import time
import traceback
from collections.abc import Iterator
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from sitepipe import log
from sitepipe.errors import ActionFailed, ToolError
from sitepipe.notify import alert_failure
from sitepipe.tasks.model import TaskRegistry


class TaskState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class RunResult:
    """Outcome of one ``Scheduler.run`` invocation."""

    task: str
    states: dict[str, TaskState] = field(default_factory=dict)
    executed: list[str] = field(default_factory=list)
    artifacts: list[Any] = field(default_factory=list)
    failed: str | None = None
    failure: ActionFailed | None = None
    error: str = ""
    returncode: int = 0
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.failed is None


def _tool_name(args: Any) -> str:
    if isinstance(args, (list, tuple)) and args:
        return str(args[0])
    return str(args)


def await_completion(result: Any) -> list[Any]:
    """Block until an action result signals completion.

    Returns the artifacts a streaming action yielded (empty otherwise) and
    raises when the result reports a failure.
    """
    if result is None:
        return []
    if isinstance(result, Future):
        return await_completion(result.result())
    if isinstance(result, subprocess.Popen):
        code = result.wait()
        if code != 0:
            raise ToolError(_tool_name(result.args), code)
        return []
    if isinstance(result, subprocess.CompletedProcess):
        if result.returncode != 0:
            raise ToolError(_tool_name(result.args), result.returncode)
        return []
    if isinstance(result, Iterator):
        return list(result)
    return []


def _returncode_for(exc: BaseException) -> int:
    code = getattr(exc, "returncode", None)
    if isinstance(code, int) and code > 0:
        return code
    return 1


class Scheduler:
    """Runs a task after its transitive prerequisites, halting on failure.

    Usage::

        sched = Scheduler(registry)   # freezes + validates the registry
        sched.resolve("b")            # ["a", "b"]
        result = sched.run("b")       # RunResult(executed=["a", "b"], ...)

    ``run`` keeps no state between invocations, so independent watch
    triggers may call it from several threads at once.
    """

    def __init__(
        self,
        registry: TaskRegistry,
        *,
        on_failure: Callable[[str], None] | None = None,
    ) -> None:
        registry.freeze()
        self._registry = registry
        self._on_failure = on_failure or alert_failure

    @property
    def registry(self) -> TaskRegistry:
        return self._registry

    # ── resolution ───────────────────────────────────────────────

    def resolve(self, name: str) -> list[str]:
        """Depth-first, left-to-right order with prerequisites first, no repeats."""
        order: list[str] = []
        seen: set[str] = set()

        def visit(tid: str) -> None:
            if tid in seen:
                return
            seen.add(tid)
            for dep in self._registry.get(tid).dependencies:
                visit(dep)
            order.append(tid)

        visit(name)
        return order

    # ── transitions ──────────────────────────────────────────────

    @staticmethod
    def _transition(run: RunResult, tid: str, state: TaskState) -> None:
        previous = run.states.get(tid, TaskState.PENDING)
        run.states[tid] = state
        log.debug(f"Task {tid}: {previous.value} -> {state.value}")

    def _deps_done(self, run: RunResult, tid: str) -> bool:
        return all(
            run.states.get(dep) == TaskState.DONE
            for dep in self._registry.get(tid).dependencies
        )

    # ── execution ────────────────────────────────────────────────

    def run(self, name: str) -> RunResult:
        """Execute *name* and its prerequisites. Never raises for action errors."""
        order = self.resolve(name)
        run = RunResult(task=name, states={tid: TaskState.PENDING for tid in order})
        started = time.monotonic()

        for tid in order:
            if not self._deps_done(run, tid):
                break
            task = self._registry.get(tid)
            self._transition(run, tid, TaskState.RUNNING)
            log.info(f"Starting '{tid}'...")
            t0 = time.monotonic()
            try:
                outcome = task.action() if task.action is not None else None
                run.artifacts.extend(await_completion(outcome))
            except Exception as exc:
                self._fail(run, tid, exc)
                break
            self._transition(run, tid, TaskState.DONE)
            run.executed.append(tid)
            log.success(f"Finished '{tid}' after {time.monotonic() - t0:.2f} s")

        for tid, state in run.states.items():
            if state == TaskState.PENDING:
                self._transition(run, tid, TaskState.SKIPPED)

        run.duration = time.monotonic() - started
        return run

    def _fail(self, run: RunResult, tid: str, exc: Exception) -> None:
        self._transition(run, tid, TaskState.FAILED)
        if isinstance(exc, ActionFailed):
            failure = exc
        else:
            failure = ActionFailed(tid, str(exc) or exc.__class__.__name__, _returncode_for(exc))
        run.failed = tid
        run.failure = failure
        run.error = failure.message
        run.returncode = _returncode_for(failure)
        if not isinstance(exc, (ToolError, ActionFailed)):
            log.debug(traceback.format_exc())
        self._on_failure(f"'{tid}' failed: {run.error}")
