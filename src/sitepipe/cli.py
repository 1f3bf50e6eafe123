"""sitepipe CLI.

Installed as the ``sitepipe`` console_script; also runs as ``python -m sitepipe``.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import TYPE_CHECKING

import click

from sitepipe import __version__
from sitepipe import log as slog
from sitepipe.config import load_config
from sitepipe.errors import ConfigurationError

if TYPE_CHECKING:
    from sitepipe.workflow import SiteWorkflow

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])

# Exit status for an invalid task graph or unknown task name.
CONFIG_ERROR_EXIT = 2


def _make_workflow(
    root: Path | None,
    host: str | None,
    port: int | None,
    open_browser: bool | None,
    verbose: bool,
) -> "SiteWorkflow":
    from sitepipe.workflow import SiteWorkflow

    cfg = load_config(
        root,
        host=host,
        port=port,
        open_browser=open_browser,
        verbose=verbose or None,
    )
    return SiteWorkflow(cfg)


def _run_tasks(wf: "SiteWorkflow", names: list[str] | tuple[str, ...]) -> int:
    """Run each task in order; stop at the first failure and return its exit code."""
    for name in names:
        result = wf.scheduler.run(name)
        if not result.ok:
            return result.returncode
    return 0


def _wait_until_interrupted(wf: "SiteWorkflow") -> None:
    slog.info("Press Ctrl+C to stop.")
    try:
        while wf.is_running():
            time.sleep(0.5)
    except KeyboardInterrupt:
        slog.console.print()
        slog.info("Stopping…")
    finally:
        wf.shutdown()


def _finish(ctx: click.Context, wf: "SiteWorkflow", code: int) -> None:
    """Keep serving/watching after a successful run, otherwise exit with *code*."""
    if code == 0 and wf.is_running():
        _wait_until_interrupted(wf)
        return
    wf.shutdown()
    if code:
        ctx.exit(code)


@click.group(invoke_without_command=True, context_settings=CONTEXT_SETTINGS)
@click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Site project root (default: current directory)",
)
@click.option("--host", default=None, help="Dev server host (default: 0.0.0.0)")
@click.option("--port", type=int, default=None, help="Dev server port (default: 3000)")
@click.option("--open/--no-open", "open_browser", default=None, help="Open a browser once serving")
@click.option("-v", "--verbose", is_flag=True, help="Show debug output")
@click.version_option(__version__, prog_name="sitepipe")
@click.pass_context
def main(
    ctx: click.Context,
    root: Path | None,
    host: str | None,
    port: int | None,
    open_browser: bool | None,
    verbose: bool,
) -> None:
    """sitepipe - build, serve and watch a Jekyll site.

    Without a subcommand, runs the ``default`` task: compile the stylesheets,
    build the site, serve it with live reload and rebuild on changes.

    \b
    EXAMPLES:
      sitepipe                       # build + serve + watch
      sitepipe run sass              # compile stylesheets once
      sitepipe run iconfont sass     # regenerate the icon font, then sass
      sitepipe run deploy            # prettify HTML and upload to S3
      sitepipe tasks                 # list tasks
    """
    slog.set_verbose(verbose)

    try:
        wf = _make_workflow(root, host, port, open_browser, verbose)
    except ConfigurationError as exc:
        slog.error(str(exc))
        ctx.exit(CONFIG_ERROR_EXIT)

    ctx.obj = wf

    # ── If a subcommand was invoked, let it drive ────────────────
    if ctx.invoked_subcommand is not None:
        return

    _finish(ctx, wf, _run_tasks(wf, ["default"]))


@main.command()
@click.argument("task_names", nargs=-1, required=True, metavar="TASK...")
@click.pass_context
def run(ctx: click.Context, task_names: tuple[str, ...]) -> None:
    """Run one or more tasks (and their dependencies) in order."""
    wf = ctx.obj
    try:
        for name in task_names:
            wf.registry.get(name)
    except ConfigurationError as exc:
        slog.error(str(exc))
        wf.shutdown()
        ctx.exit(CONFIG_ERROR_EXIT)

    _finish(ctx, wf, _run_tasks(wf, task_names))


@main.command(name="tasks")
@click.pass_context
def list_tasks(ctx: click.Context) -> None:
    """List the available tasks."""
    wf = ctx.obj
    for name in wf.registry.names():
        task = wf.registry.get(name)
        deps = f" [dim]<- {', '.join(task.dependencies)}[/dim]" if task.dependencies else ""
        slog.console.print(f"[bold]{name}[/bold]{deps}")
        if task.description:
            slog.console.print(f"    {task.description}")
    wf.shutdown()
