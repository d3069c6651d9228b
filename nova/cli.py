"""Command-line interface for Nova.

This module defines the CLI commands using Click framework. Each command is
one named task of the theme build; run them from the theme root.

Commands:
- (none) / default: Watch sources, build styles once and serve with live reload.
- scss: Compile the SCSS sources once.
- minCSS, minJS, minIMG, copyVendors: Run one production pipeline.
- dist: Build the whole distribution bundle in sequence.
"""

from __future__ import annotations

import functools
import time
from pathlib import Path

import click

from . import __version__
from .errors import PipelineError, TaskError
from .tasks import (
    Task,
    TaskGraph,
    interactive_graph,
    pipeline_tasks,
    production_graph,
)

_serve_options = [
    click.option("--port", type=int, required=False, help="Port for the dev server (overrides nova.yaml)"),
    click.option(
        "--ws-port",
        type=int,
        required=False,
        help="Port for the live reload websocket server (overrides nova.yaml ws_port)",
    ),
    click.option("--open", "open_browser", is_flag=True, help="Open the start page in a browser"),
]


def serve_options(fn):
    for option in reversed(_serve_options):
        fn = option(fn)
    return fn


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="nova")
@serve_options
@click.pass_context
def cli(ctx, port: int | None, ws_port: int | None, open_browser: bool):
    """Nova theme build pipeline."""
    if ctx.invoked_subcommand is None:
        _run_interactive(Path.cwd(), port, ws_port, open_browser)


@cli.command("default")
@serve_options
def default(port: int | None, ws_port: int | None, open_browser: bool):
    """Watch sources, build styles and serve with live reload."""
    _run_interactive(Path.cwd(), port, ws_port, open_browser)


@cli.command()
def scss():
    """Compile SCSS sources into assets/css."""
    from .styles import compile_styles

    task = Task("scss", functools.partial(compile_styles, Path.cwd()))
    _run_graph(TaskGraph([task], name="scss"))


@cli.command("minCSS")
def min_css():
    """Minify assets/css/theme.css into dist/assets/css."""
    _run_single("minCSS")


@cli.command("minJS")
def min_js():
    """Bundle and minify the theme scripts into dist/assets/js."""
    _run_single("minJS")


@cli.command("minIMG")
def min_img():
    """Optimize assets/img into dist/assets/img."""
    _run_single("minIMG")


@cli.command("copyVendors")
def copy_vendors():
    """Copy vendor packages from node_modules into dist/assets/vendor."""
    _run_single("copyVendors")


@cli.command()
def dist():
    """Build the distribution bundle: vendors, then CSS, JS and images."""
    _run_graph(production_graph(Path.cwd()))


def _run_single(name: str) -> None:
    task = pipeline_tasks(Path.cwd())[name]
    _run_graph(TaskGraph([task], name=name))


def _run_graph(graph: TaskGraph) -> None:
    """Run a task graph, turning a failure into exit status 1."""
    started = time.monotonic()
    try:
        graph.run()
    except TaskError as exc:
        _report_failure(exc)
        raise SystemExit(1) from None
    elapsed = time.monotonic() - started
    click.echo(click.style(f"Finished '{graph.name}' in {elapsed:.2f}s", fg="green"))


def _report_failure(exc: TaskError) -> None:
    """Display a user-friendly task failure on stderr."""
    original = exc.original_error
    click.echo(click.style("Task failed:", fg="red", bold=True), err=True)
    click.echo(click.style(f"  Task: {exc.task_name}", fg="yellow"), err=True)
    if isinstance(original, PipelineError):
        if original.source_path is not None:
            click.echo(click.style(f"  File: {original.source_path}", fg="yellow"), err=True)
        message = original.message
    else:
        message = f"{type(original).__name__}: {original}"
    click.echo(click.style(f"  Error: {message}", fg="white"), err=True)


def _run_interactive(
    project_root: Path, port: int | None, ws_port: int | None, open_browser: bool
) -> None:  # pragma: no cover - integration path
    from .server import DevServer
    from .watcher import WatchController, default_rules, run_reaction

    server = DevServer(project_root, http_port=port, ws_port=ws_port)
    rules = default_rules(project_root, server.session)
    controller = WatchController(project_root, rules, server.session)
    graph = interactive_graph(
        controller.start,
        functools.partial(run_reaction, rules[0].reaction, server.session),
        functools.partial(server.start, open_browser=open_browser),
    )
    try:
        graph.run()
    except TaskError as exc:
        _report_failure(exc)
        controller.stop()
        server.stop()
        raise SystemExit(1) from None
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        controller.stop()
        server.stop()


def main():
    """Entry point for the CLI application."""
    cli()
