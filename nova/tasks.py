"""Task graphs for Nova.

Tasks are named callables with declared dependencies. A TaskGraph orders
them topologically and runs every task whose dependencies have finished,
concurrently, until all are done or one fails.

Two graphs are built from the pipelines:
- default: watch + one style build + dev server, all independent.
- dist: copyVendors -> minCSS -> minJS -> minIMG, strictly in sequence.
"""

from __future__ import annotations

import functools
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from .errors import TaskError
from .images import optimize_images
from .scripts import minify_scripts
from .styles import minify_styles
from .vendors import copy_vendors


@dataclass(frozen=True)
class Task:
    name: str
    fn: Callable[[], object]
    deps: tuple[str, ...] = ()


def topo_sort(nodes: Iterable[str], edges: Iterable[tuple[str, str]]) -> list[str]:
    """Order nodes so every edge (u, v) puts u before v.

    Ties keep the order nodes were given in.

    Raises:
        ValueError: On an edge to an unknown node or a cycle.
    """
    nodes = list(nodes)
    incoming = {n: set() for n in nodes}
    outgoing = {n: [] for n in nodes}
    for u, v in edges:
        if u not in incoming or v not in incoming:
            raise ValueError(f"Edge references unknown node: {(u, v)}")
        outgoing[u].append(v)
        incoming[v].add(u)
    ordered: list[str] = []
    roots = [n for n in nodes if not incoming[n]]
    while roots:
        n = roots.pop(0)
        ordered.append(n)
        for m in outgoing[n]:
            incoming[m].discard(n)
            if not incoming[m]:
                roots.append(m)
    if len(ordered) != len(nodes):
        raise ValueError("Cycle detected in task graph")
    return ordered


def chain(tasks: Iterable[Task]) -> list[Task]:
    """Make each task depend on the one before it."""
    chained: list[Task] = []
    for task in tasks:
        deps = task.deps + ((chained[-1].name,) if chained else ())
        chained.append(Task(task.name, task.fn, deps))
    return chained


class TaskGraph:
    """Directed acyclic graph of named tasks.

    Attributes:
        name: Graph name used in log lines.
        tasks: Mapping of task name to Task.
        order: Topological order of task names.
    """

    def __init__(self, tasks: Iterable[Task], name: str = "graph"):
        self.name = name
        self.tasks = {task.name: task for task in tasks}
        edges = [(dep, task.name) for task in self.tasks.values() for dep in task.deps]
        self.order = topo_sort(self.tasks.keys(), edges)

    def run(self, max_workers: int | None = None) -> list[str]:
        """Run the graph to completion.

        Ready tasks run concurrently. After the first failure no new task
        starts; running tasks finish and the failure is raised.

        Returns:
            Names of completed tasks in completion order.

        Raises:
            TaskError: If any task raised.
        """
        waiting = {name: set(self.tasks[name].deps) for name in self.order}
        completed: list[str] = []
        failure: TaskError | None = None
        running: dict[Future, str] = {}

        with ThreadPoolExecutor(max_workers=max_workers or len(self.tasks) or 1) as pool:

            def submit_ready() -> None:
                for name in [n for n in self.order if n in waiting and not waiting[n]]:
                    del waiting[name]
                    print(f"[{self.name}] Starting '{name}'...")
                    running[pool.submit(self.tasks[name].fn)] = name

            submit_ready()
            while running:
                done, _ = wait(running, return_when=FIRST_COMPLETED)
                for future in done:
                    name = running.pop(future)
                    exc = future.exception()
                    if exc is not None:
                        print(f"[{self.name}] '{name}' errored")
                        if failure is None:
                            failure = TaskError(name, exc)
                        continue
                    print(f"[{self.name}] Finished '{name}'")
                    completed.append(name)
                    for deps in waiting.values():
                        deps.discard(name)
                if failure is None:
                    submit_ready()

        if failure is not None:
            raise failure
        return completed


def pipeline_tasks(project_root: Path) -> dict[str, Task]:
    """Return the one-shot production pipelines keyed by task name."""
    tasks = [
        Task("copyVendors", functools.partial(copy_vendors, project_root)),
        Task("minCSS", functools.partial(minify_styles, project_root)),
        Task("minJS", functools.partial(minify_scripts, project_root)),
        Task("minIMG", functools.partial(optimize_images, project_root)),
    ]
    return {task.name: task for task in tasks}


def production_graph(project_root: Path) -> TaskGraph:
    """Build the dist graph: vendors first, then the minifiers one by one."""
    tasks = pipeline_tasks(project_root)
    return TaskGraph(
        chain(tasks[name] for name in ("copyVendors", "minCSS", "minJS", "minIMG")),
        name="dist",
    )


def interactive_graph(
    start_watching: Callable[[], object],
    build_styles: Callable[[], object],
    start_server: Callable[[], object],
) -> TaskGraph:
    """Build the default graph: watch, style build and server, independently."""
    return TaskGraph(
        [
            Task("watch", start_watching),
            Task("scss", build_styles),
            Task("serve", start_server),
        ],
        name="default",
    )
