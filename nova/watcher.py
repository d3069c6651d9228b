"""File watching for Nova's interactive mode.

Watch rules bind a set of glob patterns to a reaction: run a pipeline, or
reload connected browsers. The watchdog observer thread only queues changed
paths; a dispatcher thread drains the queue and fires each matching rule's
reaction once per event, in delivery order.

Key classes:
- WatchRule: Pattern set plus reaction.
- RunPipeline / Reload: The two reaction variants.
- WatchController: Owns the observer and the dispatcher.
- _ChangeHandler: Watchdog event handler feeding the dispatcher queue.
"""

from __future__ import annotations

import functools
import queue
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Union

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .errors import PipelineError
from .manifest import HTML_SOURCES, SCSS_SOURCES, glob_base, has_magic, matches
from .server import LiveReloadSession
from .styles import compile_styles

_HANDLED_EVENTS = {"created", "modified", "deleted", "moved"}


@dataclass(frozen=True)
class RunPipeline:
    """Reaction that runs a pipeline; failures are logged, never raised."""

    name: str
    fn: Callable[[], object]


@dataclass(frozen=True)
class Reload:
    """Reaction that reloads every connected browser."""


Reaction = Union[RunPipeline, Reload]


@dataclass(frozen=True)
class WatchRule:
    patterns: tuple[str, ...]
    reaction: Reaction


def default_rules(project_root: Path, session: LiveReloadSession) -> list[WatchRule]:
    """Return the interactive rules: SCSS recompiles, markup reloads.

    Args:
        project_root: Root directory of the theme.
        session: Live-reload session notified by both reactions.
    """
    styles = RunPipeline("scss", functools.partial(compile_styles, project_root, session))
    return [
        WatchRule(SCSS_SOURCES, styles),
        WatchRule(HTML_SOURCES, Reload()),
    ]


def run_reaction(reaction: Reaction, session: LiveReloadSession | None) -> bool:
    """Fire a reaction, logging pipeline failures so watching can continue.

    Returns:
        True if the reaction completed without error.
    """
    if isinstance(reaction, Reload):
        if session is not None:
            session.reload()
        return True
    try:
        reaction.fn()
    except PipelineError as exc:
        print(f"[{reaction.name}] Error: {exc.message}")
        if exc.source_path is not None:
            print(f"[{reaction.name}]   in {exc.source_path}")
        return False
    return True


class WatchController:
    """Arms watch rules and dispatches file events to their reactions.

    The controller starts ``idle``; ``start()`` moves it to ``watching`` for
    the rest of the process.

    Attributes:
        project_root: Root directory of the theme.
        rules: Watch rules, checked in order for every event.
        session: Live-reload session used by Reload reactions.
    """

    def __init__(
        self,
        project_root: Path,
        rules: list[WatchRule],
        session: LiveReloadSession | None = None,
    ):
        self.project_root = project_root.resolve()
        self.rules = list(rules)
        self.session = session
        self._events: queue.Queue[Path | None] = queue.Queue()
        self._observer: Observer | None = None
        self._dispatcher: threading.Thread | None = None

    @property
    def state(self) -> str:
        return "watching" if self._observer is not None else "idle"

    def start(self) -> None:
        if self._observer is not None:
            return
        handler = _ChangeHandler(self._events)
        observer = Observer()
        for path, recursive in self.watch_targets():
            observer.schedule(handler, str(path), recursive=recursive)
        observer.start()
        self._observer = observer
        self._dispatcher = threading.Thread(target=self._dispatch_loop, daemon=True)
        self._dispatcher.start()
        print(f"Watching {len(self.rules)} rules under {self.project_root}")

    def stop(self) -> None:
        if self._observer:
            self._observer.stop()
            self._observer.join()
        self._events.put(None)

    def watch_targets(self) -> list[tuple[Path, bool]]:
        """Directories to observe, derived from the rules' pattern bases.

        A pattern spanning directories is watched recursively from its base.
        Directories already covered by a recursive ancestor are skipped, so
        each change is reported once.
        """
        wanted: dict[Path, bool] = {}
        for rule in self.rules:
            for pattern in rule.patterns:
                base = self.project_root / glob_base(pattern)
                rest = pattern[len(glob_base(pattern)):].lstrip("/")
                recursive = "**" in rest or ("/" in rest and has_magic(rest))
                wanted[base] = wanted.get(base, False) or recursive

        targets = []
        for path in sorted(wanted):
            if not path.is_dir():
                continue
            covered = any(
                recursive and path != other and other in path.parents
                for other, recursive in wanted.items()
            )
            if not covered:
                targets.append((path, wanted[path]))
        return targets

    def dispatch(self, path: Path) -> int:
        """Fire the reaction of every rule matching a changed path.

        Returns:
            Number of reactions fired.
        """
        fired = 0
        for rule in self.rules:
            if matches(self.project_root, path, rule.patterns):
                run_reaction(rule.reaction, self.session)
                fired += 1
        return fired

    def _dispatch_loop(self) -> None:
        while True:
            path = self._events.get()
            if path is None:
                return
            try:
                self.dispatch(path)
            except Exception as exc:
                # A broken reaction must not stop later events from firing.
                print(f"[watch] Error handling {path}: {type(exc).__name__}: {exc}")


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, events: queue.Queue):
        super().__init__()
        self.events = events

    def on_any_event(self, event):
        if event.is_directory or event.event_type not in _HANDLED_EVENTS:
            return
        target = getattr(event, "dest_path", "") if event.event_type == "moved" else ""
        path = Path(target or event.src_path)
        if "node_modules" in path.parts:
            return
        self.events.put(path)
