from pathlib import Path

from nova.errors import PipelineError
from nova.watcher import (
    Reload,
    RunPipeline,
    WatchController,
    WatchRule,
    _ChangeHandler,
    default_rules,
    run_reaction,
)


class FakeSession:
    def __init__(self):
        self.css_updates = []
        self.reloads = 0

    def inject_css(self, paths):
        self.css_updates.append(list(paths))

    def reload(self):
        self.reloads += 1


class DummyEvent:
    def __init__(self, path, event_type="modified", is_directory=False, dest_path=""):
        self.src_path = str(path)
        self.dest_path = str(dest_path) if dest_path else ""
        self.event_type = event_type
        self.is_directory = is_directory


class ListQueue:
    def __init__(self):
        self.items = []

    def put(self, item):
        self.items.append(item)


def test_dispatch_fires_matching_rule_once(tmp_path):
    calls = []
    session = FakeSession()
    rules = [
        WatchRule(("assets/include/scss/**/*.scss",), RunPipeline("scss", lambda: calls.append("scss"))),
        WatchRule(("*.html", "html/**/*.html"), Reload()),
    ]
    controller = WatchController(tmp_path, rules, session)
    root = controller.project_root

    assert controller.dispatch(root / "assets/include/scss/core/_buttons.scss") == 1
    assert calls == ["scss"]
    assert session.reloads == 0

    assert controller.dispatch(root / "html/dashboards/index.html") == 1
    assert session.reloads == 1

    assert controller.dispatch(root / "assets/js/hs.core.js") == 0
    assert calls == ["scss"]


def test_run_reaction_logs_pipeline_errors(tmp_path, capsys):
    def broken():
        raise PipelineError("scss", "Undefined variable: $brand", tmp_path / "theme.scss")

    assert run_reaction(RunPipeline("scss", broken), None) is False
    out = capsys.readouterr().out
    assert "[scss] Error: Undefined variable: $brand" in out
    assert "theme.scss" in out
    assert run_reaction(RunPipeline("scss", lambda: None), None) is True


def test_failed_reaction_keeps_dispatching(tmp_path):
    attempts = []

    def flaky():
        attempts.append(1)
        if len(attempts) == 1:
            raise PipelineError("scss", "syntax error")

    rules = [WatchRule(("*.scss",), RunPipeline("scss", flaky))]
    controller = WatchController(tmp_path, rules)
    controller.dispatch(controller.project_root / "a.scss")
    controller.dispatch(controller.project_root / "a.scss")
    assert len(attempts) == 2


def test_unrunnable_prefixer_is_logged(monkeypatch, tmp_path, capsys):
    monkeypatch.setattr("nova.styles.find_executable", lambda name, root=None: "/nm/.bin/postcss")

    def fake_run(cmd, **kwargs):
        raise PermissionError(13, "Permission denied", cmd[0])

    monkeypatch.setattr("subprocess.run", fake_run)
    scss = tmp_path / "assets" / "include" / "scss"
    scss.mkdir(parents=True)
    (scss / "theme.scss").write_text(".a { color: red; }\n", encoding="utf-8")

    styles = default_rules(tmp_path, FakeSession())[0].reaction
    assert run_reaction(styles, None) is False
    assert "[scss] Error: Cannot run /nm/.bin/postcss" in capsys.readouterr().out


def test_dispatch_loop_survives_unexpected_errors(tmp_path, capsys):
    def broken():
        raise OSError("disk vanished")

    session = FakeSession()
    rules = [
        WatchRule(("*.scss",), RunPipeline("scss", broken)),
        WatchRule(("*.html",), Reload()),
    ]
    controller = WatchController(tmp_path, rules, session)
    root = controller.project_root
    controller._events.put(root / "theme.scss")
    controller._events.put(root / "index.html")
    controller._events.put(None)

    controller._dispatch_loop()

    assert session.reloads == 1
    assert "[watch] Error handling" in capsys.readouterr().out


def test_saving_style_source_updates_one_file(monkeypatch, tmp_path):
    monkeypatch.setattr("nova.styles.find_executable", lambda name, root=None: None)
    scss = tmp_path / "assets" / "include" / "scss"
    scss.mkdir(parents=True)
    (scss / "theme.scss").write_text(".a { color: red; }\n", encoding="utf-8")
    (scss / "docs.scss").write_text(".b { color: blue; }\n", encoding="utf-8")

    session = FakeSession()
    controller = WatchController(tmp_path, default_rules(tmp_path, session), session)
    run_reaction(controller.rules[0].reaction, session)
    session.css_updates.clear()
    docs_css = tmp_path / "assets" / "css" / "docs.css"
    docs_mtime = docs_css.stat().st_mtime_ns

    (scss / "theme.scss").write_text(".a { color: green; }\n", encoding="utf-8")
    fired = controller.dispatch(controller.project_root / "assets/include/scss/theme.scss")

    assert fired == 1
    assert session.css_updates == [["/assets/css/theme.css"]]
    assert session.reloads == 0
    assert "green" in (tmp_path / "assets" / "css" / "theme.css").read_text()
    assert docs_css.stat().st_mtime_ns == docs_mtime


def test_watch_targets(tmp_path):
    for folder in ("assets/include/scss", "html", "documentation"):
        (tmp_path / folder).mkdir(parents=True)
    controller = WatchController(tmp_path, default_rules(tmp_path, FakeSession()))
    root = controller.project_root
    targets = dict(controller.watch_targets())
    assert targets == {
        root: False,
        root / "assets/include/scss": True,
        root / "documentation": True,
        root / "html": True,
    }


def test_watch_targets_skip_nested(tmp_path):
    (tmp_path / "src" / "scss").mkdir(parents=True)
    rules = [
        WatchRule(("src/**/*.js",), Reload()),
        WatchRule(("src/scss/**/*.scss",), Reload()),
    ]
    controller = WatchController(tmp_path, rules)
    assert controller.watch_targets() == [(controller.project_root / "src", True)]


def test_start_schedules_observer(monkeypatch, tmp_path):
    (tmp_path / "html").mkdir()
    scheduled = []

    class DummyObserver:
        def schedule(self, handler, path, recursive):
            scheduled.append((path, recursive))

        def start(self):
            scheduled.append(("started", True))

        def stop(self):
            scheduled.append(("stopped", False))

        def join(self):
            scheduled.append(("joined", False))

    monkeypatch.setattr("nova.watcher.Observer", DummyObserver)
    controller = WatchController(tmp_path, default_rules(tmp_path, FakeSession()))
    assert controller.state == "idle"
    controller.start()
    controller.start()
    assert controller.state == "watching"
    assert scheduled.count(("started", True)) == 1
    assert (str(controller.project_root / "html"), True) in scheduled
    controller.stop()
    assert ("joined", False) in scheduled


def test_change_handler_filters_events(tmp_path):
    events = ListQueue()
    handler = _ChangeHandler(events)

    handler.on_any_event(DummyEvent(tmp_path / "a.scss"))
    handler.on_any_event(DummyEvent(tmp_path / "dir", is_directory=True))
    handler.on_any_event(DummyEvent(tmp_path / "a.scss", event_type="closed"))
    handler.on_any_event(DummyEvent(tmp_path / "node_modules" / "x.html"))
    handler.on_any_event(
        DummyEvent(tmp_path / "a.tmp", event_type="moved", dest_path=tmp_path / "b.scss")
    )
    handler.on_any_event(DummyEvent(tmp_path / "gone.scss", event_type="deleted"))

    assert events.items == [
        Path(tmp_path / "a.scss"),
        Path(tmp_path / "b.scss"),
        Path(tmp_path / "gone.scss"),
    ]


def test_default_rules(tmp_path):
    session = FakeSession()
    styles, markup = default_rules(tmp_path, session)
    assert isinstance(styles.reaction, RunPipeline)
    assert styles.reaction.name == "scss"
    assert markup.reaction == Reload()
    assert "documentation/**/*.html" in markup.patterns
