from click.testing import CliRunner

from nova import __version__
from nova.cli import cli


def create_theme(root):
    (root / "assets" / "css").mkdir(parents=True)
    (root / "assets" / "css" / "theme.css").write_text(".btn {\n  color: red;\n}\n", encoding="utf-8")
    js = root / "assets" / "js"
    (js / "components").mkdir(parents=True)
    (js / "hs.core.js").write_text("var HSCore = {};\n", encoding="utf-8")
    (js / "components" / "hs.header.js").write_text("HSCore.header = 1;\n", encoding="utf-8")
    (js / "theme-custom.js").write_text("HSCore.header += 1;\n", encoding="utf-8")
    (root / "assets" / "img").mkdir(parents=True)
    (root / "assets" / "img" / "readme.txt").write_text("not an image", encoding="utf-8")
    return root


def test_single_pipeline_commands(monkeypatch, tmp_path):
    project = create_theme(tmp_path)
    monkeypatch.chdir(project)
    runner = CliRunner()

    result = runner.invoke(cli, ["minCSS"], catch_exceptions=False)
    assert result.exit_code == 0
    assert ".btn{color:red}" in (project / "dist/assets/css/theme.min.css").read_text()
    assert "Finished 'minCSS'" in result.output

    result = runner.invoke(cli, ["minJS"], catch_exceptions=False)
    assert result.exit_code == 0
    assert (project / "dist/assets/js/theme.min.js").exists()

    result = runner.invoke(cli, ["minIMG"], catch_exceptions=False)
    assert result.exit_code == 0
    assert (project / "dist/assets/img/readme.txt").exists()


def test_single_pipeline_failure_exits_nonzero(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(cli, ["minJS"])
    assert result.exit_code == 1
    assert "Task failed:" in result.output
    assert "hs.core.js" in result.output


def test_dist_stops_at_first_failure(monkeypatch, tmp_path):
    project = create_theme(tmp_path)
    monkeypatch.chdir(project)
    result = CliRunner().invoke(cli, ["dist"])
    assert result.exit_code == 1
    assert "Task: copyVendors" in result.output
    assert "npm install" in result.output
    assert not (project / "dist").exists()


def test_dist_runs_every_pipeline(monkeypatch, tmp_path):
    project = create_theme(tmp_path)
    (project / "node_modules" / "jquery").mkdir(parents=True)
    (project / "node_modules" / "jquery" / "jquery.js").write_text("jq", encoding="utf-8")
    monkeypatch.chdir(project)

    result = CliRunner().invoke(cli, ["dist"], catch_exceptions=False)
    assert result.exit_code == 0
    dist = project / "dist" / "assets"
    assert (dist / "vendor/jquery/jquery.js").exists()
    assert (dist / "css/theme.min.css").exists()
    assert (dist / "js/theme.min.js").exists()
    assert (dist / "img/readme.txt").exists()
    assert result.output.index("Starting 'copyVendors'") < result.output.index("Starting 'minCSS'")


def test_scss_command(monkeypatch, tmp_path):
    monkeypatch.setattr("nova.styles.find_executable", lambda name, root=None: None)
    scss = tmp_path / "assets" / "include" / "scss"
    scss.mkdir(parents=True)
    (scss / "theme.scss").write_text("$c: red;\n.a { color: $c; }\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli, ["scss"], catch_exceptions=False)
    assert result.exit_code == 0
    assert "color: red;" in (tmp_path / "assets/css/theme.css").read_text()


def test_default_task_starts_interactive_mode(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    called = []
    monkeypatch.setattr(
        "nova.cli._run_interactive",
        lambda root, port, ws_port, open_browser: called.append((port, ws_port, open_browser)),
    )
    runner = CliRunner()
    assert runner.invoke(cli, [], catch_exceptions=False).exit_code == 0
    assert runner.invoke(
        cli, ["default", "--port", "5050", "--ws-port", "5051", "--open"], catch_exceptions=False
    ).exit_code == 0
    assert called == [(None, None, False), (5050, 5051, True)]


def test_version():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_module_main_entrypoint():
    from nova.__main__ import main

    assert callable(main)
