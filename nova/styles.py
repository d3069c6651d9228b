"""Style pipelines for Nova.

This module compiles the theme's SCSS into CSS and minifies the compiled
theme stylesheet for distribution.

Key functions:
- compile_styles: SCSS -> expanded CSS -> vendor prefixes -> assets/css.
- autoprefix: Run the postcss autoprefixer over a compiled stylesheet.
- minify_styles: assets/css/theme.css -> dist/assets/css/theme.min.css.
"""

from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING

import rcssmin
import sass

from .errors import PipelineError
from .executable_utils import find_executable, warn_missing
from .manifest import (
    AUTOPREFIXER_BROWSERS,
    CSS_DIR,
    CSS_MIN_SOURCES,
    DIST_CSS_DIR,
    SCSS_SOURCES,
    expand,
    glob_base,
)
from .utils import url_path, write_if_changed

if TYPE_CHECKING:
    from .server import LiveReloadSession


def compile_styles(
    project_root: Path, session: LiveReloadSession | None = None
) -> list[Path]:
    """Compile every SCSS entry point into prefixed CSS.

    Partials (files whose name starts with ``_``) are only compiled through
    the entry points that import them. Each output mirrors its source path
    below the SCSS base directory, e.g. ``assets/include/scss/theme.scss``
    becomes ``assets/css/theme.css``.

    Args:
        project_root: Root directory of the theme.
        session: Live-reload session to notify when stylesheets change.

    Returns:
        List of stylesheets whose content changed.

    Raises:
        PipelineError: If a source fails to compile or prefixing fails.
    """
    base = project_root / glob_base(SCSS_SOURCES[0])
    dest_dir = project_root / CSS_DIR
    changed: list[Path] = []

    for source in expand(project_root, SCSS_SOURCES):
        if source.name.startswith("_"):
            continue
        dest = dest_dir / source.relative_to(base).with_suffix(".css")

        try:
            css = sass.compile(
                filename=str(source),
                output_style="expanded",
                include_paths=[str(base)],
            )
        except sass.CompileError as exc:
            raise PipelineError("scss", str(exc).strip(), source, exc) from exc
        except OSError as exc:
            # Source removed or unreadable between the glob and the compile.
            raise PipelineError("scss", str(exc), source, exc) from exc

        prefixed = autoprefix(project_root, css, source)
        try:
            written = write_if_changed(dest, prefixed.encode("utf-8"))
        except OSError as exc:
            raise PipelineError("scss", f"Cannot write {dest}: {exc}", source, exc) from exc
        if written:
            changed.append(dest)

    if changed:
        print(f"[scss] Compiled {', '.join(url_path(project_root, p) for p in changed)}")
        if session is not None:
            session.inject_css([url_path(project_root, p) for p in changed])
    return changed


def autoprefix(project_root: Path, css: str, source: Path) -> str:
    """Add vendor prefixes to a stylesheet for the supported browser list.

    Runs ``postcss --use autoprefixer`` with the theme's browser list passed
    through ``BROWSERSLIST``. The compiled CSS is piped through stdin so the
    output file is only written once. When postcss is not installed the
    stylesheet is returned unprefixed.

    Because nothing is written before prefixing, a postcss failure leaves
    the previous stylesheet in ``assets/css`` untouched rather than an
    unprefixed copy of the new one. The page keeps the last good styles
    until the error is fixed.

    Args:
        project_root: Root directory of the theme.
        css: Compiled CSS text.
        source: SCSS file the CSS came from, used in error reports.

    Returns:
        Prefixed CSS text.

    Raises:
        PipelineError: If postcss cannot be started or exits with an error.
    """
    postcss_bin = find_executable("postcss", project_root)
    if not postcss_bin:
        warn_missing(
            "postcss",
            "writing CSS without vendor prefixes",
            package="postcss-cli autoprefixer",
        )
        return css

    env = dict(os.environ, BROWSERSLIST=", ".join(AUTOPREFIXER_BROWSERS))
    cmd = [postcss_bin, "--use", "autoprefixer", "--no-map"]
    try:
        result = subprocess.run(cmd, input=css, capture_output=True, text=True, env=env)
    except OSError as exc:
        raise PipelineError("autoprefixer", f"Cannot run {postcss_bin}: {exc}", source, exc) from exc
    if result.returncode != 0:
        raise PipelineError("autoprefixer", result.stderr.strip(), source)
    return result.stdout


def minify_styles(project_root: Path) -> list[Path]:
    """Minify the compiled theme stylesheet into the distribution tree.

    Args:
        project_root: Root directory of the theme.

    Returns:
        List of written ``.min.css`` files.

    Raises:
        PipelineError: If the compiled stylesheet is missing or unreadable.
    """
    try:
        sources = expand(project_root, CSS_MIN_SOURCES, strict=True)
    except FileNotFoundError as exc:
        raise PipelineError("minCSS", str(exc), original_error=exc) from exc

    dest_dir = project_root / DIST_CSS_DIR
    written = []
    for source in sources:
        try:
            css = source.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise PipelineError("minCSS", str(exc), source, exc) from exc
        # Keep /*! license */ comments, as clean-css does in ie11 mode.
        minified = rcssmin.cssmin(css, keep_bang_comments=True)
        dest = dest_dir / f"{source.stem}.min.css"
        write_if_changed(dest, minified.encode("utf-8"))
        written.append(dest)
    return written
