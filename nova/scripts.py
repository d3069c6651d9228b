"""Script pipeline for Nova.

Concatenates the theme's JavaScript, in manifest order, into a single bundle
and minifies it with rjsmin.
"""

from __future__ import annotations

from pathlib import Path

from rjsmin import jsmin

from .errors import PipelineError
from .manifest import DIST_JS_DIR, JS_BUNDLE_NAME, JS_SOURCES, expand
from .utils import write_if_changed


def concat_scripts(sources: list[Path]) -> str:
    """Join script sources with newlines, keeping their order."""
    parts = []
    for source in sources:
        try:
            parts.append(source.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as exc:
            raise PipelineError("minJS", str(exc), source, exc) from exc
    return "\n".join(parts)


def minify_scripts(project_root: Path) -> list[Path]:
    """Bundle and minify the theme scripts into dist/assets/js/theme.min.js.

    The bundle order is the manifest order: the core file first, then every
    component (sorted by path), then the custom file. Later files may rely on
    symbols the earlier ones define.

    Args:
        project_root: Root directory of the theme.

    Returns:
        List containing the written bundle.

    Raises:
        PipelineError: If a required script is missing or unreadable.
    """
    try:
        sources = expand(project_root, JS_SOURCES, strict=True)
    except FileNotFoundError as exc:
        raise PipelineError("minJS", str(exc), original_error=exc) from exc

    bundle = concat_scripts(sources)
    minified = jsmin(bundle, keep_bang_comments=True)
    dest = project_root / DIST_JS_DIR / JS_BUNDLE_NAME
    write_if_changed(dest, minified.encode("utf-8"))
    print(f"[minJS] Bundled {len(sources)} scripts into {JS_BUNDLE_NAME}")
    return [dest]
