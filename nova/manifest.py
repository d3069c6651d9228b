"""Path manifest for the Nova theme.

This module maps each logical asset group to the glob patterns it reads and
the directory it writes. All paths are project-relative POSIX strings; the
project root is always the directory the CLI runs from.

Glob syntax:
    *     matches any characters within a single path segment.
    ?     matches a single character within a path segment.
    **/   matches zero or more directories.

Key functions:
    expand: Resolve a pattern set into an ordered list of files.
    matches: Check whether a single path belongs to a pattern set.
    glob_base: Return the wildcard-free directory prefix of a pattern.
"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path

# Styles
SCSS_SOURCES = ("assets/include/scss/**/*.scss",)
CSS_DIR = "assets/css"
CSS_MIN_SOURCES = ("assets/css/theme.css",)
DIST_CSS_DIR = "dist/assets/css"

AUTOPREFIXER_BROWSERS = (
    "last 1 major version",
    ">= 1%",
    "Chrome >= 45",
    "Firefox >= 38",
    "Edge >= 12",
    "Explorer >= 10",
    "iOS >= 9",
    "Safari >= 9",
    "Android >= 4.4",
    "Opera >= 30",
)

# Markup that triggers a full browser reload
HTML_SOURCES = (
    "*.html",
    "html/**/*.html",
    "starter/**/*.html",
    "documentation/**/*.html",
)

# Scripts (order is significant: later files use symbols from earlier ones)
JS_SOURCES = (
    "assets/js/hs.core.js",
    "assets/js/components/**/*",
    "assets/js/theme-custom.js",
)
JS_BUNDLE_NAME = "theme.min.js"
DIST_JS_DIR = "dist/assets/js"

# Images
IMG_SOURCES = ("assets/img/**/*",)
DIST_IMG_DIR = "dist/assets/img"
IMAGE_CACHE_DIR = ".cache/images"

# Vendors: (package directory under node_modules, files to copy)
NODE_MODULES_DIR = "node_modules"
DIST_VENDOR_DIR = "dist/assets/vendor"
VENDOR_PACKAGES = (
    ("@yaireo/tagify", "**/*.*"),
    ("animate.css", "**/*"),
    ("chartist", "**/*"),
    ("clipboard", "**/*"),
    ("datatables", "**/*"),
    ("datatables.net-buttons", "**/*.*"),
    ("daterangepicker", "**/*.*"),
    ("flatpickr", "**/*"),
    ("ion-rangeslider", "**/*"),
    ("jquery", "**/*"),
    ("jquery-migrate", "**/*"),
    ("jquery-validation", "**/*"),
    ("jquery-mask-plugin", "**/*.*"),
    ("jszip", "**/*.*"),
    ("malihu-custom-scrollbar-plugin", "**/*"),
    ("pdfmake", "**/*.*"),
    ("popper.js", "**/*"),
    ("select2", "**/*.*"),
    ("summernote", "**/*"),
    ("table-edits", "**/*.*"),
)

_WILDCARDS = set("*?")


def has_magic(pattern: str) -> bool:
    """Check if a pattern contains glob wildcards."""
    return any(ch in _WILDCARDS for ch in pattern)


def glob_base(pattern: str) -> str:
    """Return the leading directory segments of a pattern that hold no wildcards.

    This is the directory that output paths are made relative to, so a
    pattern like ``assets/img/**/*`` keeps sub-folders below ``assets/img``.

    Args:
        pattern: Project-relative glob pattern.

    Returns:
        POSIX directory path, or an empty string for the project root.

    Examples:
        >>> glob_base("assets/img/**/*")
        'assets/img'

        >>> glob_base("assets/js/hs.core.js")
        'assets/js'
    """
    parts = pattern.split("/")
    base: list[str] = []
    for part in parts[:-1]:
        if has_magic(part):
            break
        base.append(part)
    return "/".join(base)


def expand(project_root: Path, patterns, strict: bool = False) -> list[Path]:
    """Resolve a pattern set into files, preserving pattern order.

    Matches of a single pattern are sorted; a file matched by several
    patterns appears only at its first position. Wildcards skip hidden
    files and directories below the pattern's base.

    Args:
        project_root: Root directory of the project.
        patterns: Ordered sequence of glob patterns.
        strict: Raise when a wildcard-free pattern matches nothing.

    Returns:
        List of matched file paths.

    Raises:
        FileNotFoundError: If strict and a literal pattern has no file.
    """
    seen: set[Path] = set()
    files: list[Path] = []
    for pattern in patterns:
        if has_magic(pattern):
            base = project_root / glob_base(pattern)
            found = sorted(
                p
                for p in project_root.glob(pattern)
                if p.is_file() and not _is_hidden(p.relative_to(base))
            )
        else:
            candidate = project_root / pattern
            if candidate.is_file():
                found = [candidate]
            elif strict:
                raise FileNotFoundError(f"File not found with singular glob: {candidate}")
            else:
                found = []
        for path in found:
            if path not in seen:
                seen.add(path)
                files.append(path)
    return files


def _is_hidden(rel: Path) -> bool:
    # Wildcards never match dotfiles or dot-directories (.DS_Store, .npmignore).
    return any(part.startswith(".") for part in rel.parts)


def matches(project_root: Path, path: Path, patterns) -> bool:
    """Check whether a path under the project root matches any pattern.

    Args:
        project_root: Root directory of the project.
        path: Absolute or root-relative path to test.
        patterns: Glob patterns to test against.

    Returns:
        True if at least one pattern matches. Paths outside the root never match.
    """
    path = Path(path)
    if path.is_absolute():
        try:
            path = path.relative_to(project_root)
        except ValueError:
            return False
    rel = path.as_posix()
    return any(_compile(pattern).match(rel) for pattern in patterns)


@lru_cache(maxsize=None)
def _compile(pattern: str) -> re.Pattern:
    """Translate a glob pattern into an anchored regular expression."""
    out = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            out.append(".*")
            i += 2
        elif pattern[i] == "*":
            out.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            out.append("[^/]")
            i += 1
        else:
            out.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(out) + r"\Z")
