"""Executable discovery for the node-based tools Nova drives.

The prefixer and several image optimizers ship as command-line programs,
usually installed into the theme's ``node_modules/.bin`` by ``npm install``.

Functions:
    find_executable: Locate a tool in the project's node_modules or on PATH.
    warn_missing: Print a one-time notice that an optional tool is absent.
"""

from __future__ import annotations

import shutil
from pathlib import Path

_warned: set[str] = set()


def find_executable(name: str, project_root: Path | None = None) -> str | None:
    """Find an executable in the project's node_modules/.bin or on PATH.

    The project-local binary wins so the theme builds with the versions
    pinned in its package.json.

    Args:
        name: Name of the executable (e.g. 'postcss', 'pngquant').
        project_root: Optional project root holding a node_modules directory.

    Returns:
        Full path to the executable if found, None otherwise.
    """
    if project_root is not None:
        local = project_root / "node_modules" / ".bin" / name
        if local.exists():
            return str(local)
    return shutil.which(name)


def warn_missing(name: str, consequence: str, package: str | None = None) -> None:
    """Tell the user once per process that an optional tool is missing."""
    if name in _warned:
        return
    _warned.add(name)
    print(f"{name} not found; {consequence}.")
    print(f"Install it with `npm install -D {package or name}` in the theme directory.")
