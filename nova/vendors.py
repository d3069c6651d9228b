"""Vendor pipeline for Nova.

Copies the allow-listed client-side packages from node_modules into the
distribution tree, untouched. Scripts and styles in the bundle reference
these files, so this pipeline runs first in ``dist``.
"""

from __future__ import annotations

import shutil
from pathlib import Path

from .errors import PipelineError
from .manifest import DIST_VENDOR_DIR, NODE_MODULES_DIR, VENDOR_PACKAGES, expand


def copy_vendors(project_root: Path, packages=VENDOR_PACKAGES) -> list[Path]:
    """Copy each vendor package subtree into dist/assets/vendor.

    Args:
        project_root: Root directory of the theme.
        packages: Sequence of ``(package, pattern)`` pairs; the pattern
            selects files inside the package directory. Files go to
            ``dist/assets/vendor/<name>`` where ``name`` is the package
            name without its npm scope.

    Returns:
        List of copied destination files.

    Raises:
        PipelineError: If node_modules is missing or a copy fails.
    """
    node_modules = project_root / NODE_MODULES_DIR
    if not node_modules.is_dir():
        raise PipelineError(
            "copyVendors",
            f"{node_modules} not found; run `npm install` first",
        )

    dest_root = project_root / DIST_VENDOR_DIR
    copied: list[Path] = []
    for package, pattern in packages:
        package_dir = node_modules / package
        if not package_dir.is_dir():
            print(f"[copyVendors] Package not installed, skipping: {package}")
            continue
        for source in expand(package_dir, (pattern,)):
            # Scoped packages land under their bare name: @yaireo/tagify -> tagify
            dest = dest_root / package_dir.name / source.relative_to(package_dir)
            dest.parent.mkdir(parents=True, exist_ok=True)
            try:
                shutil.copy2(source, dest)
            except OSError as exc:
                raise PipelineError("copyVendors", str(exc), source, exc) from exc
            copied.append(dest)
    print(f"[copyVendors] Copied {len(copied)} files into {DIST_VENDOR_DIR}")
    return copied
