"""Utility functions for Nova.

Key functions:
    write_if_changed: Write bytes only when they differ from the file on disk.
    url_path: Convert a project file into its URL path on the dev server.
"""

from __future__ import annotations

from pathlib import Path


def write_if_changed(dest: Path, data: bytes) -> bool:
    """Write data to dest unless the file already holds identical bytes.

    Leaving unchanged files alone keeps their modification time, so browsers,
    watchers and later runs do not see spurious updates.

    Args:
        dest: Destination file path; parent directories are created.
        data: Bytes to write.

    Returns:
        True if the file was written.
    """
    if dest.is_file() and dest.read_bytes() == data:
        return False
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_bytes(data)
    return True


def url_path(project_root: Path, path: Path) -> str:
    """Return the URL path the dev server uses for a project file.

    Examples:
        >>> url_path(Path("/site"), Path("/site/assets/css/theme.css"))
        '/assets/css/theme.css'
    """
    return "/" + path.relative_to(project_root).as_posix()


def format_size(num_bytes: int) -> str:
    """Format a byte count the way optimizer summaries report it."""
    if abs(num_bytes) < 1000:
        return f"{num_bytes} B"
    return f"{num_bytes / 1000:.1f} kB"
