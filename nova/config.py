"""Configuration loading for Nova.

Pipeline paths are fixed in the manifest module. The only tunable settings
belong to the development server and live in an optional ``nova.yaml`` at the
project root.

Key functions:
- load_config: Loads dev-server configuration with defaults applied.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

CONFIG_FILENAME = "nova.yaml"

DEFAULT_CONFIG = {
    "port": 3000,
    "ws_port": None,
    "start_path": "ui-components/widgets.html",
}


def load_config(project_root: Path) -> dict[str, Any]:
    """Load dev-server configuration from nova.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary containing configuration values, with defaults applied.
        ``ws_port`` is always resolved (``port + 1`` when unset).
    """
    config_path = project_root / CONFIG_FILENAME
    config = DEFAULT_CONFIG.copy()
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
            if isinstance(loaded, dict):
                config.update(loaded)
    config["port"] = int(config["port"])
    if config.get("ws_port") is None:
        config["ws_port"] = config["port"] + 1
    else:
        config["ws_port"] = int(config["ws_port"])
    return config
