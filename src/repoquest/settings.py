"""Global settings management for repoquest.

This module handles the global config file at ~/.repoquest/config.yml.
For per-repository configuration, see config.py.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

# Global config file path
CONFIG_PATH = Path.home() / ".repoquest" / "config.yml"


def get_config() -> dict[str, Any]:
    """Get the current repoquest configuration.

    Config file format (~/.repoquest/config.yml):
    ```yaml
    plugins:
      - my_templates.module:MyTemplatePlugin
      - ~/quests/custom.py:CustomTemplatePlugin
    ```

    Returns:
        The config dict, or empty dict if not exists.
    """
    if not CONFIG_PATH.exists():
        return {}

    try:
        content = CONFIG_PATH.read_text()
        return yaml.safe_load(content) or {}
    except (yaml.YAMLError, OSError):
        return {}


def save_config(config: dict[str, Any]) -> None:
    """Save the repoquest configuration."""
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_PATH.write_text(yaml.dump(config, default_flow_style=False, sort_keys=False))


def get_plugin_specs() -> list[str]:
    """Plugin specs listed under ``plugins``, ignoring malformed entries."""
    plugins = get_config().get("plugins") or []
    if not isinstance(plugins, list):
        return []
    return [spec for spec in plugins if isinstance(spec, str)]
