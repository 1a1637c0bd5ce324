"""Pluggy hookspecs for repoquest templates."""

from __future__ import annotations

import importlib
import importlib.util
import logging
from importlib.metadata import entry_points
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pluggy

if TYPE_CHECKING:
    from repoquest.package import QuestPackage
    from repoquest.template import QuestTemplate

logger = logging.getLogger(__name__)

hookspec = pluggy.HookspecMarker("repoquest")
hookimpl = pluggy.HookimplMarker("repoquest")


class RepoQuestSpec:
    """Hook specifications for repoquest plugins."""

    @hookspec
    def repoquest_get_template_info(self) -> list[dict[str, str]]:
        """Describe the templates this plugin provides.

        Returns:
            List of dicts with 'name' (identifier like 'starter') and
            'description' (human-readable description).
        """

    @hookspec(firstresult=True)
    def repoquest_create_template(
        self, name: str, package: QuestPackage | None
    ) -> QuestTemplate | None:
        """Build the template called ``name``.

        Args:
            name: Template identifier from the project config.
            package: The quest package, if the caller has one.

        Returns:
            A QuestTemplate, or None if this plugin does not provide ``name``.
        """


def get_plugin_manager() -> pluggy.PluginManager:
    """Create and configure the plugin manager."""
    pm = pluggy.PluginManager("repoquest")
    pm.add_hookspecs(RepoQuestSpec)
    return pm


def register_builtin_plugins(pm: pluggy.PluginManager) -> None:
    """Register the built-in templates."""
    from repoquest.template import BuiltinTemplatesPlugin

    pm.register(BuiltinTemplatesPlugin(), name="builtin")


def load_plugins_from_entry_points(pm: pluggy.PluginManager) -> int:
    """Load plugins declared under the ``repoquest`` entry point group.

    Class entry points are instantiated before registration.

    Returns:
        Number of plugins loaded.
    """
    count = 0
    for ep in entry_points(group="repoquest"):
        try:
            plugin_obj = ep.load()
            if isinstance(plugin_obj, type):
                plugin_obj = plugin_obj()
            if not pm.is_registered(plugin_obj):
                pm.register(plugin_obj, name=ep.name)
                count += 1
        except Exception as e:
            logger.warning("Skipping plugin %s: %s", ep.name, e)
    return count


def load_plugins_from_config(pm: pluggy.PluginManager) -> int:
    """Load plugins listed in the global settings file.

    Returns:
        Number of plugins loaded.
    """
    from repoquest.settings import get_plugin_specs

    count = 0
    for spec in get_plugin_specs():
        try:
            plugin = load_plugin_from_spec(spec)
            if not pm.is_registered(plugin):
                pm.register(plugin)
                count += 1
        except Exception as e:
            logger.warning("Skipping plugin %s: %s", spec, e)
    return count


def load_plugin_from_spec(spec: str) -> Any:
    """Load a plugin from a specification string.

    Args:
        spec: Either "package.module:ClassName" or "/path/to/file.py:ClassName"

    Returns:
        Instantiated plugin object.
    """
    if ":" not in spec:
        raise ValueError(f"Invalid plugin spec '{spec}': must contain ':'")

    module_path, class_name = spec.rsplit(":", 1)

    if module_path.endswith(".py"):
        file_path = Path(module_path).expanduser().resolve()
        if not file_path.exists():
            raise FileNotFoundError(f"Plugin file not found: {file_path}")

        spec_obj = importlib.util.spec_from_file_location(file_path.stem, file_path)
        if spec_obj is None or spec_obj.loader is None:
            raise ImportError(f"Cannot load module from {file_path}")

        module = importlib.util.module_from_spec(spec_obj)
        spec_obj.loader.exec_module(module)
    else:
        module = importlib.import_module(module_path)

    plugin_class = getattr(module, class_name)
    return plugin_class()


_configured_plugin_manager: pluggy.PluginManager | None = None


def get_configured_plugin_manager() -> pluggy.PluginManager:
    """Get a plugin manager with all plugins registered.

    Loads plugins from:
    1. Built-in templates (starter, solution)
    2. Pip-installed plugins (via entry points)
    3. The global settings file (~/.repoquest/config.yml)

    The manager is cached, so repeated calls return the same instance.
    """
    global _configured_plugin_manager
    if _configured_plugin_manager is None:
        _configured_plugin_manager = get_plugin_manager()
        register_builtin_plugins(_configured_plugin_manager)
        load_plugins_from_entry_points(_configured_plugin_manager)
        load_plugins_from_config(_configured_plugin_manager)
    return _configured_plugin_manager


def reset_plugin_manager() -> None:
    """Reset the cached plugin manager so plugins are reloaded."""
    global _configured_plugin_manager
    _configured_plugin_manager = None


def list_templates() -> list[dict[str, str]]:
    """List the templates every registered plugin provides."""
    pm = get_configured_plugin_manager()
    templates = []
    for infos in pm.hook.repoquest_get_template_info():
        templates.extend(infos or [])
    return templates


def get_template(name: str, package: QuestPackage | None = None) -> QuestTemplate:
    """Build the template called ``name``.

    Raises:
        ValueError: If no registered plugin provides ``name``.
    """
    pm = get_configured_plugin_manager()
    template = pm.hook.repoquest_create_template(name=name, package=package)
    if template is None:
        raise ValueError(f"Unknown template: {name}")
    return template
