"""Analyzer plugin registry and plugin loading."""

import importlib.util
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from ..errors import PluginValidationError
from ..utils import get_logger
from .base import BaseAnalyzer


@dataclass
class PluginManifest:
    """Metadata every plugin must declare."""
    name: str
    version: str
    description: str
    category: str = ""
    author: Optional[str] = None
    homepage: Optional[str] = None
    supported_languages: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)


@dataclass
class AnalyzerPlugin:
    manifest: PluginManifest
    analyzer: BaseAnalyzer


def validate_plugin(plugin: AnalyzerPlugin) -> None:
    """
    Check a plugin's manifest and analyzer contract.

    Raises:
        PluginValidationError: A required manifest field is empty, or the
            analyzer does not implement analyze()
    """
    manifest = getattr(plugin, "manifest", None)
    if manifest is None:
        raise PluginValidationError("Plugin must have a manifest")
    for field_name in ("name", "version", "description"):
        value = getattr(manifest, field_name, None)
        if not isinstance(value, str) or not value:
            raise PluginValidationError(f"Plugin manifest must have a {field_name}")
    if not callable(getattr(getattr(plugin, "analyzer", None), "analyze", None)):
        raise PluginValidationError("Plugin analyzer must implement analyze()")


def _manifest_from(value: Union[PluginManifest, Dict[str, Any], None]) -> Dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, PluginManifest):
        return dict(value.__dict__)
    return dict(value)


def create_plugin(
    analyzer: BaseAnalyzer,
    manifest: Union[PluginManifest, Dict[str, Any], None] = None,
) -> AnalyzerPlugin:
    """Wrap an analyzer as a plugin, filling manifest gaps from the analyzer."""
    overrides = _manifest_from(manifest)
    category = getattr(analyzer, "category", "")
    fields = {
        "name": getattr(analyzer, "name", ""),
        "version": "1.0.0",
        "description": getattr(analyzer, "description", ""),
        "category": getattr(category, "value", category),
    }
    fields.update({k: v for k, v in overrides.items() if v is not None})
    return AnalyzerPlugin(manifest=PluginManifest(**fields), analyzer=analyzer)


class PluginRegistry:
    """
    Explicitly constructed registry of analyzer plugins, keyed by name.

    Owned by whoever builds the orchestrator; tests create their own.
    """

    def __init__(self):
        self._plugins: Dict[str, AnalyzerPlugin] = {}

    def register(self, plugin: AnalyzerPlugin) -> None:
        validate_plugin(plugin)
        name = plugin.manifest.name
        if name in self._plugins:
            raise PluginValidationError(f"Plugin '{name}' is already registered")
        self._plugins[name] = plugin

    def register_analyzer(self, analyzer: BaseAnalyzer, **manifest: Any) -> AnalyzerPlugin:
        plugin = create_plugin(analyzer, manifest or None)
        self.register(plugin)
        return plugin

    def unregister(self, name: str) -> bool:
        return self._plugins.pop(name, None) is not None

    def get(self, name: str) -> Optional[AnalyzerPlugin]:
        return self._plugins.get(name)

    def list(self) -> List[AnalyzerPlugin]:
        return list(self._plugins.values())

    def get_analyzers(self) -> List[BaseAnalyzer]:
        return [plugin.analyzer for plugin in self._plugins.values()]

    def has(self, name: str) -> bool:
        return name in self._plugins

    def clear(self) -> None:
        self._plugins.clear()

    def __len__(self) -> int:
        return len(self._plugins)


def load_plugin_from_path(path: str) -> AnalyzerPlugin:
    """
    Import a Python file and return the plugin it exposes.

    The module must define either `plugin` (an AnalyzerPlugin) or both
    `manifest` (PluginManifest or dict) and `analyzer`.

    Raises:
        PluginValidationError: The module failed to import or is not a plugin
    """
    module_name = f"quality_agent_plugin_{os.path.splitext(os.path.basename(path))[0]}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise PluginValidationError(f"Failed to load plugin from {path}: not a Python module")

    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        raise PluginValidationError(f"Failed to load plugin from {path}: {e}") from e

    plugin = getattr(module, "plugin", None)
    if plugin is None:
        manifest = getattr(module, "manifest", None)
        analyzer = getattr(module, "analyzer", None)
        if manifest is None or analyzer is None:
            raise PluginValidationError("Plugin must expose 'plugin' or both 'manifest' and 'analyzer'")
        if isinstance(manifest, dict):
            try:
                manifest = PluginManifest(**manifest)
            except TypeError as e:
                raise PluginValidationError(f"Invalid plugin manifest: {e}") from e
        plugin = AnalyzerPlugin(manifest=manifest, analyzer=analyzer)

    validate_plugin(plugin)
    return plugin


def load_plugins_from_directory(directory: str) -> List[AnalyzerPlugin]:
    """Load every *.py plugin in a directory. Bad plugins are logged and skipped."""
    logger = get_logger()
    plugins = []
    try:
        entries = sorted(os.listdir(directory))
    except OSError as e:
        logger.warning(f"Failed to read plugins directory {directory}: {e}")
        return plugins

    for entry in entries:
        path = os.path.join(directory, entry)
        if not entry.endswith(".py") or entry.startswith("_") or not os.path.isfile(path):
            continue
        try:
            plugins.append(load_plugin_from_path(path))
        except PluginValidationError as e:
            logger.warning(f"Failed to load plugin {entry}: {e}")
    return plugins
