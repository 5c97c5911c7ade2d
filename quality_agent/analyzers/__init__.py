"""Analyzers: the plugin contract and the built-in fallback roster."""

from typing import Dict, Type

from .base import AnalyzerError, AnalyzerOptions, BaseAnalyzer, FileContent
from .security import SecurityAnalyzer
from .stubs import StubAnalyzer
from .duplicates import DuplicateAnalyzer
from .coverage import CoverageAnalyzer
from .bugs import BugAnalyzer
from .typecheck import TypeAnalyzer
from .lint import LintAnalyzer
from .dead_code import DeadCodeAnalyzer
from .registry import (
    AnalyzerPlugin,
    PluginManifest,
    PluginRegistry,
    create_plugin,
    load_plugin_from_path,
    load_plugins_from_directory,
    validate_plugin,
)

# Fallback roster, in run order
BUILTIN_ANALYZERS: Dict[str, Type[BaseAnalyzer]] = {
    "security": SecurityAnalyzer,
    "stub": StubAnalyzer,
    "duplicate": DuplicateAnalyzer,
    "coverage": CoverageAnalyzer,
    "bug": BugAnalyzer,
    "type": TypeAnalyzer,
    "lint": LintAnalyzer,
    "dead-code": DeadCodeAnalyzer,
}


def default_registry() -> PluginRegistry:
    """A fresh registry holding one instance of each built-in analyzer."""
    registry = PluginRegistry()
    for analyzer_class in BUILTIN_ANALYZERS.values():
        registry.register(create_plugin(analyzer_class()))
    return registry


__all__ = [
    "AnalyzerError",
    "AnalyzerOptions",
    "BaseAnalyzer",
    "FileContent",
    "SecurityAnalyzer",
    "StubAnalyzer",
    "DuplicateAnalyzer",
    "CoverageAnalyzer",
    "BugAnalyzer",
    "TypeAnalyzer",
    "LintAnalyzer",
    "DeadCodeAnalyzer",
    "AnalyzerPlugin",
    "PluginManifest",
    "PluginRegistry",
    "create_plugin",
    "load_plugin_from_path",
    "load_plugins_from_directory",
    "validate_plugin",
    "BUILTIN_ANALYZERS",
    "default_registry",
]
