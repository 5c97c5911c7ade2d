"""Tools for the quality agent."""

from .storage_tool import StorageTool
from .commands import CommandResult, run_command
from .tool_router import ToolRouter, ToolOutput, TOOL_DEFINITIONS, TOOL_NAMES
from .github_tool import GitHubReporter

__all__ = [
    "StorageTool",
    "CommandResult",
    "run_command",
    "ToolRouter",
    "ToolOutput",
    "TOOL_DEFINITIONS",
    "TOOL_NAMES",
    "GitHubReporter",
]
