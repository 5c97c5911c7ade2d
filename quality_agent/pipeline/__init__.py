"""Analysis pipeline: agentic loop, group analysis and fix re-analysis."""

from .normalize import map_to_issue_category, map_to_severity
from .file_browser import FileBrowser, PrioritizedFile, AnalysisGroup, ExplorationResult
from .agent_loop import AgenticLoop, Transition, issue_from_params, parse_issues
from .reanalysis import (
    ReAnalysisLoop,
    FixAttempt,
    create_reanalysis_runner,
    generate_summary,
)

__all__ = [
    "map_to_issue_category",
    "map_to_severity",
    "FileBrowser",
    "PrioritizedFile",
    "AnalysisGroup",
    "ExplorationResult",
    "AgenticLoop",
    "Transition",
    "issue_from_params",
    "parse_issues",
    "ReAnalysisLoop",
    "FixAttempt",
    "create_reanalysis_runner",
    "generate_summary",
]
