"""Utility modules."""

from .logging import setup_logging, get_logger
from .files import find_files, matches_any, detect_language
from .metrics import (
    deduplicate_issues,
    sort_issues,
    cap_issues,
    summarize,
    format_report,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "find_files",
    "matches_any",
    "detect_language",
    "deduplicate_issues",
    "sort_issues",
    "cap_issues",
    "summarize",
    "format_report",
]
