"""Analyzer contract shared by the fallback roster and third-party plugins."""

import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..errors import QualityAgentError
from ..models import Issue, IssueCategory, Severity, SourceLocation
from ..utils import get_logger


class AnalyzerError(QualityAgentError):
    """An analyzer could not complete its run."""


@dataclass
class AnalyzerOptions:
    """Per-run options handed to every analyzer."""
    root_dir: str
    config: Dict[str, Any] = field(default_factory=dict)  # Analyzer-specific settings
    verbose: bool = False


@dataclass
class FileContent:
    path: str
    content: str
    lines: List[str]


_COMMENT_LINE = re.compile(r"^\s*(#|//|/\*|\*|<!--|--)")
_COMMENT_START = re.compile(r"#|//|/\*|<!--")


class BaseAnalyzer(ABC):
    """
    Base class for analyzers.

    Subclasses set name, description and category, and implement
    analyze(files, options). Settings come from default_config overlaid
    with options.config.
    """

    name: str = ""
    description: str = ""
    category: IssueCategory = IssueCategory.BUG
    default_config: Dict[str, Any] = {}

    def __init__(self):
        self.logger = get_logger()

    @abstractmethod
    async def analyze(self, files: List[str], options: AnalyzerOptions) -> List[Issue]:
        """
        Analyze files and return issues.

        Args:
            files: Absolute paths to analyze
            options: Project root and analyzer settings

        Returns:
            Issues found (empty list when nothing applies)
        """

    def settings(self, options: AnalyzerOptions) -> Dict[str, Any]:
        merged = dict(self.default_config)
        merged.update(options.config or {})
        return merged

    def read_file(self, path: str) -> Optional[FileContent]:
        """Read a file, or None if it vanished or is not a regular file."""
        try:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                content = f.read()
        except (FileNotFoundError, IsADirectoryError):
            return None
        return FileContent(path=path, content=content, lines=content.split("\n"))

    def read_files(self, paths: List[str]) -> List[FileContent]:
        files = [self.read_file(p) for p in paths]
        return [f for f in files if f is not None]

    def create_issue(
        self,
        file: FileContent,
        line: int,
        message: str,
        severity: Severity,
        fingerprint: Optional[str] = None,
        column: int = 1,
        **kwargs: Any,
    ) -> Issue:
        """
        Build an issue in this analyzer's category.

        The offending source line is recorded as code_snippet so the tracker
        can later tell whether the issue went stale.
        """
        metadata = kwargs.pop("metadata", {})
        metadata.setdefault("source", self.name)
        snippet = file.lines[line - 1].strip() if 0 < line <= len(file.lines) else None
        return Issue.create(
            category=self.category,
            severity=severity,
            location=SourceLocation(file=file.path, line=line, column=column, end_line=kwargs.pop("end_line", None)),
            message=message,
            fingerprint=fingerprint,
            metadata=metadata,
            code_snippet=snippet or None,
            **kwargs,
        )

    @staticmethod
    def is_comment_line(line: str) -> bool:
        return bool(_COMMENT_LINE.match(line))

    @staticmethod
    def comment_start(line: str) -> int:
        """Index where a trailing comment starts, or -1."""
        match = _COMMENT_START.search(line)
        return match.start() if match else -1

    @staticmethod
    def relative_path(path: str, root_dir: str) -> str:
        return os.path.relpath(path, root_dir).replace(os.sep, "/")

    @staticmethod
    def python_files(files: List[str]) -> List[str]:
        return [f for f in files if f.endswith((".py", ".pyi"))]
