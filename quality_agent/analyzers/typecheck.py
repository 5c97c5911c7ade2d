"""Type analyzer: runs the type checker over Python files."""

import os
from typing import List

from ..errors import ToolError, ToolUnavailableError
from ..models import Issue, IssueCategory, Severity
from ..tools import ToolRouter
from .base import AnalyzerError, AnalyzerOptions, BaseAnalyzer, FileContent


class TypeAnalyzer(BaseAnalyzer):
    """
    Runs mypy (or the configured type checker) through the ToolRouter.

    A missing checker yields no issues; a timeout or crash is an
    AnalyzerError so the orchestrator reports the analyzer as failed.
    """

    name = "type"
    description = "Reports type errors from the type checker"
    category = IssueCategory.TYPE
    default_config = {"timeout": 120.0}

    async def analyze(self, files: List[str], options: AnalyzerOptions) -> List[Issue]:
        targets = self.python_files(files)
        if not targets:
            return []

        router = ToolRouter(options.root_dir, timeout=float(self.settings(options)["timeout"]))
        try:
            result = await router.run_type_check(targets)
        except ToolUnavailableError as e:
            self.logger.info(f"Type checker unavailable, skipping: {e}")
            return []
        except ToolError as e:
            raise AnalyzerError(f"Type check failed: {e}") from e

        issues = []
        for diagnostic in result.data["diagnostics"]:
            path = os.path.normpath(os.path.join(router.root_dir, diagnostic["file"]))
            file = self.read_file(path) or FileContent(path=path, content="", lines=[])
            issues.append(self.create_issue(
                file,
                diagnostic["line"],
                diagnostic["message"],
                Severity.ERROR if diagnostic["level"] == "error" else Severity.WARNING,
                column=diagnostic["column"],
            ))
        return issues
