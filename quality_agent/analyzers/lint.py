"""Lint analyzer: runs the linter over Python files."""

import os
from typing import List

from ..errors import ToolError, ToolUnavailableError
from ..models import Issue, IssueCategory, Severity
from ..tools import ToolRouter
from .base import AnalyzerError, AnalyzerOptions, BaseAnalyzer, FileContent


def lint_severity(code: str) -> Severity:
    """Pyflakes (F) and pycodestyle errors (E) are errors, the rest warnings."""
    return Severity.ERROR if code.startswith(("E", "F")) else Severity.WARNING


class LintAnalyzer(BaseAnalyzer):
    """Runs ruff through the ToolRouter and converts its JSON diagnostics."""

    name = "lint"
    description = "Reports linter findings"
    category = IssueCategory.LINT
    default_config = {"timeout": 120.0}

    async def analyze(self, files: List[str], options: AnalyzerOptions) -> List[Issue]:
        targets = self.python_files(files)
        if not targets:
            return []

        router = ToolRouter(options.root_dir, timeout=float(self.settings(options)["timeout"]))
        try:
            result = await router.run_lint(targets)
        except ToolUnavailableError as e:
            self.logger.info(f"Linter unavailable, skipping: {e}")
            return []
        except ToolError as e:
            raise AnalyzerError(f"Lint failed: {e}") from e

        issues = []
        for diagnostic in result.data["diagnostics"]:
            path = os.path.normpath(os.path.join(router.root_dir, diagnostic.get("filename", "")))
            location = diagnostic.get("location") or {}
            end = diagnostic.get("end_location") or {}
            code = str(diagnostic.get("code") or "")
            file = self.read_file(path) or FileContent(path=path, content="", lines=[])
            fix = diagnostic.get("fix") or {}

            issues.append(self.create_issue(
                file,
                int(location.get("row", 1)),
                f"{code} {diagnostic.get('message', '')}".strip(),
                lint_severity(code),
                fingerprint=code,
                column=int(location.get("column", 1)),
                end_line=end.get("row"),
                suggestion=fix.get("message"),
                metadata={"rule": code},
            ))
        return issues
