"""Dead code analyzer: statements that can never run."""

import ast
from typing import List

from ..models import Issue, IssueCategory, Severity
from .base import AnalyzerOptions, BaseAnalyzer, FileContent


_TERMINATORS = (ast.Return, ast.Raise, ast.Continue, ast.Break)
_BLOCK_FIELDS = ("body", "orelse", "finalbody")


def _is_constant_false(test: ast.AST) -> bool:
    return isinstance(test, ast.Constant) and test.value in (False, 0, None, "")


class DeadCodeAnalyzer(BaseAnalyzer):
    """Unreachable statements and never-taken branches in Python files."""

    name = "dead-code"
    description = "Detects unreachable code"
    category = IssueCategory.DEAD_CODE

    async def analyze(self, files: List[str], options: AnalyzerOptions) -> List[Issue]:
        issues = []
        for file in self.read_files(self.python_files(files)):
            issues.extend(self.check(file))
        return issues

    def check(self, file: FileContent) -> List[Issue]:
        try:
            tree = ast.parse(file.content, filename=file.path)
        except (SyntaxError, ValueError):
            # Reported by the bug analyzer
            return []

        issues = []
        for node in ast.walk(tree):
            for field_name in _BLOCK_FIELDS:
                block = getattr(node, field_name, None)
                if isinstance(block, list):
                    issues.extend(self._unreachable(file, block))
            if isinstance(node, (ast.If, ast.While)) and _is_constant_false(node.test):
                issues.append(self.create_issue(
                    file, node.lineno,
                    "Condition is always false; block never runs",
                    Severity.INFO,
                    fingerprint="constant-false",
                    suggestion="Remove the dead branch",
                ))
        return issues

    def _unreachable(self, file: FileContent, block: List[ast.AST]) -> List[Issue]:
        for index, stmt in enumerate(block[:-1]):
            if isinstance(stmt, _TERMINATORS):
                after = block[index + 1]
                keyword = type(stmt).__name__.lower()
                return [self.create_issue(
                    file, after.lineno,
                    f"Unreachable code after '{keyword}'",
                    Severity.INFO,
                    fingerprint=f"unreachable:{keyword}",
                    end_line=getattr(block[-1], "end_lineno", None),
                    suggestion="Remove the unreachable statements",
                )]
        return []
