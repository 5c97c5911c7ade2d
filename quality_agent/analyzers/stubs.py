"""Stub analyzer: TODO-style markers and placeholder implementations."""

import ast
import re
from typing import List

from ..models import Issue, IssueCategory, Severity
from .base import AnalyzerOptions, BaseAnalyzer, FileContent


STUB_MARKERS = re.compile(r"\b(TODO|FIXME|HACK|XXX|STUB|NOT\s+IMPLEMENTED|PLACEHOLDER|WIP)\b", re.I)

MARKER_SEVERITY = {
    "FIXME": Severity.ERROR,
    "XXX": Severity.ERROR,
    "HACK": Severity.ERROR,
    "TODO": Severity.WARNING,
}

NOT_IMPLEMENTED = [
    re.compile(r"\braise\s+NotImplementedError\b"),
    re.compile(r"""throw\s+new\s+Error\s*\(\s*['"`][^'"`]*not\s*(?:yet\s*)?implemented""", re.I),
]


def marker_severity(marker: str) -> Severity:
    return MARKER_SEVERITY.get(marker.upper(), Severity.INFO)


def _is_abstract(node: ast.AST) -> bool:
    for decorator in getattr(node, "decorator_list", []):
        name = decorator.attr if isinstance(decorator, ast.Attribute) else getattr(decorator, "id", "")
        if name in ("abstractmethod", "overload", "abstractproperty"):
            return True
    return False


def _is_docstring(stmt: ast.stmt) -> bool:
    return isinstance(stmt, ast.Expr) and isinstance(stmt.value, ast.Constant) and isinstance(stmt.value.value, str)


def _is_placeholder_body(body: List[ast.stmt]) -> bool:
    """Only a docstring and/or pass / ... ."""
    statements = body[1:] if body and _is_docstring(body[0]) else list(body)
    if not statements:
        return False
    for stmt in statements:
        if isinstance(stmt, ast.Pass):
            continue
        if isinstance(stmt, ast.Expr) and isinstance(stmt.value, ast.Constant) and stmt.value.value is Ellipsis:
            continue
        return False
    return True


class StubAnalyzer(BaseAnalyzer):
    """
    Finds incomplete code.

    - Marker comments: FIXME/XXX/HACK are errors, TODO is a warning, other
      markers (STUB, PLACEHOLDER, WIP) are info. One issue per line.
    - NotImplementedError placeholders are warnings.
    - Python functions whose body is only pass or ... are info, except
      abstract methods, overloads and protocol members.
    """

    name = "stub"
    description = "Detects TODO markers and placeholder implementations"
    category = IssueCategory.STUB

    async def analyze(self, files: List[str], options: AnalyzerOptions) -> List[Issue]:
        issues = []
        for file in self.read_files(files):
            issues.extend(self.detect_markers(file))
            issues.extend(self.detect_not_implemented(file))
            if file.path.endswith(".py"):
                issues.extend(self.detect_empty_functions(file))
        return issues

    def detect_markers(self, file: FileContent) -> List[Issue]:
        issues = []
        for index, line in enumerate(file.lines):
            start = self.comment_start(line)
            if start == -1:
                continue
            match = STUB_MARKERS.search(line, start)
            if not match:
                continue

            marker = re.sub(r"\s+", " ", match.group(1)).upper()
            issues.append(self.create_issue(
                file,
                index + 1,
                f"{match.group(1)} comment found",
                marker_severity(marker),
                fingerprint=marker.lower(),
                column=match.start() + 1,
                description="This comment indicates incomplete or temporary code that needs attention.",
                suggestion="Complete the implementation and remove the comment",
            ))
        return issues

    def detect_not_implemented(self, file: FileContent) -> List[Issue]:
        issues = []
        for index, line in enumerate(file.lines):
            if self.is_comment_line(line):
                continue
            if any(p.search(line) for p in NOT_IMPLEMENTED):
                issues.append(self.create_issue(
                    file,
                    index + 1,
                    "Placeholder raises 'not implemented'",
                    Severity.WARNING,
                    fingerprint="not-implemented",
                    suggestion="Implement the function or remove it",
                ))
        return issues

    def detect_empty_functions(self, file: FileContent) -> List[Issue]:
        try:
            tree = ast.parse(file.content, filename=file.path)
        except (SyntaxError, ValueError):
            self.logger.debug(f"Cannot parse {file.path}, skipping empty-function check")
            return []

        protocol_bodies = set()
        for node in ast.walk(tree):
            if isinstance(node, ast.ClassDef):
                bases = {getattr(b, "id", getattr(b, "attr", "")) for b in node.bases}
                if bases & {"Protocol", "ABC"}:
                    protocol_bodies.update(id(child) for child in node.body)

        issues = []
        for node in ast.walk(tree):
            if not isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                continue
            if id(node) in protocol_bodies or _is_abstract(node):
                continue
            if _is_placeholder_body(node.body):
                issues.append(self.create_issue(
                    file,
                    node.lineno,
                    f"Function '{node.name}' has an empty placeholder body",
                    Severity.INFO,
                    fingerprint=f"empty:{node.name}",
                    suggestion="Implement the function body",
                ))
        return issues
