"""Bug analyzer: syntax-tree heuristics for common Python mistakes."""

import ast
from typing import List

from ..models import Issue, IssueCategory, Severity
from .base import AnalyzerOptions, BaseAnalyzer, FileContent


_MUTABLE_CALLS = {"list", "dict", "set", "defaultdict", "OrderedDict"}


def _is_mutable_default(node: ast.AST) -> bool:
    if isinstance(node, (ast.List, ast.Dict, ast.Set, ast.ListComp, ast.DictComp, ast.SetComp)):
        return True
    return isinstance(node, ast.Call) and getattr(node.func, "id", None) in _MUTABLE_CALLS


def _is_literal(node: ast.AST) -> bool:
    if isinstance(node, ast.Constant):
        return node.value is not None and not isinstance(node.value, bool) and node.value is not Ellipsis
    return isinstance(node, (ast.List, ast.Dict, ast.Set, ast.Tuple, ast.JoinedStr))


class _BugVisitor(ast.NodeVisitor):

    def __init__(self):
        self.findings = []  # (line, column, severity, message, fingerprint, suggestion)

    def report(self, node, severity, message, fingerprint, suggestion):
        self.findings.append((node.lineno, node.col_offset + 1, severity, message, fingerprint, suggestion))

    def _check_defaults(self, node):
        defaults = list(node.args.defaults) + [d for d in node.args.kw_defaults if d is not None]
        for default in defaults:
            if _is_mutable_default(default):
                self.report(
                    default, Severity.WARNING,
                    f"Mutable default argument in '{node.name}'",
                    f"mutable-default:{node.name}",
                    "Default to None and create the object inside the function",
                )
        self.generic_visit(node)

    visit_FunctionDef = _check_defaults
    visit_AsyncFunctionDef = _check_defaults

    def visit_ExceptHandler(self, node):
        if node.type is None:
            self.report(
                node, Severity.WARNING,
                "Bare 'except:' catches SystemExit and KeyboardInterrupt",
                "bare-except",
                "Catch Exception or a more specific type",
            )
        self.generic_visit(node)

    def visit_Compare(self, node):
        operands = [node.left] + list(node.comparators)
        for op, left, right in zip(node.ops, operands, operands[1:]):
            none_side = any(isinstance(x, ast.Constant) and x.value is None for x in (left, right))
            if isinstance(op, (ast.Eq, ast.NotEq)) and none_side:
                self.report(
                    node, Severity.WARNING,
                    "Comparison to None with '==' or '!='",
                    "none-equality",
                    "Use 'is None' or 'is not None'",
                )
            if isinstance(op, (ast.Is, ast.IsNot)) and (_is_literal(left) or _is_literal(right)):
                self.report(
                    node, Severity.ERROR,
                    "Identity comparison with a literal",
                    "is-literal",
                    "Use '==' to compare values",
                )
        self.generic_visit(node)

    def visit_Assert(self, node):
        if isinstance(node.test, ast.Tuple) and node.test.elts:
            self.report(
                node, Severity.ERROR,
                "Assertion on a non-empty tuple is always true",
                "assert-tuple",
                "Remove the parentheses around the condition and message",
            )
        self.generic_visit(node)


class BugAnalyzer(BaseAnalyzer):
    """Walks the syntax tree of Python files. Other languages are skipped."""

    name = "bug"
    description = "Detects likely bugs with syntax-tree heuristics"
    category = IssueCategory.BUG

    async def analyze(self, files: List[str], options: AnalyzerOptions) -> List[Issue]:
        issues = []
        for file in self.read_files(self.python_files(files)):
            issues.extend(self.check(file))
        return issues

    def check(self, file: FileContent) -> List[Issue]:
        try:
            tree = ast.parse(file.content, filename=file.path)
        except (SyntaxError, ValueError) as e:
            line = getattr(e, "lineno", None) or 1
            return [self.create_issue(
                file, line, f"Syntax error: {getattr(e, 'msg', e)}", Severity.ERROR,
                fingerprint="syntax-error",
            )]

        visitor = _BugVisitor()
        visitor.visit(tree)
        return [
            self.create_issue(
                file, line, message, severity,
                fingerprint=fingerprint, column=column, suggestion=suggestion,
            )
            for line, column, severity, message, fingerprint, suggestion in visitor.findings
        ]
