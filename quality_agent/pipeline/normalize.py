"""Map free-form model labels onto the closed category and severity sets."""

from typing import Any

from ..models import IssueCategory, Severity


CATEGORY_SYNONYMS = {
    "bug": IssueCategory.BUG,
    "logic": IssueCategory.BUG,
    "performance": IssueCategory.BUG,
    "security": IssueCategory.SECURITY,
    "vulnerability": IssueCategory.SECURITY,
    "style": IssueCategory.LINT,
    "lint": IssueCategory.LINT,
    "maintainability": IssueCategory.LINT,
    "complexity": IssueCategory.LINT,
    "stub": IssueCategory.STUB,
    "todo": IssueCategory.STUB,
    "fixme": IssueCategory.STUB,
    "duplicate": IssueCategory.DUPLICATE,
    "duplication": IssueCategory.DUPLICATE,
    "dead-code": IssueCategory.DEAD_CODE,
    "deadcode": IssueCategory.DEAD_CODE,
    "unused": IssueCategory.DEAD_CODE,
    "coverage": IssueCategory.COVERAGE,
    "test": IssueCategory.COVERAGE,
    "type": IssueCategory.TYPE,
    "typescript": IssueCategory.TYPE,
}

SEVERITY_SYNONYMS = {
    "critical": Severity.ERROR,
    "error": Severity.ERROR,
    "high": Severity.ERROR,
    "warning": Severity.WARNING,
    "medium": Severity.WARNING,
    "info": Severity.INFO,
    "low": Severity.INFO,
    "hint": Severity.HINT,
    "suggestion": Severity.HINT,
}

DEFAULT_CATEGORY = IssueCategory.BUG
DEFAULT_SEVERITY = Severity.WARNING


def _label(raw: Any) -> str:
    if raw is None:
        return ""
    return str(raw).strip().lower()


def map_to_issue_category(raw: Any) -> IssueCategory:
    """Case-insensitive category lookup. Unknown labels map to bug."""
    return CATEGORY_SYNONYMS.get(_label(raw), DEFAULT_CATEGORY)


def map_to_severity(raw: Any) -> Severity:
    """Case-insensitive severity lookup. Unknown labels map to warning."""
    return SEVERITY_SYNONYMS.get(_label(raw), DEFAULT_SEVERITY)
