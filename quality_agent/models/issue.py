"""Data models for issues."""

import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class IssueCategory(Enum):
    """Closed set of issue categories."""
    BUG = "bug"
    SECURITY = "security"
    LINT = "lint"
    TYPE = "type"
    STUB = "stub"
    DUPLICATE = "duplicate"
    DEAD_CODE = "dead-code"
    COVERAGE = "coverage"
    LLM = "llm"


class Severity(Enum):
    """Issue severity levels, most severe first."""
    ERROR = "error"      # Security, crashes, data loss
    WARNING = "warning"  # Bugs, incomplete code
    INFO = "info"        # Code quality
    HINT = "hint"        # Style, suggestions

    @property
    def rank(self) -> int:
        """Sort rank: error=0 ... hint=3."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.ERROR: 0,
    Severity.WARNING: 1,
    Severity.INFO: 2,
    Severity.HINT: 3,
}


class IssueStatus(Enum):
    """Lifecycle state of a tracked issue."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class SourceLocation:
    """Position of an issue in a source file (1-indexed)."""
    file: str
    line: int
    column: int = 1
    end_line: Optional[int] = None
    end_column: Optional[int] = None


def make_issue_id(
    category: IssueCategory,
    file: str,
    line: int,
    fingerprint: str = "",
) -> str:
    """
    Derive a stable issue id.

    The same (category, file, line, fingerprint) always yields the same id,
    so repeated scans of unchanged code produce identical ids.
    """
    raw = f"{category.value}:{file}:{line}:{fingerprint}"
    digest = hashlib.sha1(raw.encode("utf-8")).hexdigest()[:16]
    return f"{category.value}-{digest}"


@dataclass
class Issue:
    """A single finding produced by an analyzer or the agentic loop."""
    id: str
    category: IssueCategory
    severity: Severity
    location: SourceLocation
    message: str
    description: Optional[str] = None
    suggestion: Optional[str] = None  # Advisory only
    metadata: Dict[str, Any] = field(default_factory=dict)
    status: IssueStatus = IssueStatus.PENDING
    retry_count: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    resolved_at: Optional[datetime] = None
    last_error: Optional[str] = None
    code_snippet: Optional[str] = None
    session_id: Optional[str] = None

    @classmethod
    def create(
        cls,
        category: IssueCategory,
        severity: Severity,
        location: SourceLocation,
        message: str,
        fingerprint: Optional[str] = None,
        **kwargs: Any,
    ) -> "Issue":
        """Build an issue whose id is derived from its content."""
        issue_id = make_issue_id(
            category,
            location.file,
            location.line,
            fingerprint if fingerprint is not None else message,
        )
        return cls(
            id=issue_id,
            category=category,
            severity=severity,
            location=location,
            message=message,
            **kwargs,
        )

    @property
    def dedup_key(self) -> Tuple[str, int, str]:
        """Findings sharing (file, line, message) are the same finding."""
        return (self.location.file, self.location.line, self.message)
