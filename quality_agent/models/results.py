"""Data models for analysis runs and fix verification."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .issue import Issue, IssueCategory, Severity


class ProgressStatus(Enum):
    """Status reported for one unit of orchestrated work."""
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ProgressEvent:
    """Progress callback payload, used for live feedback only."""
    analyzer_name: str
    status: ProgressStatus
    issue_count: Optional[int] = None
    error: Optional[str] = None


def _zero_categories() -> Dict[str, int]:
    return {c.value: 0 for c in IssueCategory}


def _zero_severities() -> Dict[str, int]:
    return {s.value: 0 for s in Severity}


@dataclass
class AnalysisSummary:
    """Issue counts. Every category and severity key is always present."""
    total: int = 0
    by_category: Dict[str, int] = field(default_factory=_zero_categories)
    by_severity: Dict[str, int] = field(default_factory=_zero_severities)


@dataclass
class AnalysisResult:
    """Output of one orchestrator run."""
    issues: List[Issue]
    summary: AnalysisSummary
    duration: float  # seconds
    analyzers_run: List[str] = field(default_factory=list)


@dataclass
class CheckResult:
    """Outcome of one verification tool run after a fix."""
    passed: bool
    errors: int = 0
    warnings: int = 0
    output: str = ""


@dataclass
class Verification:
    """Per-tool verification results; None means the tool was not enabled."""
    lint: Optional[CheckResult] = None
    type_check: Optional[CheckResult] = None
    tests: Optional[CheckResult] = None
    build: Optional[CheckResult] = None

    def checks(self) -> Dict[str, CheckResult]:
        """Enabled checks by name."""
        pairs = {
            "lint": self.lint,
            "type_check": self.type_check,
            "tests": self.tests,
            "build": self.build,
        }
        return {name: check for name, check in pairs.items() if check is not None}

    @property
    def all_passed(self) -> bool:
        """True when every enabled check passed (vacuously true if none ran)."""
        return all(check.passed for check in self.checks().values())


@dataclass
class ReAnalysisResult:
    """Verdict on a single applied fix."""
    issue_resolved: bool = False
    assessment: str = ""
    new_issues: List[Issue] = field(default_factory=list)
    concerns: List[str] = field(default_factory=list)
    verification: Verification = field(default_factory=Verification)
    success: bool = False


@dataclass
class AnalysisLoopResult:
    """Aggregate outcome of the fix -> verify -> retry loop."""
    all_issues: List[Issue] = field(default_factory=list)
    resolved_issues: List[Issue] = field(default_factory=list)
    failed_issues: List[Issue] = field(default_factory=list)
    iterations: int = 0
    is_clean: bool = False
    summary: str = ""
