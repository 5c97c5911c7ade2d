"""Data models for code quality analysis."""

from .issue import (
    IssueCategory,
    Severity,
    IssueStatus,
    SourceLocation,
    Issue,
    make_issue_id,
)
from .results import (
    ProgressStatus,
    ProgressEvent,
    AnalysisSummary,
    AnalysisResult,
    CheckResult,
    Verification,
    ReAnalysisResult,
    AnalysisLoopResult,
)
from .conversation import (
    Role,
    ToolCall,
    Message,
    BackendResponse,
    ToolDefinition,
)

__all__ = [
    "IssueCategory",
    "Severity",
    "IssueStatus",
    "SourceLocation",
    "Issue",
    "make_issue_id",
    "ProgressStatus",
    "ProgressEvent",
    "AnalysisSummary",
    "AnalysisResult",
    "CheckResult",
    "Verification",
    "ReAnalysisResult",
    "AnalysisLoopResult",
    "Role",
    "ToolCall",
    "Message",
    "BackendResponse",
    "ToolDefinition",
]
