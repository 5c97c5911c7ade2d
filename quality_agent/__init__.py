"""Multi-analyzer code quality agent."""

from .config import OrchestratorConfig, ReAnalysisConfig, TrackerConfig
from .models import AnalysisResult, Issue, IssueCategory, IssueStatus, Severity
from .orchestrator import AnalysisOrchestrator, analyze, analyze_sync
from .pipeline import ReAnalysisLoop, create_reanalysis_runner
from .tracker import IssueTracker, InMemoryDatabaseAdapter, SqliteDatabaseAdapter

__version__ = "0.1.0"

__all__ = [
    "OrchestratorConfig",
    "ReAnalysisConfig",
    "TrackerConfig",
    "AnalysisResult",
    "Issue",
    "IssueCategory",
    "IssueStatus",
    "Severity",
    "AnalysisOrchestrator",
    "analyze",
    "analyze_sync",
    "ReAnalysisLoop",
    "create_reanalysis_runner",
    "IssueTracker",
    "InMemoryDatabaseAdapter",
    "SqliteDatabaseAdapter",
]
