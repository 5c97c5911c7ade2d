"""Analysis orchestration."""

from .orchestrator import (
    AnalysisOrchestrator,
    LLM_ORCHESTRATOR,
    analyze,
    analyze_sync,
)

__all__ = [
    "AnalysisOrchestrator",
    "LLM_ORCHESTRATOR",
    "analyze",
    "analyze_sync",
]
