"""Issue lifecycle tracking and persistence."""

from .storage import (
    DatabaseAdapter,
    IssueFilter,
    InMemoryDatabaseAdapter,
    SqliteDatabaseAdapter,
)
from .issue_tracker import IssueTracker, CATEGORY_PRECEDENCE, priority_key

__all__ = [
    "DatabaseAdapter",
    "IssueFilter",
    "InMemoryDatabaseAdapter",
    "SqliteDatabaseAdapter",
    "IssueTracker",
    "CATEGORY_PRECEDENCE",
    "priority_key",
]
