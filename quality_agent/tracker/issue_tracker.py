"""Issue lifecycle tracking for one analysis session."""

from collections import Counter
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from ..config import TrackerConfig
from ..errors import IssueNotFoundError
from ..models import Issue, IssueCategory, IssueStatus
from ..utils import get_logger
from .storage import DatabaseAdapter, IssueFilter, apply_fields


# Correctness and security first, style last
CATEGORY_PRECEDENCE = [
    IssueCategory.SECURITY,
    IssueCategory.BUG,
    IssueCategory.TYPE,
    IssueCategory.COVERAGE,
    IssueCategory.DEAD_CODE,
    IssueCategory.DUPLICATE,
    IssueCategory.STUB,
    IssueCategory.LINT,
    IssueCategory.LLM,
]
_CATEGORY_RANK = {category: rank for rank, category in enumerate(CATEGORY_PRECEDENCE)}


def priority_key(issue: Issue):
    """Sort key: severity, then category precedence, then file path."""
    return (
        issue.severity.rank,
        _CATEGORY_RANK.get(issue.category, len(CATEGORY_PRECEDENCE)),
        issue.location.file,
    )


class IssueTracker:
    """
    Owns the canonical state of every issue in a session.

    Status changes go through the tracker only. Each mutation updates the
    in-memory cache and the backing store in the same call; on restart
    load_from_database() rebuilds the cache from the store.

    State machine:
        pending -> in_progress -> resolved | failed | skipped
        failed -> pending (reset_retryable_issues, bounded by max_retries)
    """

    def __init__(
        self,
        session_id: str,
        db: DatabaseAdapter,
        config: Optional[TrackerConfig] = None,
    ):
        self.session_id = session_id
        self.db = db
        self.config = config or TrackerConfig()
        self.logger = get_logger()
        self._cache: Dict[str, Issue] = {}
        self._order: List[str] = []

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def _claim(self, issue: Issue) -> Issue:
        issue.session_id = self.session_id
        if issue.id not in self._cache:
            self._order.append(issue.id)
        self._cache[issue.id] = issue
        return issue

    def add_issue(self, issue: Issue) -> Issue:
        """Track and persist one issue. Re-adding an id replaces it in place."""
        self.db.insert_issue(self._claim(issue))
        return issue

    def add_issues(self, issues: Iterable[Issue]) -> List[Issue]:
        claimed = [self._claim(issue) for issue in issues]
        if claimed:
            self.db.bulk_insert_issues(claimed)
            self.logger.debug(f"Tracking {len(claimed)} new issues in session {self.session_id}")
        return claimed

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_issue(self, issue_id: str) -> Optional[Issue]:
        """Cached issue, falling back to the store."""
        if issue_id in self._cache:
            return self._cache[issue_id]

        issue = self.db.get_issue(self.session_id, issue_id)
        if issue is not None:
            self._claim(issue)
        return issue

    def get_next_issue(self) -> Optional[Issue]:
        """First pending issue in priority order, querying the store if the cache has none."""
        for issue_id in self._order:
            issue = self._cache[issue_id]
            if issue.status == IssueStatus.PENDING:
                return issue

        stored = self.db.get_issues(IssueFilter(session_id=self.session_id, status=IssueStatus.PENDING))
        if not stored:
            return None
        return self._claim(stored[0])

    def get_issues(self, issue_filter: Optional[IssueFilter] = None) -> List[Issue]:
        """Issues of this session matching the filter. Refreshes the cache."""
        issue_filter = issue_filter or IssueFilter()
        issue_filter.session_id = self.session_id
        issues = self.db.get_issues(issue_filter)
        return [self._claim(issue) for issue in issues]

    def get_stats(self) -> Dict[str, Any]:
        issues = self.get_issues()
        by_status = Counter(issue.status.value for issue in issues)
        stats: Dict[str, Any] = {"total": len(issues)}
        for status in IssueStatus:
            stats[status.value] = by_status.get(status.value, 0)
        stats["by_category"] = dict(Counter(issue.category.value for issue in issues))
        stats["by_severity"] = dict(Counter(issue.severity.value for issue in issues))
        return stats

    def get_retryable_issues(self, max_retries: Optional[int] = None) -> List[Issue]:
        """Failed issues that still have retries left."""
        if max_retries is None:
            max_retries = self.config.max_retries
        failed = self.get_issues(IssueFilter(status=IssueStatus.FAILED))
        return [issue for issue in failed if issue.retry_count < max_retries]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _update_issue(self, issue_id: str, fields: Dict[str, Any]) -> Issue:
        issue = self.get_issue(issue_id)
        if issue is None:
            raise IssueNotFoundError(issue_id)

        fields = dict(fields, updated_at=datetime.now())
        updated = apply_fields(issue, fields)
        self._cache[issue_id] = updated
        self.db.update_issue(self.session_id, issue_id, fields)
        return updated

    def mark_in_progress(self, issue_id: str) -> Issue:
        return self._update_issue(issue_id, {"status": IssueStatus.IN_PROGRESS})

    def mark_resolved(self, issue_id: str) -> Issue:
        return self._update_issue(issue_id, {
            "status": IssueStatus.RESOLVED,
            "resolved_at": datetime.now(),
        })

    def mark_failed(self, issue_id: str, error: str) -> Issue:
        """Record a failed attempt. retry_count is left alone; see increment_retry."""
        return self._update_issue(issue_id, {
            "status": IssueStatus.FAILED,
            "last_error": error,
        })

    def mark_skipped(self, issue_id: str, reason: str) -> Issue:
        return self._update_issue(issue_id, {
            "status": IssueStatus.SKIPPED,
            "last_error": reason,
        })

    def increment_retry(self, issue_id: str) -> int:
        """Bump the retry counter and return the new value."""
        issue = self.get_issue(issue_id)
        if issue is None:
            raise IssueNotFoundError(issue_id)
        return self._update_issue(issue_id, {"retry_count": issue.retry_count + 1}).retry_count

    def reset_to_pending(self, issue_id: str) -> Issue:
        return self._update_issue(issue_id, {"status": IssueStatus.PENDING})

    def reset_retryable_issues(self, max_retries: Optional[int] = None) -> int:
        """
        Requeue failed issues with retry_count < max_retries.

        Returns:
            Number of issues moved back to pending
        """
        retryable = self.get_retryable_issues(max_retries)
        if not retryable:
            return 0

        fields = {"status": IssueStatus.PENDING, "updated_at": datetime.now()}
        self.db.bulk_update_issues(self.session_id, [issue.id for issue in retryable], fields)
        for issue in retryable:
            self._cache[issue.id] = apply_fields(issue, fields)

        self.logger.info(f"Requeued {len(retryable)} failed issues")
        return len(retryable)

    # ------------------------------------------------------------------
    # Queue management
    # ------------------------------------------------------------------

    def prioritize(self) -> List[Issue]:
        """Reorder the internal queue. Persisted state is untouched."""
        # sorted() is stable, so ties keep insertion order
        self._order.sort(key=lambda issue_id: priority_key(self._cache[issue_id]))
        return [self._cache[issue_id] for issue_id in self._order]

    def clear_all(self) -> int:
        """Forget every issue of this session, in memory and in the store."""
        self._cache.clear()
        self._order.clear()
        return self.db.delete_issues(self.session_id)

    def load_from_database(self) -> List[Issue]:
        """Rebuild the cache from the store, which is authoritative."""
        self._cache.clear()
        self._order.clear()
        issues = self.get_issues()
        self.logger.info(f"Loaded {len(issues)} issues for session {self.session_id}")
        return issues

    @staticmethod
    def check_issue_exists(issue: Issue, current_content: str) -> bool:
        """
        Staleness check against the file's current content.

        Returns False when the recorded code snippet is gone or the recorded
        line is past the end of the file.
        """
        if issue.code_snippet and issue.code_snippet.strip() not in current_content:
            return False
        return issue.location.line <= len(current_content.split("\n"))

    def __len__(self) -> int:
        return len(self._order)
