"""Tests for the issue tracker and its storage adapters."""

import pytest

from quality_agent.config import TrackerConfig
from quality_agent.errors import IssueNotFoundError
from quality_agent.models import IssueCategory, IssueStatus, Severity
from quality_agent.tracker import (
    InMemoryDatabaseAdapter,
    IssueFilter,
    IssueTracker,
    SqliteDatabaseAdapter,
)

from fakes import make_issue


@pytest.fixture(params=["memory", "sqlite"])
def db(request, tmp_path):
    if request.param == "memory":
        adapter = InMemoryDatabaseAdapter()
    else:
        adapter = SqliteDatabaseAdapter(str(tmp_path / "issues.db"))
    yield adapter
    adapter.close()


@pytest.fixture
def tracker(db):
    return IssueTracker("session-1", db)


class TestIngestion:
    """Tests for adding issues."""

    def test_add_sets_session_and_persists(self, tracker, db):
        """Given a new issue, should stamp the session id and store it."""
        # Given
        issue = make_issue(message="x")

        # When
        tracker.add_issue(issue)

        # Then
        stored = db.get_issue("session-1", issue.id)
        assert stored is not None
        assert stored.session_id == "session-1"
        assert stored.status == IssueStatus.PENDING
        assert len(tracker) == 1

    def test_round_trip_keeps_fields(self, tracker, db):
        """Given an issue with metadata and a snippet, should read back the same values."""
        issue = make_issue(
            message="leak",
            description="Key in source",
            metadata={"source": "security", "confidence": 0.9},
            code_snippet='key = "abc"',
        )

        tracker.add_issue(issue)
        stored = db.get_issue("session-1", issue.id)

        assert stored.message == "leak"
        assert stored.description == "Key in source"
        assert stored.metadata == {"source": "security", "confidence": 0.9}
        assert stored.code_snippet == 'key = "abc"'
        assert stored.category == IssueCategory.BUG
        assert stored.severity == Severity.WARNING
        assert stored.location.line == issue.location.line

    def test_readding_replaces_in_place(self, tracker):
        """Given the same id twice, should keep one entry."""
        issue = make_issue(message="same")

        tracker.add_issue(issue)
        tracker.add_issues([make_issue(message="same")])

        assert len(tracker) == 1
        assert tracker.get_stats()["total"] == 1


class TestLifecycle:
    """Tests for status transitions."""

    def test_happy_path(self, tracker):
        """Given a pending issue, should move through in_progress to resolved."""
        # Given
        issue = tracker.add_issue(make_issue())

        # When
        tracker.mark_in_progress(issue.id)
        resolved = tracker.mark_resolved(issue.id)

        # Then
        assert resolved.status == IssueStatus.RESOLVED
        assert resolved.resolved_at is not None
        assert tracker.get_issue(issue.id).status == IssueStatus.RESOLVED

    def test_failure_records_error_and_keeps_retry_count(self, tracker):
        """Given a failed attempt, should record the error without touching retry_count."""
        issue = tracker.add_issue(make_issue())

        failed = tracker.mark_failed(issue.id, "tests still red")

        assert failed.status == IssueStatus.FAILED
        assert failed.last_error == "tests still red"
        assert failed.retry_count == 0

    def test_increment_retry_returns_new_value(self, tracker):
        """Given repeated retries, should count up."""
        issue = tracker.add_issue(make_issue())

        assert tracker.increment_retry(issue.id) == 1
        assert tracker.increment_retry(issue.id) == 2
        assert tracker.get_issue(issue.id).retry_count == 2

    def test_skip_records_reason(self, tracker):
        """Given a skipped issue, should keep the reason."""
        issue = tracker.add_issue(make_issue())

        skipped = tracker.mark_skipped(issue.id, "generated code")

        assert skipped.status == IssueStatus.SKIPPED
        assert skipped.last_error == "generated code"

    def test_unknown_id_raises(self, tracker):
        """Given an id the tracker never saw, should raise IssueNotFoundError."""
        with pytest.raises(IssueNotFoundError):
            tracker.mark_resolved("bug-does-not-exist")

    def test_state_survives_reload(self, db):
        """Given a fresh tracker over the same store, should see persisted status."""
        # Given
        first = IssueTracker("session-1", db)
        issue = first.add_issue(make_issue())
        first.mark_failed(issue.id, "boom")

        # When
        second = IssueTracker("session-1", db)
        loaded = second.load_from_database()

        # Then
        assert [i.id for i in loaded] == [issue.id]
        assert second.get_issue(issue.id).status == IssueStatus.FAILED


class TestRetry:
    """Tests for requeueing failed issues."""

    def test_reset_only_failed_below_limit(self, db):
        """Given failed issues with different retry counts, should requeue only those below the limit."""
        # Given
        tracker = IssueTracker("session-1", db, TrackerConfig(max_retries=2))
        fresh = tracker.add_issue(make_issue(line=1))
        exhausted = tracker.add_issue(make_issue(line=2))
        done = tracker.add_issue(make_issue(line=3))

        tracker.mark_failed(fresh.id, "first try")
        tracker.increment_retry(fresh.id)
        tracker.mark_failed(exhausted.id, "again")
        tracker.increment_retry(exhausted.id)
        tracker.increment_retry(exhausted.id)
        tracker.mark_resolved(done.id)

        # When
        count = tracker.reset_retryable_issues()

        # Then
        assert count == 1
        assert tracker.get_issue(fresh.id).status == IssueStatus.PENDING
        assert tracker.get_issue(exhausted.id).status == IssueStatus.FAILED
        assert tracker.get_issue(done.id).status == IssueStatus.RESOLVED
        assert db.get_issue("session-1", fresh.id).status == IssueStatus.PENDING

    def test_nothing_to_reset(self, tracker):
        """Given no failed issues, should requeue nothing."""
        tracker.add_issue(make_issue())

        assert tracker.reset_retryable_issues() == 0

    def test_retryable_issues(self, tracker):
        """Given failed issues, should list only those with retries left."""
        # Given
        retryable = tracker.add_issue(make_issue(line=1))
        spent = tracker.add_issue(make_issue(line=2))
        tracker.mark_failed(retryable.id, "boom")
        tracker.mark_failed(spent.id, "boom")
        for _ in range(3):
            tracker.increment_retry(spent.id)

        # When
        issues = tracker.get_retryable_issues()

        # Then
        assert [i.id for i in issues] == [retryable.id]
        assert tracker.get_retryable_issues(max_retries=5) != []


class TestAdapters:
    """Tests for the storage adapter contract."""

    def test_update_and_bulk_update(self, db):
        """Given stored issues, should apply single and bulk field updates."""
        # Given
        first = make_issue(line=1, session_id="s")
        second = make_issue(line=2, session_id="s")
        db.bulk_insert_issues([first, second])

        # When
        db.update_issue("s", first.id, {"last_error": "lint failed"})
        db.bulk_update_issues("s", [first.id, second.id], {"status": IssueStatus.SKIPPED})

        # Then
        assert db.get_issue("s", first.id).last_error == "lint failed"
        assert {i.status for i in db.get_issues()} == {IssueStatus.SKIPPED}

    def test_unknown_field_rejected(self, db):
        """Given a field outside the updatable set, should raise ValueError."""
        issue = make_issue(session_id="s")
        db.insert_issue(issue)

        with pytest.raises(ValueError, match="Cannot update fields"):
            db.update_issue("s", issue.id, {"message": "rewritten"})

    def test_delete_by_session(self, tracker, db):
        """Given issues from two sessions, should delete only the tracker's session."""
        # Given
        tracker.add_issue(make_issue(line=1))
        db.insert_issue(make_issue(line=2, session_id="other"))

        # When
        removed = tracker.clear_all()

        # Then
        assert removed == 1
        assert [i.session_id for i in db.get_issues()] == ["other"]
        assert len(tracker) == 0

    def test_sessions_share_a_finding(self, db):
        """Given the same finding tracked by two sessions, should keep a separate copy per session."""
        # Given
        first = IssueTracker("A", db)
        second = IssueTracker("B", db)
        issue = first.add_issue(make_issue(message="shared"))
        first.mark_failed(issue.id, "still broken")

        # When
        second.add_issue(make_issue(message="shared"))
        second.mark_resolved(issue.id)

        # Then
        assert first.get_stats()["total"] == 1
        assert second.get_stats()["total"] == 1
        assert db.get_issue("A", issue.id).status == IssueStatus.FAILED
        assert db.get_issue("B", issue.id).status == IssueStatus.RESOLVED
        assert IssueTracker("A", db).load_from_database()[0].last_error == "still broken"


class TestQueue:
    """Tests for prioritization and queue queries."""

    def test_prioritize_by_severity_category_and_file(self, tracker):
        """Given mixed issues, should order by severity, then category precedence, then file."""
        # Given
        lint_error = make_issue(file="a.py", severity=Severity.ERROR, category=IssueCategory.LINT, message="1")
        security_error = make_issue(file="z.py", severity=Severity.ERROR, category=IssueCategory.SECURITY, message="2")
        bug_warning_b = make_issue(file="b.py", severity=Severity.WARNING, message="3")
        bug_warning_a = make_issue(file="a.py", severity=Severity.WARNING, message="4")
        tracker.add_issues([bug_warning_b, lint_error, bug_warning_a, security_error])

        # When
        ordered = tracker.prioritize()

        # Then
        assert [i.message for i in ordered] == ["2", "1", "4", "3"]

    def test_prioritize_is_stable(self, tracker):
        """Given issues with equal keys, should keep insertion order."""
        first = make_issue(file="a.py", line=1, message="first")
        second = make_issue(file="a.py", line=9, message="second")
        tracker.add_issues([first, second])

        assert [i.message for i in tracker.prioritize()] == ["first", "second"]

    def test_next_issue_skips_non_pending(self, tracker):
        """Given a resolved head of queue, should return the next pending issue."""
        head = tracker.add_issue(make_issue(line=1, severity=Severity.ERROR))
        tail = tracker.add_issue(make_issue(line=2))
        tracker.prioritize()
        tracker.mark_resolved(head.id)

        assert tracker.get_next_issue().id == tail.id

    def test_next_issue_none_when_drained(self, tracker):
        """Given no pending issues, should return None."""
        issue = tracker.add_issue(make_issue())
        tracker.mark_resolved(issue.id)

        assert tracker.get_next_issue() is None

    def test_filter_and_stats(self, tracker):
        """Given issues in several states, should filter and count them."""
        # Given
        a = tracker.add_issue(make_issue(line=1, category=IssueCategory.SECURITY, severity=Severity.ERROR))
        b = tracker.add_issue(make_issue(line=2, category=IssueCategory.STUB))
        tracker.add_issue(make_issue(line=3, category=IssueCategory.STUB))
        tracker.mark_resolved(a.id)
        tracker.mark_failed(b.id, "no")

        # When
        stubs = tracker.get_issues(IssueFilter(category=IssueCategory.STUB))
        pending = tracker.get_issues(IssueFilter(status=IssueStatus.PENDING))
        stats = tracker.get_stats()

        # Then
        assert len(stubs) == 2
        assert len(pending) == 1
        assert stats["total"] == 3
        assert stats["resolved"] == 1
        assert stats["failed"] == 1
        assert stats["pending"] == 1
        assert stats["skipped"] == 0
        assert stats["by_category"] == {"security": 1, "stub": 2}
        assert stats["by_severity"] == {"error": 1, "warning": 2}

    def test_sessions_are_isolated(self, db):
        """Given two sessions in one store, should only see its own issues."""
        one = IssueTracker("one", db)
        two = IssueTracker("two", db)
        one.add_issue(make_issue(line=1))
        two.add_issue(make_issue(line=2))
        two.add_issue(make_issue(line=3))

        assert one.get_stats()["total"] == 1
        assert two.get_stats()["total"] == 2

        assert two.clear_all() == 2
        assert two.get_stats()["total"] == 0
        assert one.get_stats()["total"] == 1


class TestStaleness:
    """Tests for detecting issues whose code is gone."""

    def test_snippet_still_present(self):
        """Given content containing the snippet, should report the issue as existing."""
        issue = make_issue(line=2, code_snippet="eval(user_input)")

        assert IssueTracker.check_issue_exists(issue, "x = 1\neval(user_input)\n")

    def test_snippet_removed(self):
        """Given content without the snippet, should report the issue as stale."""
        issue = make_issue(line=2, code_snippet="eval(user_input)")

        assert not IssueTracker.check_issue_exists(issue, "x = 1\nsafe(user_input)\n")

    def test_line_past_end(self):
        """Given a recorded line beyond the file end, should report the issue as stale."""
        issue = make_issue(line=40)

        assert not IssueTracker.check_issue_exists(issue, "short\nfile\n")
