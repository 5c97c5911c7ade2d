"""Persistence adapters behind the issue tracker."""

import copy
import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..models import (
    Issue,
    IssueCategory,
    IssueStatus,
    Severity,
    SourceLocation,
)


# Fields update_issue / bulk_update_issues may change
UPDATABLE_FIELDS = (
    "status",
    "severity",
    "retry_count",
    "last_error",
    "resolved_at",
    "updated_at",
    "code_snippet",
    "metadata",
)

OneOrMany = Union[Any, Sequence[Any], None]


def _as_list(value: OneOrMany) -> Optional[List[Any]]:
    if value is None:
        return None
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


def _enum_value(value: Any) -> Any:
    return value.value if hasattr(value, "value") else value


@dataclass
class IssueFilter:
    """Query filter. Each field may be a single value or a list of values."""
    session_id: Optional[str] = None
    status: OneOrMany = None
    severity: OneOrMany = None
    category: OneOrMany = None
    file_path: OneOrMany = None

    def matches(self, issue: Issue) -> bool:
        checks = [
            (self.session_id, issue.session_id),
            (self.status, issue.status.value),
            (self.severity, issue.severity.value),
            (self.category, issue.category.value),
            (self.file_path, issue.location.file),
        ]
        for wanted, actual in checks:
            values = _as_list(wanted)
            if values is not None and actual not in [_enum_value(v) for v in values]:
                return False
        return True


class DatabaseAdapter(ABC):
    """
    Narrow CRUD interface the tracker persists through.

    Rows are keyed by (session_id, issue id): ids are derived from content,
    so the same finding recurs across sessions and each session owns its
    copy. Inserts are idempotent upserts on that key. Implementations return
    copies, so callers never share mutable state with the store.
    """

    @abstractmethod
    def insert_issue(self, issue: Issue) -> None:
        ...

    @abstractmethod
    def update_issue(self, session_id: str, issue_id: str, fields: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def get_issue(self, session_id: str, issue_id: str) -> Optional[Issue]:
        ...

    @abstractmethod
    def get_issues(self, issue_filter: Optional[IssueFilter] = None) -> List[Issue]:
        ...

    @abstractmethod
    def delete_issues(self, session_id: str) -> int:
        ...

    def bulk_insert_issues(self, issues: Iterable[Issue]) -> None:
        for issue in issues:
            self.insert_issue(issue)

    def bulk_update_issues(self, session_id: str, issue_ids: Iterable[str], fields: Dict[str, Any]) -> None:
        for issue_id in issue_ids:
            self.update_issue(session_id, issue_id, fields)

    def close(self) -> None:
        """Release any held resources."""


def _session(session_id: Optional[str]) -> str:
    return session_id or ""


def _check_fields(fields: Dict[str, Any]) -> None:
    unknown = set(fields) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")


def apply_fields(issue: Issue, fields: Dict[str, Any]) -> Issue:
    """Return a copy of issue with fields applied."""
    _check_fields(fields)
    updated = copy.deepcopy(issue)
    for name, value in fields.items():
        if name == "status":
            value = IssueStatus(_enum_value(value))
        elif name == "severity":
            value = Severity(_enum_value(value))
        setattr(updated, name, value)
    return updated


class InMemoryDatabaseAdapter(DatabaseAdapter):
    """Dict-backed store. Preserves first-insertion order."""

    def __init__(self):
        self._issues: Dict[Tuple[str, str], Issue] = {}

    def insert_issue(self, issue: Issue) -> None:
        self._issues[(_session(issue.session_id), issue.id)] = copy.deepcopy(issue)

    def update_issue(self, session_id: str, issue_id: str, fields: Dict[str, Any]) -> None:
        _check_fields(fields)
        key = (_session(session_id), issue_id)
        current = self._issues.get(key)
        if current is None:
            return
        self._issues[key] = apply_fields(current, fields)

    def get_issue(self, session_id: str, issue_id: str) -> Optional[Issue]:
        issue = self._issues.get((_session(session_id), issue_id))
        return copy.deepcopy(issue) if issue else None

    def get_issues(self, issue_filter: Optional[IssueFilter] = None) -> List[Issue]:
        issue_filter = issue_filter or IssueFilter()
        return [copy.deepcopy(i) for i in self._issues.values() if issue_filter.matches(i)]

    def delete_issues(self, session_id: str) -> int:
        doomed = [key for key in self._issues if key[0] == _session(session_id)]
        for key in doomed:
            del self._issues[key]
        return len(doomed)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS issues (
    id TEXT NOT NULL,
    session_id TEXT NOT NULL DEFAULT '',
    category TEXT NOT NULL,
    severity TEXT NOT NULL,
    status TEXT NOT NULL,
    file TEXT NOT NULL,
    line INTEGER NOT NULL,
    col INTEGER NOT NULL DEFAULT 1,
    end_line INTEGER,
    end_col INTEGER,
    message TEXT NOT NULL,
    description TEXT,
    suggestion TEXT,
    metadata TEXT NOT NULL DEFAULT '{}',
    retry_count INTEGER NOT NULL DEFAULT 0,
    last_error TEXT,
    code_snippet TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    resolved_at TEXT,
    PRIMARY KEY (session_id, id)
);
CREATE INDEX IF NOT EXISTS idx_issues_status ON issues(session_id, status);
"""

_COLUMNS = (
    "id", "session_id", "category", "severity", "status", "file", "line", "col",
    "end_line", "end_col", "message", "description", "suggestion", "metadata",
    "retry_count", "last_error", "code_snippet", "created_at", "updated_at", "resolved_at",
)

# Tracker field -> column, for filters and partial updates
_FILTER_COLUMNS = {
    "session_id": "session_id",
    "status": "status",
    "severity": "severity",
    "category": "category",
    "file_path": "file",
}


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _to_row(issue: Issue) -> tuple:
    loc = issue.location
    return (
        issue.id,
        _session(issue.session_id),
        issue.category.value,
        issue.severity.value,
        issue.status.value,
        loc.file,
        loc.line,
        loc.column,
        loc.end_line,
        loc.end_column,
        issue.message,
        issue.description,
        issue.suggestion,
        json.dumps(issue.metadata, default=str),
        issue.retry_count,
        issue.last_error,
        issue.code_snippet,
        _ts(issue.created_at),
        _ts(issue.updated_at),
        _ts(issue.resolved_at),
    )


def _from_row(row: sqlite3.Row) -> Issue:
    return Issue(
        id=row["id"],
        session_id=row["session_id"] or None,
        category=IssueCategory(row["category"]),
        severity=Severity(row["severity"]),
        status=IssueStatus(row["status"]),
        location=SourceLocation(
            file=row["file"],
            line=row["line"],
            column=row["col"],
            end_line=row["end_line"],
            end_column=row["end_col"],
        ),
        message=row["message"],
        description=row["description"],
        suggestion=row["suggestion"],
        metadata=json.loads(row["metadata"] or "{}"),
        retry_count=row["retry_count"],
        last_error=row["last_error"],
        code_snippet=row["code_snippet"],
        created_at=_parse_ts(row["created_at"]) or datetime.now(),
        updated_at=_parse_ts(row["updated_at"]) or datetime.now(),
        resolved_at=_parse_ts(row["resolved_at"]),
    )


def _to_column_value(name: str, value: Any) -> Any:
    if name in ("resolved_at", "updated_at"):
        return _ts(value)
    if name == "metadata":
        return json.dumps(value, default=str)
    return _enum_value(value)


class SqliteDatabaseAdapter(DatabaseAdapter):
    """
    SQLite-backed store.

    One connection per thread; the tracker is single-writer per session so
    no further locking is needed. Use ":memory:" for a throwaway database.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._local = threading.local()
        self._memory_conn: Optional[sqlite3.Connection] = None
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        if self.db_path == ":memory:":
            # A private in-memory database only lives as long as its connection
            if self._memory_conn is None:
                self._memory_conn = sqlite3.connect(":memory:", check_same_thread=False)
                self._memory_conn.row_factory = sqlite3.Row
            return self._memory_conn

        if not hasattr(self._local, "conn") or self._local.conn is None:
            self._local.conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._local.conn.row_factory = sqlite3.Row
        return self._local.conn

    def _init_db(self) -> None:
        conn = self._get_conn()
        conn.executescript(_SCHEMA)
        conn.commit()

    def insert_issue(self, issue: Issue) -> None:
        self.bulk_insert_issues([issue])

    def bulk_insert_issues(self, issues: Iterable[Issue]) -> None:
        placeholders = ", ".join("?" for _ in _COLUMNS)
        updates = ", ".join(f"{c} = excluded.{c}" for c in _COLUMNS if c not in ("id", "session_id", "created_at"))
        sql = (
            f"INSERT INTO issues ({', '.join(_COLUMNS)}) VALUES ({placeholders}) "
            f"ON CONFLICT(session_id, id) DO UPDATE SET {updates}"
        )
        conn = self._get_conn()
        with conn:
            conn.executemany(sql, [_to_row(issue) for issue in issues])

    def update_issue(self, session_id: str, issue_id: str, fields: Dict[str, Any]) -> None:
        self.bulk_update_issues(session_id, [issue_id], fields)

    def bulk_update_issues(self, session_id: str, issue_ids: Iterable[str], fields: Dict[str, Any]) -> None:
        _check_fields(fields)
        ids = list(issue_ids)
        if not ids or not fields:
            return
        assignments = ", ".join(f"{name} = ?" for name in fields)
        values = [_to_column_value(name, value) for name, value in fields.items()]
        conn = self._get_conn()
        with conn:
            conn.executemany(
                f"UPDATE issues SET {assignments} WHERE session_id = ? AND id = ?",
                [values + [_session(session_id), issue_id] for issue_id in ids],
            )

    def get_issue(self, session_id: str, issue_id: str) -> Optional[Issue]:
        row = self._get_conn().execute(
            "SELECT * FROM issues WHERE session_id = ? AND id = ?",
            (_session(session_id), issue_id),
        ).fetchone()
        return _from_row(row) if row else None

    def get_issues(self, issue_filter: Optional[IssueFilter] = None) -> List[Issue]:
        issue_filter = issue_filter or IssueFilter()
        clauses = []
        params: List[Any] = []
        for attr, column in _FILTER_COLUMNS.items():
            values = _as_list(getattr(issue_filter, attr))
            if values is None:
                continue
            clauses.append(f"{column} IN ({', '.join('?' for _ in values)})")
            params.extend(_enum_value(v) for v in values)

        sql = "SELECT * FROM issues"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY rowid"
        return [_from_row(row) for row in self._get_conn().execute(sql, params).fetchall()]

    def delete_issues(self, session_id: str) -> int:
        conn = self._get_conn()
        with conn:
            cursor = conn.execute("DELETE FROM issues WHERE session_id = ?", (session_id,))
        return cursor.rowcount

    def close(self) -> None:
        if self._memory_conn is not None:
            self._memory_conn.close()
            self._memory_conn = None
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None
