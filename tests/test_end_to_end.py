"""End-to-end: the built-in roster on a small JavaScript tree, through the API and the CLI."""

import asyncio
import json
import sys

import pytest

from quality_agent import OrchestratorConfig, analyze, analyze_sync
from quality_agent.analyzers import BUILTIN_ANALYZERS
from quality_agent.main import main
from quality_agent.models import IssueCategory, Severity
from quality_agent.orchestrator import LLM_ORCHESTRATOR

from fakes import write_tree


SOURCE = 'const apiKey = "{key}";\n// TODO: add validation\n'

PLUGIN_CLASHING_WITH_BUILTIN = '''
from quality_agent.analyzers import BaseAnalyzer


class OtherSecurityAnalyzer(BaseAnalyzer):
    name = "security"
    description = "Replacement security scan"

    async def analyze(self, files, options):
        return []


manifest = {"name": "security", "version": "1.0.0", "description": "Replacement security scan"}
analyzer = OtherSecurityAnalyzer()
'''


@pytest.fixture
def project(tmp_path):
    root = tmp_path / "project"
    write_tree(root, {
        "a.js": SOURCE.format(key="abcdefghijklmnopqrstuvwx1234"),
        "b.js": SOURCE.format(key="zyxwvutsrqponmlkjihgfedc9876"),
    })
    return root


def run_cli(monkeypatch, capsys, *argv):
    monkeypatch.setattr(sys, "argv", ["quality-agent", *argv])
    with pytest.raises(SystemExit) as exit_info:
        main()
    return exit_info.value.code, capsys.readouterr().out


class TestStaticScan:
    """Tests for a full scan without a reasoning backend."""

    def test_secrets_and_todos(self, project):
        """Given two files with a key and a TODO each, should report two errors and two warnings."""
        # When
        result = asyncio.run(analyze(str(project)))

        # Then
        assert len(result.issues) == 4
        assert result.analyzers_run == list(BUILTIN_ANALYZERS)
        assert LLM_ORCHESTRATOR not in result.analyzers_run
        assert result.summary.by_severity == {"error": 2, "warning": 2, "info": 0, "hint": 0}
        assert result.summary.by_category["security"] == 2
        assert result.summary.by_category["stub"] == 2

        # Errors first, then by file and line
        assert [(i.severity, i.category) for i in result.issues] == [
            (Severity.ERROR, IssueCategory.SECURITY),
            (Severity.ERROR, IssueCategory.SECURITY),
            (Severity.WARNING, IssueCategory.STUB),
            (Severity.WARNING, IssueCategory.STUB),
        ]
        assert [i.location.file for i in result.issues[:2]] == [str(project / "a.js"), str(project / "b.js")]
        assert all(i.location.line == 2 for i in result.issues[2:])

    def test_use_llm_disabled(self, project):
        """Given use_llm disabled explicitly, should produce the same findings."""
        result = analyze_sync(str(project), OrchestratorConfig(use_llm=False))

        assert result.summary.total == 4

    def test_repeat_scans_give_same_ids(self, project):
        """Given an unchanged tree, should derive identical issue ids."""
        first = analyze_sync(str(project))
        second = analyze_sync(str(project))

        assert [i.id for i in first.issues] == [i.id for i in second.issues]


class TestCli:
    """Tests for the command-line entry point."""

    def test_scan_json_and_stats(self, project, tmp_path, monkeypatch, capsys):
        """Given scan --json --db, should print the result and store it for stats."""
        # Given
        db_path = str(tmp_path / "issues.db")

        # When
        code, out = run_cli(
            monkeypatch, capsys,
            "scan", str(project), "--no-llm", "--json", "--db", db_path, "--session", "run-1",
        )

        # Then
        assert code == 0
        payload = json.loads(out)
        assert payload["summary"]["total"] == 4
        assert payload["issues"][0]["severity"] == "error"
        assert payload["issues"][0]["status"] == "pending"

        # When
        code, out = run_cli(monkeypatch, capsys, "stats", "--db", db_path, "--session", "run-1")

        # Then
        assert code == 0
        stats = json.loads(out)
        assert stats["total"] == 4
        assert stats["pending"] == 4
        assert stats["by_severity"] == {"error": 2, "warning": 2}

    def test_scan_markdown_with_cap(self, project, monkeypatch, capsys):
        """Given --max-issues, should print a capped markdown report."""
        code, out = run_cli(monkeypatch, capsys, "scan", str(project), "--max-issues", "1")

        assert code == 0
        assert "## Code Quality Report" in out
        assert "Total issues: 1" in out

    def test_unknown_analyzer_exits_with_error(self, project, monkeypatch, capsys):
        """Given an unknown analyzer name, should exit with status 2."""
        code, _ = run_cli(monkeypatch, capsys, "scan", str(project), "--analyzers", "security,nope")

        assert code == 2

    def test_sessions_keep_their_own_issues(self, project, tmp_path, monkeypatch, capsys):
        """Given two scans of the same tree into one database, should keep both sessions' issues."""
        # Given
        db_path = str(tmp_path / "issues.db")
        for session in ("A", "B"):
            run_cli(monkeypatch, capsys, "scan", str(project), "--json", "--db", db_path, "--session", session)

        # When
        _, out_a = run_cli(monkeypatch, capsys, "stats", "--db", db_path, "--session", "A")
        _, out_b = run_cli(monkeypatch, capsys, "stats", "--db", db_path, "--session", "B")

        # Then
        assert json.loads(out_a)["total"] == 4
        assert json.loads(out_b)["total"] == 4

    def test_plugin_name_clash_exits_with_error(self, project, tmp_path, monkeypatch, capsys):
        """Given a plugin reusing a built-in analyzer name, should exit with status 2."""
        # Given
        plugins = tmp_path / "plugins"
        write_tree(plugins, {"clash.py": PLUGIN_CLASHING_WITH_BUILTIN})

        # When
        code, out = run_cli(monkeypatch, capsys, "scan", str(project), "--plugins", str(plugins))

        # Then
        assert code == 2
        assert "Code Quality Report" not in out

    def test_github_without_token_exits_with_error(self, project, monkeypatch, capsys):
        """Given --github-repo and no GITHUB_TOKEN, should exit with status 2 before scanning."""
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)

        code, out = run_cli(monkeypatch, capsys, "scan", str(project), "--github-repo", "owner/repo")

        assert code == 2
        assert "Code Quality Report" not in out
