"""Tests for the agentic analysis loop.

The backend is scripted; the router is real and works on a tmp_path tree.
"""

import asyncio

import pytest

from quality_agent.config import AgentLoopConfig
from quality_agent.errors import BackendError
from quality_agent.models import BackendResponse, IssueCategory, Message, Severity, ToolCall
from quality_agent.pipeline import AgenticLoop, issue_from_params, parse_issues
from quality_agent.pipeline.prompts import COMPLETION_SENTINEL, build_initial_prompt
from quality_agent.tools import ToolRouter

from fakes import EndlessToolBackend, ScriptedBackend, create_issue_call, write_tree


def quiet_config(**overrides) -> AgentLoopConfig:
    """Loop config that runs no external tools up front."""
    config = AgentLoopConfig(
        run_lint=False,
        run_type_check=False,
        run_tests=False,
        run_build=False,
    )
    for key, value in overrides.items():
        setattr(config, key, value)
    return config


@pytest.fixture
def project(tmp_path):
    write_tree(tmp_path, {
        "a.py": "def add(a, b):\n    return a - b\n",
        "b.py": "print('hello')\n",
    })
    return tmp_path


class TestIssueFromParams:
    """Tests for converting create_issue parameters."""

    def test_normalizes_labels_and_resolves_path(self, tmp_path):
        """Given synonym labels and a relative file, should normalize and anchor at the root."""
        # Given
        params = {
            "type": "vulnerability",
            "severity": "critical",
            "title": "SQL injection",
            "file": "db/query.py",
            "lineStart": 12,
            "lineEnd": 14,
            "suggestedFix": "Use parameters",
        }

        # When
        issue = issue_from_params(params, str(tmp_path))

        # Then
        assert issue.category == IssueCategory.SECURITY
        assert issue.severity == Severity.ERROR
        assert issue.location.file == str(tmp_path / "db" / "query.py")
        assert issue.location.line == 12
        assert issue.location.end_line == 14
        assert issue.suggestion == "Use parameters"
        assert issue.metadata["original_category"] == "vulnerability"

    def test_bad_line_numbers_default(self, tmp_path):
        """Given non-numeric line numbers, should fall back to line 1."""
        issue = issue_from_params({"title": "x", "file": "a.py", "lineStart": "soon"}, str(tmp_path))

        assert issue.location.line == 1
        assert issue.location.end_line == 1


class TestParseIssues:
    """Tests for issues embedded in free-text replies."""

    def test_json_block_in_prose(self, tmp_path):
        """Given a fenced JSON block, should extract its issues and skip invalid entries."""
        # Given
        text = (
            "Here is what I found:\n```json\n"
            '{"issues": [{"type": "bug", "severity": "high", "title": "Wrong operator", '
            '"file": "a.py", "lineStart": 2}, {"type": "bug"}, "junk"]}\n```'
        )

        # When
        issues = parse_issues(text, str(tmp_path))

        # Then
        assert len(issues) == 1
        assert issues[0].message == "Wrong operator"
        assert issues[0].severity == Severity.ERROR

    def test_unparseable_reply_yields_nothing(self, tmp_path):
        """Given a reply without JSON, should return no issues."""
        assert parse_issues("I could not find anything useful {", str(tmp_path)) == []


class TestStep:
    """Tests for the pure transition function."""

    def test_does_not_mutate_history(self, project):
        """Given a history, should return a new one and leave the input alone."""
        # Given
        loop = AgenticLoop(ScriptedBackend(), ToolRouter(str(project)), quiet_config())
        history = [Message.system("sys"), Message.user("go")]
        snapshot = list(history)

        # When
        transition = loop.step(history, BackendResponse(text="Still thinking, will create_issue soon"), 0)

        # Then
        assert history == snapshot
        assert transition.history is not history
        assert not transition.terminated
        assert transition.history[-1].content.startswith("Continue the analysis")

    def test_tool_calls_become_pending_in_order(self, project):
        """Given tool calls, should queue them all in order, create_issue included."""
        # Given
        loop = AgenticLoop(ScriptedBackend(), ToolRouter(str(project)), quiet_config())
        calls = [
            ToolCall(name="read_file", parameters={"path": "a.py"}, id="1"),
            create_issue_call("Subtraction instead of addition", line=2),
        ]

        # When
        transition = loop.step([], BackendResponse(text="", tool_calls=calls), 0)

        # Then
        assert [c.name for c in transition.pending_calls] == ["read_file", "create_issue"]
        assert transition.issues == []
        assert transition.history[-1].tool_calls == tuple(calls)
        assert not transition.terminated

    def test_sentinel_terminates(self, project):
        """Given the completion sentinel, should terminate."""
        loop = AgenticLoop(ScriptedBackend(), ToolRouter(str(project)), quiet_config())

        transition = loop.step([], BackendResponse(text=f"Done. {COMPLETION_SENTINEL}"), 0)

        assert transition.terminated

    def test_reply_without_intent_terminates(self, project):
        """Given a plain reply that never mentions create_issue, should terminate."""
        loop = AgenticLoop(ScriptedBackend(), ToolRouter(str(project)), quiet_config())

        transition = loop.step([], BackendResponse(text="The code looks fine."), 0)

        assert transition.terminated

    def test_last_iteration_terminates(self, project):
        """Given the final allowed iteration, should terminate even if the model wants more."""
        loop = AgenticLoop(ScriptedBackend(), ToolRouter(str(project)), quiet_config(max_iterations=3))

        transition = loop.step([], BackendResponse(text="I will create_issue next"), 2)

        assert transition.terminated


class TestRunConversation:
    """Tests for driving the loop against a backend."""

    def test_create_issue_collected_once(self, project):
        """Given one create_issue call, should collect exactly one issue and acknowledge it."""
        # Given
        backend = ScriptedBackend([
            BackendResponse(text="", tool_calls=[create_issue_call("Off by one", line=2)]),
            BackendResponse(text=COMPLETION_SENTINEL),
        ])
        loop = AgenticLoop(backend, ToolRouter(str(project)), quiet_config())

        # When
        issues = asyncio.run(loop.run_conversation([str(project / "a.py")]))

        # Then
        assert [(i.message, i.location.line) for i in issues] == [("Off by one", 2)]
        assert backend.histories[1][-1].content == "Issue created: Off by one"

    def test_invalid_create_issue_is_reported(self, project):
        """Given a create_issue call without a file, should feed the error back and collect nothing."""
        backend = ScriptedBackend([
            BackendResponse(text="", tool_calls=[ToolCall("create_issue", {"title": "No file"}, "c1")]),
            BackendResponse(text=COMPLETION_SENTINEL),
        ])
        loop = AgenticLoop(backend, ToolRouter(str(project)), quiet_config())

        issues = asyncio.run(loop.run_conversation([str(project / "a.py")]))

        assert issues == []
        assert backend.histories[1][-1].content.startswith("Error executing create_issue")

    def test_collects_issues_from_tool_calls(self, project):
        """Given a backend that reads a file then reports an issue, should collect it."""
        # Given
        backend = ScriptedBackend([
            BackendResponse(text="", tool_calls=[ToolCall(name="read_file", parameters={"path": "a.py"}, id="r1")]),
            BackendResponse(text="", tool_calls=[create_issue_call("Subtraction instead of addition", line=2)]),
            BackendResponse(text=COMPLETION_SENTINEL),
        ])
        loop = AgenticLoop(backend, ToolRouter(str(project)), quiet_config())

        # When
        issues = asyncio.run(loop.run_conversation([str(project / "a.py")]))

        # Then
        assert [i.message for i in issues] == ["Subtraction instead of addition"]
        assert len(backend.histories) == 3
        # The file content was fed back as a tool message
        tool_messages = [m for m in backend.histories[1] if m.role.value == "tool"]
        assert "return a - b" in tool_messages[-1].content

    def test_tool_errors_are_fed_back(self, project):
        """Given a tool call that fails, should report the error to the model and continue."""
        backend = ScriptedBackend([
            BackendResponse(text="", tool_calls=[ToolCall(name="read_file", parameters={"path": "../etc/passwd"}, id="r1")]),
            BackendResponse(text=COMPLETION_SENTINEL),
        ])
        loop = AgenticLoop(backend, ToolRouter(str(project)), quiet_config())

        issues = asyncio.run(loop.run_conversation([str(project / "a.py")]))

        assert issues == []
        last = backend.histories[1][-1]
        assert last.content.startswith("Error executing read_file")

    def test_bounded_by_max_iterations(self, project):
        """Given a backend that never finishes, should stop after max_iterations round trips."""
        # Given
        backend = EndlessToolBackend()
        loop = AgenticLoop(backend, ToolRouter(str(project)), quiet_config(max_iterations=4))

        # When
        issues = asyncio.run(loop.run_conversation([str(project / "a.py")]))

        # Then
        assert backend.calls == 4
        assert issues == []

    def test_first_iteration_failure_propagates(self, project):
        """Given a backend failing on the first round trip, should raise BackendError."""
        backend = ScriptedBackend([BackendError("connection refused")])
        loop = AgenticLoop(backend, ToolRouter(str(project)), quiet_config())

        with pytest.raises(BackendError):
            asyncio.run(loop.run_conversation([str(project / "a.py")]))

    def test_later_failure_keeps_collected_issues(self, project):
        """Given a failure after an issue was reported, should return what was collected."""
        backend = ScriptedBackend([
            BackendResponse(text="", tool_calls=[create_issue_call("Found one", line=1)]),
            BackendError("rate limited"),
        ])
        loop = AgenticLoop(backend, ToolRouter(str(project)), quiet_config())

        issues = asyncio.run(loop.run_conversation([str(project / "a.py")]))

        assert [i.message for i in issues] == ["Found one"]


class TestRun:
    """Tests for the full agentic run."""

    def test_empty_file_list(self, project):
        """Given no files, should return no issues without calling the backend."""
        backend = ScriptedBackend()
        loop = AgenticLoop(backend, ToolRouter(str(project)), quiet_config())

        assert asyncio.run(loop.run([])) == []
        assert backend.histories == []

    def test_group_pass_issues_are_merged_and_deduplicated(self, project):
        """Given the same finding from the loop and a group pass, should keep it once."""
        # Given
        group_reply = (
            '{"issues": [{"type": "bug", "severity": "error", "title": "Found one", '
            '"file": "a.py", "lineStart": 1}]}'
        )
        backend = ScriptedBackend(
            responses=[BackendResponse(text="", tool_calls=[create_issue_call("Found one", line=1)])],
            completions=[group_reply] * 5,
        )
        loop = AgenticLoop(backend, ToolRouter(str(project)), quiet_config())

        # When
        issues = asyncio.run(loop.run([str(project / "a.py"), str(project / "b.py")], tool_context=""))

        # Then
        assert [i.message for i in issues] == ["Found one"]


class TestInitialPrompt:
    """Tests for the first user turn."""

    def test_listing_is_capped(self):
        """Given more files than the listing limit, should list the limit and count the rest."""
        files = [f"src/file{n}.py" for n in range(55)]

        prompt = build_initial_prompt("/project", files, listing_limit=50)

        assert "src/file49.py" in prompt
        assert "src/file50.py" not in prompt
        assert "... and 5 more files" in prompt

    def test_focus_areas_included(self):
        """Given focus areas, should mention them."""
        prompt = build_initial_prompt("/project", ["a.py"], focus_areas=["security", "performance"])

        assert "security, performance" in prompt
