"""Tests for the analysis orchestrator.

Analyzers are stand-ins with fixed output; the primary path runs against a
scripted backend.
"""

import asyncio

import pytest

from quality_agent.analyzers import PluginRegistry
from quality_agent.config import AgentLoopConfig, OrchestratorConfig
from quality_agent.errors import BackendError, ConfigurationError
from quality_agent.models import BackendResponse, ProgressStatus, Severity
from quality_agent.orchestrator import LLM_ORCHESTRATOR, AnalysisOrchestrator

from fakes import ScriptedBackend, StaticAnalyzer, create_issue_call, make_issue, write_tree


class SlowBackend(ScriptedBackend):

    async def send(self, system_prompt, history, tools):
        await asyncio.sleep(5)
        return await super().send(system_prompt, history, tools)


@pytest.fixture
def project(tmp_path):
    write_tree(tmp_path, {"a.py": "x = 1\n", "b.py": "y = 2\n"})
    return tmp_path


def registry_of(*analyzers):
    registry = PluginRegistry()
    for analyzer in analyzers:
        registry.register_analyzer(analyzer)
    return registry


def agentic_config(**overrides):
    """Config whose agentic loop runs no external tools."""
    config = OrchestratorConfig(
        agent=AgentLoopConfig(run_lint=False, run_type_check=False, run_tests=False, run_build=False),
    )
    for key, value in overrides.items():
        setattr(config, key, value)
    return config


def no_credential(llm_config):
    return False


def with_credential(llm_config):
    return True


class TestFallbackPath:
    """Tests for the static analyzer roster."""

    def test_no_credential_runs_roster(self, project):
        """Given no backend credential, should run every registered analyzer."""
        # Given
        first = StaticAnalyzer("first", [make_issue(file="a.py", line=1, message="one")])
        second = StaticAnalyzer("second", [make_issue(file="b.py", line=1, message="two")])
        orchestrator = AnalysisOrchestrator(registry=registry_of(first, second), credential_check=no_credential)

        # When
        result = asyncio.run(orchestrator.analyze(str(project)))

        # Then
        assert result.analyzers_run == ["first", "second"]
        assert {i.message for i in result.issues} == {"one", "two"}
        assert result.summary.total == 2

    def test_use_llm_false_skips_primary(self, project):
        """Given use_llm disabled, should not build a backend even with a credential."""
        def factory(llm_config):
            raise AssertionError("backend should not be built")

        orchestrator = AnalysisOrchestrator(
            OrchestratorConfig(use_llm=False),
            registry=registry_of(StaticAnalyzer("only")),
            backend_factory=factory,
            credential_check=with_credential,
        )

        result = asyncio.run(orchestrator.analyze(str(project)))

        assert result.analyzers_run == ["only"]

    def test_failing_analyzer_is_isolated(self, project):
        """Given one analyzer that raises, should keep the others' issues and omit it from analyzers_run."""
        # Given
        good = StaticAnalyzer("good", [make_issue(message="kept")])
        bad = StaticAnalyzer("bad", error=RuntimeError("parser exploded"))
        events = []
        orchestrator = AnalysisOrchestrator(registry=registry_of(good, bad), credential_check=no_credential)

        # When
        result = asyncio.run(orchestrator.analyze(str(project), on_progress=events.append))

        # Then
        assert result.analyzers_run == ["good"]
        assert [i.message for i in result.issues] == ["kept"]
        failed = [e for e in events if e.status == ProgressStatus.FAILED]
        assert [(e.analyzer_name, e.error) for e in failed] == [("bad", "parser exploded")]

    def test_batches_complete_before_next_starts(self, project):
        """Given concurrency 2 and three analyzers, should finish the first pair before starting the third."""
        # Given
        analyzers = [StaticAnalyzer(name) for name in ("a", "b", "c")]
        events = []
        orchestrator = AnalysisOrchestrator(
            OrchestratorConfig(concurrency=2),
            registry=registry_of(*analyzers),
            credential_check=no_credential,
        )

        # When
        asyncio.run(orchestrator.analyze(str(project), on_progress=events.append))

        # Then
        order = [(e.analyzer_name, e.status) for e in events]
        third_started = order.index(("c", ProgressStatus.STARTED))
        assert order.index(("a", ProgressStatus.COMPLETED)) < third_started
        assert order.index(("b", ProgressStatus.COMPLETED)) < third_started

    def test_analyzer_subset(self, project):
        """Given a configured subset, should run only those analyzers in the given order."""
        analyzers = [StaticAnalyzer(name) for name in ("a", "b", "c")]
        orchestrator = AnalysisOrchestrator(
            OrchestratorConfig(analyzers=["c", "a"]),
            registry=registry_of(*analyzers),
            credential_check=no_credential,
        )

        result = asyncio.run(orchestrator.analyze(str(project)))

        assert result.analyzers_run == ["c", "a"]
        assert analyzers[1].calls == 0

    def test_unknown_analyzer(self, project):
        """Given an unregistered analyzer name, should raise ConfigurationError."""
        orchestrator = AnalysisOrchestrator(
            OrchestratorConfig(analyzers=["nope"]),
            registry=registry_of(StaticAnalyzer("a")),
            credential_check=no_credential,
        )

        with pytest.raises(ConfigurationError, match="Unknown analyzer: nope"):
            asyncio.run(orchestrator.analyze(str(project)))


class TestPrimaryPath:
    """Tests for the agentic path and its one-time fallback."""

    def test_agentic_success(self, project):
        """Given a working backend, should report issues from the agentic loop only."""
        # Given
        backend = ScriptedBackend([
            BackendResponse(text="", tool_calls=[create_issue_call("Magic number", file="a.py", line=1)]),
        ])
        roster = StaticAnalyzer("static", [make_issue(message="static")])
        orchestrator = AnalysisOrchestrator(
            agentic_config(),
            registry=registry_of(roster),
            backend_factory=lambda llm_config: backend,
            credential_check=with_credential,
        )

        # When
        result = asyncio.run(orchestrator.analyze(str(project)))

        # Then
        assert result.analyzers_run == [LLM_ORCHESTRATOR]
        assert [i.message for i in result.issues] == ["Magic number"]
        assert roster.calls == 0

    def test_unknown_analyzer_rejected_on_agentic_path(self, project):
        """Given a working backend and an unregistered analyzer name, should still raise ConfigurationError."""
        # Given
        backend = ScriptedBackend()
        orchestrator = AnalysisOrchestrator(
            agentic_config(analyzers=["static", "nope"]),
            registry=registry_of(StaticAnalyzer("static")),
            backend_factory=lambda llm_config: backend,
            credential_check=with_credential,
        )

        # When / Then
        with pytest.raises(ConfigurationError, match="Unknown analyzer: nope"):
            asyncio.run(orchestrator.analyze(str(project)))
        assert backend.histories == []

    def test_backend_failure_falls_back(self, project):
        """Given a backend that fails on the first round trip, should fall back to the roster once."""
        # Given
        backend = ScriptedBackend([BackendError("connection refused")])
        roster = StaticAnalyzer("static", [make_issue(message="static")])
        events = []
        orchestrator = AnalysisOrchestrator(
            agentic_config(),
            registry=registry_of(roster),
            backend_factory=lambda llm_config: backend,
            credential_check=with_credential,
        )

        # When
        result = asyncio.run(orchestrator.analyze(str(project), on_progress=events.append))

        # Then
        assert result.analyzers_run == ["static"]
        assert [i.message for i in result.issues] == ["static"]
        assert roster.calls == 1
        assert (LLM_ORCHESTRATOR, ProgressStatus.FAILED) in [(e.analyzer_name, e.status) for e in events]

    def test_backend_construction_failure_falls_back(self, project):
        """Given a factory that cannot build a backend, should fall back."""
        def factory(llm_config):
            raise ConfigurationError("bad provider settings")

        orchestrator = AnalysisOrchestrator(
            agentic_config(),
            registry=registry_of(StaticAnalyzer("static")),
            backend_factory=factory,
            credential_check=with_credential,
        )

        result = asyncio.run(orchestrator.analyze(str(project)))

        assert result.analyzers_run == ["static"]

    def test_agent_timeout_falls_back(self, project):
        """Given a backend slower than agent_timeout, should fall back."""
        orchestrator = AnalysisOrchestrator(
            agentic_config(agent_timeout=0.1),
            registry=registry_of(StaticAnalyzer("static", [make_issue(message="static")])),
            backend_factory=lambda llm_config: SlowBackend(),
            credential_check=with_credential,
        )

        result = asyncio.run(orchestrator.analyze(str(project)))

        assert result.analyzers_run == ["static"]
        assert [i.message for i in result.issues] == ["static"]


class TestResultShaping:
    """Tests for dedup, ordering, capping and determinism."""

    def test_dedup_sort_and_cap(self, project):
        """Given overlapping findings, should dedup, sort by severity and cap."""
        # Given
        shared = make_issue(file="a.py", line=1, message="shared", severity=Severity.WARNING)
        first = StaticAnalyzer("first", [shared, make_issue(file="b.py", line=1, message="hint", severity=Severity.HINT)])
        second = StaticAnalyzer("second", [
            make_issue(file="a.py", line=1, message="shared", severity=Severity.WARNING),
            make_issue(file="z.py", line=1, message="error", severity=Severity.ERROR),
        ])
        orchestrator = AnalysisOrchestrator(
            OrchestratorConfig(max_issues=2),
            registry=registry_of(first, second),
            credential_check=no_credential,
        )

        # When
        result = asyncio.run(orchestrator.analyze(str(project)))

        # Then
        assert [i.message for i in result.issues] == ["error", "shared"]
        assert result.summary.total == 2

    def test_deterministic_output(self, project):
        """Given the same tree twice, should produce identical ordered issue ids."""
        def build():
            return AnalysisOrchestrator(
                registry=registry_of(
                    StaticAnalyzer("first", [make_issue(line=n, message=f"m{n}") for n in (3, 1, 2)]),
                    StaticAnalyzer("second", [make_issue(file="b.py", line=1, severity=Severity.ERROR)]),
                ),
                credential_check=no_credential,
            )

        one = asyncio.run(build().analyze(str(project)))
        two = asyncio.run(build().analyze(str(project)))

        assert [i.id for i in one.issues] == [i.id for i in two.issues]
        assert one.issues[0].severity == Severity.ERROR

    def test_empty_tree(self, tmp_path):
        """Given a tree with no matching files, should return an empty result without running analyzers."""
        analyzer = StaticAnalyzer("a", [make_issue()])
        orchestrator = AnalysisOrchestrator(registry=registry_of(analyzer), credential_check=no_credential)

        result = asyncio.run(orchestrator.analyze(str(tmp_path)))

        assert result.issues == []
        assert result.analyzers_run == []
        assert result.summary.by_severity == {"error": 0, "warning": 0, "info": 0, "hint": 0}
        assert analyzer.calls == 0

    def test_include_and_exclude(self, project):
        """Given include/exclude globs, should hand analyzers only the selected files."""
        seen = []

        class Recorder(StaticAnalyzer):
            async def analyze(self, files, options):
                seen.extend(files)
                return []

        orchestrator = AnalysisOrchestrator(registry=registry_of(Recorder("rec")), credential_check=no_credential)

        asyncio.run(orchestrator.analyze(str(project), include=["**/*.py"], exclude=["b.py"]))

        assert seen == [str(project / "a.py")]

    def test_analyze_sync(self, project):
        """Given the synchronous wrapper, should return the same kind of result."""
        orchestrator = AnalysisOrchestrator(
            registry=registry_of(StaticAnalyzer("a", [make_issue()])),
            credential_check=no_credential,
        )

        result = orchestrator.analyze_sync(str(project))

        assert result.summary.total == 1
        assert orchestrator.get_available_analyzers() == ["a"]
