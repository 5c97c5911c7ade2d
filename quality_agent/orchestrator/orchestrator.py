"""Analysis orchestrator: file discovery, strategy selection and fan-out."""

import asyncio
import os
import time
from typing import Callable, List, Optional, Tuple

from ..analyzers import AnalyzerOptions, BaseAnalyzer, PluginRegistry, default_registry
from ..backends import ReasoningBackend, create_backend, has_credential
from ..config import LLMConfig, OrchestratorConfig
from ..errors import ConfigurationError
from ..models import AnalysisResult, Issue, ProgressEvent, ProgressStatus
from ..pipeline import AgenticLoop
from ..tools import ToolRouter
from ..utils import (
    cap_issues,
    deduplicate_issues,
    find_files,
    get_logger,
    sort_issues,
    summarize,
)


LLM_ORCHESTRATOR = "llm-orchestrator"

ProgressCallback = Callable[[ProgressEvent], None]
BackendFactory = Callable[[LLMConfig], ReasoningBackend]


class AnalysisOrchestrator:
    """
    Runs one analysis over a project tree.

    Features:
    - File discovery with include/exclude globs
    - Primary path: the agentic loop, when a reasoning backend is configured
    - Fallback path: the analyzer roster in batches of `concurrency`
    - One-time fallback when the primary path fails or times out
    - Dedup, stable severity sort and cap on the merged result
    """

    def __init__(
        self,
        config: Optional[OrchestratorConfig] = None,
        registry: Optional[PluginRegistry] = None,
        backend_factory: BackendFactory = create_backend,
        credential_check: Callable[[LLMConfig], bool] = has_credential,
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Orchestrator configuration (defaults apply when None)
            registry: Analyzers available to the fallback path
            backend_factory: Builds the reasoning backend for the primary path
            credential_check: Decides whether the primary path is available
        """
        self.config = config or OrchestratorConfig()
        self.registry = registry or default_registry()
        self.backend_factory = backend_factory
        self.credential_check = credential_check
        self.logger = get_logger()

    # ------------------------------------------------------------------
    # Analyzer management
    # ------------------------------------------------------------------

    def register_analyzer(self, analyzer: BaseAnalyzer, **manifest) -> None:
        self.registry.register_analyzer(analyzer, **manifest)

    def get_available_analyzers(self) -> List[str]:
        return [plugin.manifest.name for plugin in self.registry.list()]

    def select_analyzers(self, names: Optional[List[str]] = None) -> List[BaseAnalyzer]:
        """
        Resolve analyzer names against the registry.

        Raises:
            ConfigurationError: A requested analyzer is not registered
        """
        if names is None:
            return self.registry.get_analyzers()

        selected = []
        for name in names:
            plugin = self.registry.get(name)
            if plugin is None:
                available = ", ".join(self.get_available_analyzers())
                raise ConfigurationError(f"Unknown analyzer: {name} (available: {available})")
            selected.append(plugin.analyzer)
        return selected

    def uses_llm(self) -> bool:
        return self.config.use_llm and self.credential_check(self.config.llm)

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    @staticmethod
    def _emit(on_progress: Optional[ProgressCallback], event: ProgressEvent) -> None:
        if on_progress is not None:
            on_progress(event)

    async def run_analyzer(
        self,
        analyzer: BaseAnalyzer,
        files: List[str],
        root_dir: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Optional[List[Issue]]:
        """
        Run one analyzer, isolating its failure.

        Returns:
            Its issues, or None if it failed
        """
        self._emit(on_progress, ProgressEvent(analyzer.name, ProgressStatus.STARTED))
        options = AnalyzerOptions(
            root_dir=root_dir,
            config=dict(self.config.analyzer_configs.get(analyzer.name, {})),
        )
        try:
            issues = await analyzer.analyze(files, options)
        except Exception as e:
            # One broken analyzer contributes nothing; the run goes on
            self.logger.warning(f"Analyzer {analyzer.name} failed: {e}")
            self._emit(on_progress, ProgressEvent(analyzer.name, ProgressStatus.FAILED, error=str(e)))
            return None

        self.logger.debug(f"Analyzer {analyzer.name} found {len(issues)} issues")
        self._emit(on_progress, ProgressEvent(analyzer.name, ProgressStatus.COMPLETED, issue_count=len(issues)))
        return issues

    async def run_fallback(
        self,
        root_dir: str,
        files: List[str],
        on_progress: Optional[ProgressCallback] = None,
        analyzers: Optional[List[BaseAnalyzer]] = None,
    ) -> Tuple[List[Issue], List[str]]:
        """
        Run the analyzer roster in batches of `concurrency`.

        Each batch runs fully in parallel and completes before the next one
        starts. The roster defaults to the configured selection.

        Returns:
            (issues, names of analyzers that completed)
        """
        if analyzers is None:
            analyzers = self.select_analyzers(self.config.analyzers)
        concurrency = max(1, self.config.concurrency)
        issues: List[Issue] = []
        analyzers_run: List[str] = []

        for start in range(0, len(analyzers), concurrency):
            batch = analyzers[start:start + concurrency]
            self.logger.info(f"Running analyzers: {', '.join(a.name for a in batch)}")

            results = await asyncio.gather(
                *(self.run_analyzer(a, files, root_dir, on_progress) for a in batch),
                return_exceptions=True,
            )
            for analyzer, result in zip(batch, results):
                if isinstance(result, BaseException):
                    self.logger.error(f"Analyzer {analyzer.name} crashed: {result}")
                    continue
                if result is None:
                    continue
                issues.extend(result)
                analyzers_run.append(analyzer.name)

        return issues, analyzers_run

    async def run_agentic(
        self,
        root_dir: str,
        files: List[str],
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[Issue]:
        """Primary path. Raises on failure so analyze() can fall back."""
        self._emit(on_progress, ProgressEvent(LLM_ORCHESTRATOR, ProgressStatus.STARTED))

        backend = self.backend_factory(self.config.llm)
        router = ToolRouter(root_dir, timeout=self.config.agent.tool_timeout)
        loop = AgenticLoop(backend, router, self.config.agent)

        run = loop.run(files)
        if self.config.agent_timeout:
            issues = await asyncio.wait_for(run, timeout=self.config.agent_timeout)
        else:
            issues = await run

        self._emit(on_progress, ProgressEvent(LLM_ORCHESTRATOR, ProgressStatus.COMPLETED, issue_count=len(issues)))
        return issues

    def finalize(self, issues: List[Issue]) -> List[Issue]:
        """Dedup, sort and cap according to config."""
        if self.config.deduplicate:
            issues = deduplicate_issues(issues)
        if self.config.sort_by_severity:
            issues = sort_issues(issues)
        return cap_issues(issues, self.config.max_issues)

    async def analyze(
        self,
        root_dir: str,
        include: Optional[List[str]] = None,
        exclude: Optional[List[str]] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> AnalysisResult:
        """
        Analyze a project tree.

        Args:
            root_dir: Project root
            include: Glob patterns to include (broad defaults when None)
            exclude: Glob patterns to exclude (build output, lockfiles, ...)
            on_progress: Optional callback for live feedback

        Returns:
            AnalysisResult with deduplicated, sorted and capped issues

        Raises:
            ConfigurationError: Unknown analyzer or provider requested
        """
        start = time.monotonic()
        root_dir = os.path.abspath(root_dir)
        # Unknown analyzer names fail every run, agentic or not
        roster = self.select_analyzers(self.config.analyzers)

        files = find_files(root_dir, include, exclude)
        self.logger.info(f"Discovered {len(files)} files under {root_dir}")
        if not files:
            return AnalysisResult(issues=[], summary=summarize([]), duration=time.monotonic() - start)

        if self.uses_llm():
            try:
                issues = await self.run_agentic(root_dir, files, on_progress)
                analyzers_run = [LLM_ORCHESTRATOR]
            except Exception as e:
                # Any primary-path failure degrades to the static roster, once
                self.logger.warning(f"Agentic analysis failed, falling back to static analyzers: {e}")
                self._emit(on_progress, ProgressEvent(LLM_ORCHESTRATOR, ProgressStatus.FAILED, error=str(e) or type(e).__name__))
                issues, analyzers_run = await self.run_fallback(root_dir, files, on_progress, roster)
        else:
            self.logger.info("No reasoning backend configured, running static analyzers")
            issues, analyzers_run = await self.run_fallback(root_dir, files, on_progress, roster)

        issues = self.finalize(issues)
        duration = time.monotonic() - start
        self.logger.info(f"Analysis complete: {len(issues)} issues in {duration:.1f}s")

        return AnalysisResult(
            issues=issues,
            summary=summarize(issues),
            duration=duration,
            analyzers_run=analyzers_run,
        )

    def analyze_sync(self, root_dir: str, **kwargs) -> AnalysisResult:
        """Synchronous wrapper for analyze."""
        return asyncio.run(self.analyze(root_dir, **kwargs))


async def analyze(
    root_dir: str,
    config: Optional[OrchestratorConfig] = None,
    include: Optional[List[str]] = None,
    exclude: Optional[List[str]] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> AnalysisResult:
    """Convenience: analyze a tree with a fresh orchestrator."""
    orchestrator = AnalysisOrchestrator(config)
    return await orchestrator.analyze(root_dir, include, exclude, on_progress)


def analyze_sync(root_dir: str, config: Optional[OrchestratorConfig] = None, **kwargs) -> AnalysisResult:
    """Synchronous wrapper for analyze."""
    return asyncio.run(analyze(root_dir, config, **kwargs))
