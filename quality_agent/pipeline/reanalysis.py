"""Re-analysis loop: verify applied fixes, retry what did not stick.

Fix -> verify -> retry. Verification runs the enabled command tools against
the fixed file and, when a reasoning backend is available, asks it to judge
whether the original issue is really gone.
"""

import inspect
import os
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from ..backends import ReasoningBackend
from ..config import ReAnalysisConfig, ToolCommands
from ..errors import QualityAgentError, ToolError, ToolUnavailableError
from ..models import (
    AnalysisLoopResult,
    CheckResult,
    Issue,
    ReAnalysisResult,
    Severity,
    Verification,
)
from ..tools import ToolOutput, ToolRouter
from ..tracker import IssueTracker
from ..utils import get_logger
from .agent_loop import issue_from_params
from .prompts import REANALYSIS_SYSTEM_PROMPT, extract_json, generate_reanalysis_prompt


NO_BACKEND_ASSESSMENT = "Verified by running tools (no LLM verification)"


@dataclass
class FixAttempt:
    """What a fix callback reports back for one issue."""
    fix_applied: bool
    fix: str = ""                     # Description of the change
    file_path: Optional[str] = None   # Defaults to the issue's file


FixCallback = Callable[[Issue], Union[Optional[FixAttempt], Awaitable[Optional[FixAttempt]]]]


class ReAnalysisLoop:
    """
    Verifies fixes for individual issues and drives repeated fix attempts.

    Example:
        loop = ReAnalysisLoop("/path/to/project", backend=backend)
        result = await loop.run_analysis_loop(issues, apply_fix)
        print(result.summary)
    """

    def __init__(
        self,
        root_dir: str,
        config: Optional[ReAnalysisConfig] = None,
        backend: Optional[ReasoningBackend] = None,
        router: Optional[ToolRouter] = None,
        tracker: Optional[IssueTracker] = None,
        commands: Optional[ToolCommands] = None,
    ):
        self.root_dir = os.path.abspath(root_dir)
        self.config = config or ReAnalysisConfig()
        self.backend = backend
        self.router = router or ToolRouter(self.root_dir, timeout=self.config.tool_timeout, commands=commands)
        self.tracker = tracker
        self.logger = get_logger()

    # ------------------------------------------------------------------
    # Single fix verification
    # ------------------------------------------------------------------

    async def _check(self, name: str, run: Callable[[], Awaitable[ToolOutput]],
                     judge: Callable[[ToolOutput], CheckResult]) -> Optional[CheckResult]:
        try:
            return judge(await run())
        except ToolUnavailableError as e:
            self.logger.warning(f"Skipping {name} verification: {e}")
            return None
        except ToolError as e:
            return CheckResult(passed=False, errors=1, output=str(e))

    async def verify(self, file_path: str) -> Verification:
        """Run every enabled verification tool against the fixed file/project."""
        verification = Verification()
        files = [file_path]

        if self.config.run_lint:
            verification.lint = await self._check(
                "lint",
                lambda: self.router.run_lint(files),
                lambda out: CheckResult(
                    passed=out.success and out.data["errors"] + out.data["warnings"] == 0,
                    errors=out.data["errors"],
                    warnings=out.data["warnings"],
                    output=out.output,
                ),
            )

        if self.config.run_type_check:
            verification.type_check = await self._check(
                "type check",
                lambda: self.router.run_type_check(files),
                lambda out: CheckResult(
                    passed=out.success and out.data["errors"] == 0,
                    errors=out.data["errors"],
                    warnings=out.data["warnings"],
                    output=out.output,
                ),
            )

        if self.config.run_tests:
            verification.tests = await self._check(
                "test",
                self.router.run_tests,
                lambda out: CheckResult(
                    passed=out.data["failed"] == 0,
                    errors=out.data["failed"],
                    output=out.output,
                ),
            )

        if self.config.run_build:
            verification.build = await self._check(
                "build",
                self.router.run_build,
                lambda out: CheckResult(
                    passed=bool(out.data["success"]),
                    errors=0 if out.data["success"] else 1,
                    output=out.output,
                ),
            )

        return verification

    async def ask_backend(
        self,
        issue: Issue,
        file_path: str,
        content: str,
        applied_fix: str,
    ) -> Dict[str, Any]:
        """
        Ask the reasoning backend whether the fix worked.

        An unparseable reply counts as "not resolved" with the raw reply as
        the assessment.
        """
        prompt = generate_reanalysis_prompt(
            file_path=file_path,
            content=content,
            issue_description=issue.description or issue.message,
            line_start=issue.location.line,
            line_end=issue.location.end_line or issue.location.line,
            applied_fix=applied_fix,
        )
        reply = await self.backend.complete(REANALYSIS_SYSTEM_PROMPT, prompt)

        parsed = extract_json(reply, required_key="originalIssueResolved")
        if parsed is None:
            self.logger.warning("Could not parse re-analysis reply")
            return {
                "resolved": False,
                "assessment": reply.strip() or "No assessment returned",
                "new_issues": [],
                "concerns": [],
            }

        new_issues = []
        for raw in parsed.get("newIssues") or []:
            if not isinstance(raw, dict):
                continue
            raw = dict(raw)
            raw.setdefault("file", file_path)
            try:
                new_issues.append(issue_from_params(raw, self.root_dir))
            except ToolError:
                continue

        concerns = parsed.get("remainingConcerns") or []
        return {
            "resolved": parsed.get("originalIssueResolved") is True,
            "assessment": str(parsed.get("resolutionAssessment") or ""),
            "new_issues": new_issues,
            "concerns": [str(c) for c in concerns] if isinstance(concerns, list) else [],
        }

    async def reanalyze(self, issue: Issue, fixed_file_path: str, applied_fix: str) -> ReAnalysisResult:
        """
        Verify a single applied fix.

        success requires: judged resolved, every enabled check passed, and no
        new error-severity issue. Any failure along the way yields an
        unsuccessful result rather than an exception.
        """
        result = ReAnalysisResult()
        path = fixed_file_path
        if not os.path.isabs(path):
            path = os.path.join(self.root_dir, path)

        try:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                content = f.read()

            result.verification = await self.verify(path)

            if self.backend is not None:
                judged = await self.ask_backend(issue, path, content, applied_fix)
                result.issue_resolved = judged["resolved"]
                result.assessment = judged["assessment"]
                result.new_issues = judged["new_issues"]
                result.concerns = judged["concerns"]
            else:
                result.issue_resolved = result.verification.all_passed
                result.assessment = NO_BACKEND_ASSESSMENT

            new_errors = [i for i in result.new_issues if i.severity == Severity.ERROR]
            result.success = (
                result.issue_resolved
                and result.verification.all_passed
                and not new_errors
            )
        except (OSError, QualityAgentError) as e:
            result.assessment = f"Re-analysis failed: {e}"
            result.success = False

        return result

    # ------------------------------------------------------------------
    # Batch loop
    # ------------------------------------------------------------------

    async def _attempt_fix(self, fix_callback: FixCallback, issue: Issue) -> Optional[FixAttempt]:
        try:
            attempt = fix_callback(issue)
            if inspect.isawaitable(attempt):
                attempt = await attempt
            return attempt
        except Exception as e:
            # A broken fixer fails this issue only
            self.logger.warning(f"Fix callback raised for {issue.id}: {e}")
            return None

    def _track_new(self, issues: List[Issue]):
        # Re-adding a tracked issue would reset its status and retries
        if self.tracker is None:
            return
        untracked = [i for i in issues if self.tracker.get_issue(i.id) is None]
        if untracked:
            self.tracker.add_issues(untracked)

    def _track_failure(self, issue: Issue, reason: str):
        if self.tracker is None:
            return
        self.tracker.mark_failed(issue.id, reason)
        self.tracker.increment_retry(issue.id)

    async def run_analysis_loop(
        self,
        issues: List[Issue],
        fix_callback: FixCallback,
        max_iterations: Optional[int] = None,
        stop_on_clean: bool = True,
    ) -> AnalysisLoopResult:
        """
        Drive fix -> verify across a batch until clean or out of iterations.

        Args:
            issues: Initial workload
            fix_callback: Called once per issue per iteration; returns a
                FixAttempt (or None when no fix was possible). May be async.
            max_iterations: Defaults to config.max_iterations
            stop_on_clean: Stop as soon as the workload is empty

        Returns:
            AnalysisLoopResult with a human-readable summary
        """
        if max_iterations is None:
            max_iterations = self.config.max_iterations

        result = AnalysisLoopResult(all_issues=list(issues))
        current = list(issues)
        seen_ids = {i.id for i in issues}
        seen_keys = {i.dedup_key for i in issues}

        self._track_new(issues)

        for iteration in range(max_iterations):
            result.iterations = iteration + 1

            if not current:
                result.is_clean = True
                break

            self.logger.info(f"Re-analysis iteration {iteration + 1}: {len(current)} issues to process")

            resolved: List[Issue] = []
            failed: List[Issue] = []
            discovered: List[Issue] = []

            for issue in current:
                if self.tracker is not None:
                    self.tracker.mark_in_progress(issue.id)

                attempt = await self._attempt_fix(fix_callback, issue)
                if attempt is None or attempt.fix_applied is not True:
                    failed.append(issue)
                    self._track_failure(issue, "No fix applied")
                    continue

                verdict = await self.reanalyze(
                    issue,
                    attempt.file_path or issue.location.file,
                    attempt.fix,
                )

                if verdict.success:
                    resolved.append(issue)
                    if self.tracker is not None:
                        self.tracker.mark_resolved(issue.id)
                else:
                    failed.append(issue)
                    self._track_failure(issue, verdict.assessment or "Verification failed")

                # Re-reported findings are already in the workload
                for new_issue in verdict.new_issues:
                    if new_issue.id in seen_ids or new_issue.dedup_key in seen_keys:
                        continue
                    seen_ids.add(new_issue.id)
                    seen_keys.add(new_issue.dedup_key)
                    discovered.append(new_issue)

            self._track_new(discovered)

            result.resolved_issues.extend(resolved)
            result.failed_issues = failed
            result.all_issues.extend(discovered)

            current = failed + discovered

            if stop_on_clean and not current:
                result.is_clean = True
                break

        result.summary = generate_summary(result)
        return result


def generate_summary(result: AnalysisLoopResult) -> str:
    """Plain-text summary of a finished loop."""
    lines = [
        f"Analysis Loop completed after {result.iterations} iteration(s).",
        "",
        f"Total issues found: {len(result.all_issues)}",
        f"Issues resolved: {len(result.resolved_issues)}",
        f"Issues remaining: {len(result.failed_issues)}",
        "",
    ]
    if result.is_clean:
        lines.append("✓ Codebase is clean!")
    else:
        lines.append("⚠ Some issues remain unresolved.")
    return "\n".join(lines)


def create_reanalysis_runner(
    root_dir: str,
    config: Optional[ReAnalysisConfig] = None,
    backend: Optional[ReasoningBackend] = None,
    tracker: Optional[IssueTracker] = None,
) -> ReAnalysisLoop:
    """Build a ReAnalysisLoop with its own ToolRouter."""
    return ReAnalysisLoop(root_dir, config=config, backend=backend, tracker=tracker)
