"""Agentic analysis loop: a bounded tool-using conversation with a backend."""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..backends import ReasoningBackend
from ..config import AgentLoopConfig
from ..errors import BackendError, ToolError
from ..models import (
    BackendResponse,
    Issue,
    Message,
    SourceLocation,
    ToolCall,
)
from ..tools import StorageTool, ToolRouter
from ..utils import deduplicate_issues, get_logger
from .file_browser import AnalysisGroup, FileBrowser
from .normalize import map_to_issue_category, map_to_severity
from .prompts import (
    ANALYSIS_SYSTEM_PROMPT,
    COMPLETION_SENTINEL,
    build_initial_prompt,
    build_system_prompt,
    extract_json,
    generate_analysis_prompt,
)


CREATE_ISSUE = "create_issue"
ISSUE_SOURCE = "llm-analyzer"

CONTINUE_PROMPT = (
    f"Continue the analysis. Call {CREATE_ISSUE} for each problem you find, "
    f"then output {COMPLETION_SENTINEL} when you are done."
)


def _as_int(value: Any, default: int) -> int:
    try:
        return max(1, int(value))
    except (TypeError, ValueError):
        return default


def issue_from_params(params: Dict[str, Any], root_dir: str) -> Issue:
    """
    Convert create_issue parameters (or one parsed JSON issue) into an Issue.

    Category and severity labels are normalized; relative file paths are
    resolved against root_dir.

    Raises:
        ToolError: title or file is missing
    """
    title = params.get("title")
    file_path = params.get("file")
    if not title or not file_path:
        raise ToolError("create_issue requires 'title' and 'file'")

    if not os.path.isabs(file_path):
        file_path = os.path.join(root_dir, file_path)

    line = _as_int(params.get("lineStart"), 1)
    end_line = _as_int(params.get("lineEnd"), line)
    confidence = params.get("confidence")

    return Issue.create(
        category=map_to_issue_category(params.get("type")),
        severity=map_to_severity(params.get("severity")),
        location=SourceLocation(file=file_path, line=line, column=1, end_line=end_line),
        message=str(title),
        description=params.get("description"),
        suggestion=params.get("suggestedFix"),
        metadata={
            "confidence": confidence if isinstance(confidence, (int, float)) else 0.8,
            "source": ISSUE_SOURCE,
            "original_category": params.get("type"),
        },
    )


def parse_issues(text: str, root_dir: str) -> List[Issue]:
    """Extract issues from a JSON reply. Unparseable replies yield no issues."""
    parsed = extract_json(text, required_key="issues")
    if parsed is None or not isinstance(parsed.get("issues"), list):
        return []

    issues = []
    for raw in parsed["issues"]:
        if not isinstance(raw, dict):
            continue
        try:
            issues.append(issue_from_params(raw, root_dir))
        except ToolError:
            continue
    return issues


@dataclass
class Transition:
    """Result of feeding one backend response into the loop."""
    history: List[Message]
    terminated: bool
    issues: List[Issue] = field(default_factory=list)
    pending_calls: List[ToolCall] = field(default_factory=list)


class AgenticLoop:
    """
    Drives a bounded conversation with a reasoning backend.

    Each iteration sends the history, then either executes the requested
    tool calls in order (create_issue is handled here, everything else goes
    through the ToolRouter) or parses issues from the reply and decides
    whether to stop.
    """

    def __init__(
        self,
        backend: ReasoningBackend,
        router: ToolRouter,
        config: Optional[AgentLoopConfig] = None,
    ):
        self.backend = backend
        self.router = router
        self.config = config or AgentLoopConfig()
        self.root_dir = router.root_dir
        self.logger = get_logger()
        self.system_prompt = self.config.system_prompt or build_system_prompt(router.definitions)

    # ------------------------------------------------------------------
    # Pure transition
    # ------------------------------------------------------------------

    def step(
        self,
        history: List[Message],
        response: BackendResponse,
        iteration: int,
    ) -> Transition:
        """
        Apply one backend response to the history.

        Returns a new history (the input is never mutated). When the response
        carries tool calls, they are returned as pending_calls for execution
        in order; create_issue calls yield their issues when executed.
        """
        if response.tool_calls:
            new_history = history + [Message.assistant(response.text, response.tool_calls)]
            return Transition(new_history, False, pending_calls=list(response.tool_calls))

        issues = parse_issues(response.text, self.root_dir)
        terminated = (
            COMPLETION_SENTINEL in response.text
            or CREATE_ISSUE not in response.text
            or iteration >= self.config.max_iterations - 1
        )
        if terminated:
            return Transition(list(history), True, issues)

        new_history = history + [
            Message.assistant(response.text),
            Message.user(CONTINUE_PROMPT),
        ]
        return Transition(new_history, False, issues)

    # ------------------------------------------------------------------
    # Driving the conversation
    # ------------------------------------------------------------------

    async def execute_call(self, call: ToolCall, collected: StorageTool[Issue]) -> str:
        """Run one tool call and return the text fed back to the model."""
        try:
            if call.name == CREATE_ISSUE:
                issue = issue_from_params(call.parameters, self.root_dir)
                ack = collected.store(issue, f"Issue created: {issue.message}")
                return ack["content"][0]["text"]
            result = await self.router.execute(call.name, call.parameters)
            return result.output
        except ToolError as e:
            return f"Error executing {call.name}: {e}"

    async def run_conversation(self, files: List[str], tool_context: str = "") -> List[Issue]:
        """
        Run the main loop for at most max_iterations backend round trips.

        A backend failure ends the loop early with the issues collected so far.
        If the very first round trip fails, the BackendError propagates so the
        caller can fall back.
        """
        collected: StorageTool[Issue] = StorageTool()
        relative = [os.path.relpath(f, self.root_dir) for f in files]
        history = [
            Message.system(self.system_prompt),
            Message.user(build_initial_prompt(
                self.root_dir,
                relative,
                tool_context,
                self.config.focus_areas,
                self.config.file_listing_limit,
            )),
        ]

        max_iterations = self.config.max_iterations
        for iteration in range(max_iterations):
            self.logger.info(f"Agentic iteration {iteration + 1}/{max_iterations}")

            try:
                response = await self.backend.send(self.system_prompt, history, self.router.definitions)
            except BackendError as e:
                if iteration == 0:
                    raise
                self.logger.warning(f"Iteration {iteration + 1} failed: {e}")
                break

            transition = self.step(history, response, iteration)
            history = transition.history

            if transition.pending_calls:
                # Sequential: later calls may depend on earlier results
                for index, call in enumerate(transition.pending_calls):
                    output = await self.execute_call(call, collected)
                    history = history + [Message.tool(output, call.id or f"{call.name}-{index}")]
            else:
                collected.extend(transition.issues)

            if transition.terminated:
                break

        return collected.values

    async def gather_tool_context(self) -> str:
        """Run the enabled static tools once up front. Failures are logged, not fatal."""
        enabled = [
            ("run_lint", "Lint Results", self.config.run_lint),
            ("run_type_check", "Type Check Results", self.config.run_type_check),
            ("run_tests", "Test Results", self.config.run_tests),
            ("run_build", "Build Results", self.config.run_build),
        ]

        parts = []
        for tool_name, heading, is_enabled in enabled:
            if not is_enabled:
                continue
            try:
                result = await self.router.execute(tool_name, {})
                parts.append(f"## {heading}\n{result.output}")
            except ToolError as e:
                self.logger.warning(f"{tool_name} failed while gathering context: {e}")
        return "\n\n".join(parts)

    async def analyze_group(self, group: AnalysisGroup, browser: FileBrowser) -> List[Issue]:
        """Single-turn, tool-free analysis of a batch of related files."""
        batch = [f.path for f in group.files[:self.config.batch_size]]
        contents = browser.read_files(batch)
        if not contents:
            return []

        files = {os.path.relpath(path, self.root_dir): text for path, text in contents.items()}
        context = f"Analyzing {group.name}: {len(group.files)} related files."
        if self.config.focus_areas:
            context += f"\nFocus areas: {', '.join(self.config.focus_areas)}"

        try:
            reply = await self.backend.complete(
                ANALYSIS_SYSTEM_PROMPT,
                generate_analysis_prompt(files, context),
            )
        except BackendError as e:
            self.logger.warning(f"Failed to analyze group {group.name}: {e}")
            return []

        return parse_issues(reply, self.root_dir)

    async def run(self, files: List[str], tool_context: Optional[str] = None) -> List[Issue]:
        """
        Full agentic analysis: tool context, main loop, then group passes.

        Args:
            files: Absolute paths to analyze
            tool_context: Pre-gathered static tool output (gathered here if None)

        Returns:
            Deduplicated issues
        """
        if not files:
            return []

        self.logger.info(f"Starting agentic analysis of {len(files)} files")
        browser = FileBrowser(self.root_dir)

        try:
            if tool_context is None:
                tool_context = await self.gather_tool_context()

            exploration = browser.explore(files)
            self.logger.info(f"Prioritized {len(exploration.prioritized_files)} files for analysis")

            issues = await self.run_conversation(
                [f.path for f in exploration.prioritized_files],
                tool_context,
            )

            for group in exploration.analysis_groups[:self.config.max_groups]:
                self.logger.info(f"Analyzing group: {group.name}")
                issues.extend(await self.analyze_group(group, browser))
        finally:
            browser.clear_cache()

        issues = deduplicate_issues(issues)
        self.logger.info(f"Agentic analysis complete. Found {len(issues)} issues")
        return issues
