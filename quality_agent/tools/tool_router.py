"""Tool router: named tool calls -> handlers, with per-call timeouts."""

import asyncio
import json
import os
import re
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..config import ToolCommands
from ..errors import ToolError, ToolUnavailableError
from ..models import ToolDefinition
from ..utils.files import DEFAULT_EXCLUDE, detect_language, find_files, matches_any
from ..utils import get_logger
from .commands import CommandResult, run_command


MAX_READ_LINES = 2000
MAX_OUTPUT_CHARS = 20000


def _schema(properties: Dict[str, Any], required: Optional[List[str]] = None) -> Dict[str, Any]:
    schema: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


_FILES = {
    "type": "array",
    "items": {"type": "string"},
    "description": "Specific files to check (optional, defaults to the whole project)",
}

TOOL_DEFINITIONS: List[ToolDefinition] = [
    ToolDefinition(
        "run_lint",
        "Run the linter on the project or specific files. Returns lint errors and warnings.",
        _schema({"files": _FILES}),
    ),
    ToolDefinition(
        "run_type_check",
        "Run the type checker. Returns type errors found.",
        _schema({"files": _FILES}),
    ),
    ToolDefinition(
        "run_tests",
        "Run the test suite. Returns pass/fail counts and failure output.",
        _schema({
            "pattern": {"type": "string", "description": "Test path or pattern (optional)"},
            "testName": {"type": "string", "description": "Only run tests matching this name (optional)"},
        }),
    ),
    ToolDefinition(
        "run_build",
        "Run the build. Returns build errors if any.",
        _schema({}),
    ),
    ToolDefinition(
        "read_file",
        "Read the contents of a file with line numbers. Use this to examine code in detail.",
        _schema({
            "path": {"type": "string", "description": "Path relative to the project root"},
            "startLine": {"type": "number", "description": "Start line (1-indexed, optional)"},
            "endLine": {"type": "number", "description": "End line (1-indexed, optional)"},
        }, ["path"]),
    ),
    ToolDefinition(
        "search_code",
        "Search for a regex pattern across project files. Returns matching lines.",
        _schema({
            "pattern": {"type": "string", "description": "Regular expression"},
            "path": {"type": "string", "description": "File or directory to search (default: project root)"},
            "include": {"type": "string", "description": "Glob of files to include, e.g. \"*.py\""},
            "ignoreCase": {"type": "boolean", "description": "Case insensitive search (default: false)"},
            "maxResults": {"type": "number", "description": "Maximum matches to return (default: 100)"},
        }, ["pattern"]),
    ),
    ToolDefinition(
        "list_files",
        "List files in a directory.",
        _schema({
            "path": {"type": "string", "description": "Directory path (default: project root)"},
            "recursive": {"type": "boolean", "description": "List recursively (default: false)"},
            "showHidden": {"type": "boolean", "description": "Include dotfiles (default: false)"},
        }),
    ),
    ToolDefinition(
        "get_file_info",
        "Get size, line count, language and imports of a file.",
        _schema({"path": {"type": "string", "description": "Path to the file"}}, ["path"]),
    ),
    ToolDefinition(
        "create_issue",
        "Create an issue to report a problem found in the code.",
        _schema({
            "type": {
                "type": "string",
                "enum": ["bug", "security", "lint", "type", "stub", "duplicate", "dead-code", "coverage"],
                "description": "Type of issue",
            },
            "severity": {
                "type": "string",
                "enum": ["error", "warning", "info", "hint"],
                "description": "Issue severity",
            },
            "title": {"type": "string", "description": "Brief title"},
            "description": {"type": "string", "description": "Detailed description"},
            "file": {"type": "string", "description": "File path"},
            "lineStart": {"type": "number", "description": "Starting line number"},
            "lineEnd": {"type": "number", "description": "Ending line number"},
            "suggestedFix": {"type": "string", "description": "Suggested fix"},
            "confidence": {"type": "number", "description": "Confidence between 0 and 1"},
        }, ["type", "severity", "title", "description", "file", "lineStart", "lineEnd"]),
    ),
]

TOOL_NAMES = [t.name for t in TOOL_DEFINITIONS]


@dataclass
class ToolOutput:
    """Structured result of one tool invocation."""
    output: str
    success: bool = True
    duration: float = 0.0                       # seconds
    data: Dict[str, Any] = field(default_factory=dict)


_PYTEST_COUNT = re.compile(r"(\d+) (passed|failed|error|errors|skipped)")
_MYPY_LINE = re.compile(r"^(?P<file>[^:\n]+):(?P<line>\d+):(?:(?P<col>\d+):)? (?P<level>error|warning|note): (?P<msg>.*)$")
_IMPORT_PATTERNS = [
    re.compile(r"^\s*import\s+([\w.]+)", re.MULTILINE),
    re.compile(r"^\s*from\s+([\w.]+)\s+import\b", re.MULTILINE),
    re.compile(r"""^\s*import\s+.*?\s+from\s+['"]([^'"]+)['"]""", re.MULTILINE),
    re.compile(r"""require\(\s*['"]([^'"]+)['"]\s*\)"""),
]


def _truncate(text: str) -> str:
    if len(text) <= MAX_OUTPUT_CHARS:
        return text
    return text[:MAX_OUTPUT_CHARS] + f"\n... [truncated {len(text) - MAX_OUTPUT_CHARS} chars]"


class ToolRouter:
    """
    Dispatches named tool calls for one project root.

    Every call is time-boxed; failures surface as ToolError whose message is
    fed back to the model. File paths are confined to the project root.
    """

    def __init__(
        self,
        root_dir: str,
        timeout: float = 60.0,
        commands: Optional[ToolCommands] = None,
    ):
        self.root_dir = os.path.abspath(root_dir)
        self.timeout = timeout
        self.commands = commands or ToolCommands()
        self.logger = get_logger()

        self._handlers: Dict[str, Callable[..., Awaitable[ToolOutput]]] = {
            "run_lint": self._tool_run_lint,
            "run_type_check": self._tool_run_type_check,
            "run_tests": self._tool_run_tests,
            "run_build": self._tool_run_build,
            "read_file": self._tool_read_file,
            "search_code": self._tool_search_code,
            "list_files": self._tool_list_files,
            "get_file_info": self._tool_get_file_info,
        }

    @property
    def definitions(self) -> List[ToolDefinition]:
        return list(TOOL_DEFINITIONS)

    async def execute(self, name: str, params: Optional[Dict[str, Any]] = None) -> ToolOutput:
        """
        Run one tool call.

        Raises:
            ToolError: Unknown tool, bad parameters, timeout or handler failure
        """
        if name == "create_issue":
            raise ToolError("create_issue is handled by the analysis loop")
        handler = self._handlers.get(name)
        if handler is None:
            raise ToolError(f"Unknown tool: {name}")

        start = time.monotonic()
        try:
            result = await asyncio.wait_for(handler(params or {}), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ToolError(f"Tool {name} timed out after {self.timeout}s") from e
        except ToolError:
            raise
        except (OSError, ValueError, TypeError, KeyError, re.error) as e:
            raise ToolError(f"{type(e).__name__}: {e}") from e

        result.duration = time.monotonic() - start
        result.output = _truncate(result.output)
        return result

    def resolve_path(self, path: Optional[str]) -> str:
        """Resolve a project-relative path, refusing anything outside the root."""
        candidate = os.path.realpath(os.path.join(self.root_dir, path or "."))
        root = os.path.realpath(self.root_dir)
        if candidate != root and not candidate.startswith(root + os.sep):
            raise ToolError(f"Path escapes project root: {path}")
        return candidate

    def _rel(self, path: str) -> str:
        return os.path.relpath(path, self.root_dir).replace(os.sep, "/")

    # ------------------------------------------------------------------
    # Command tools
    # ------------------------------------------------------------------

    async def _run(self, cmd: List[str]) -> CommandResult:
        # Subprocess gets the full budget; execute() enforces the outer bound
        result = await run_command(cmd, cwd=self.root_dir, timeout=self.timeout)
        if result.missing:
            raise ToolUnavailableError(result.stderr)
        if result.timed_out:
            raise ToolError(f"{cmd[0]} timed out after {self.timeout}s")
        return result

    def _file_args(self, files: Optional[List[str]]) -> List[str]:
        if not files:
            return ["."]
        return [self._rel(self.resolve_path(f)) for f in files]

    async def run_lint(self, files: Optional[List[str]] = None) -> ToolOutput:
        """Run the linter. data: errors, warnings, diagnostics."""
        result = await self._run(self.commands.lint + self._file_args(files))
        diagnostics = []
        try:
            diagnostics = json.loads(result.stdout or "[]")
        except ValueError:
            self.logger.debug("Linter output is not JSON; counting lines instead")

        if isinstance(diagnostics, list) and diagnostics:
            errors = sum(1 for d in diagnostics if str(d.get("code") or "").startswith(("E", "F")))
            warnings = len(diagnostics) - errors
            lines = [
                f"{self._rel(d.get('filename', ''))}:{d.get('location', {}).get('row', 0)}: "
                f"{d.get('code')} {d.get('message')}"
                for d in diagnostics
            ]
            output = f"{len(diagnostics)} lint problems ({errors} errors, {warnings} warnings)\n" + "\n".join(lines)
        else:
            diagnostics = []
            errors = 0 if result.ok else 1
            warnings = 0
            output = result.output or "No lint problems found"

        return ToolOutput(
            output=output,
            success=result.ok,
            data={"errors": errors, "warnings": warnings, "diagnostics": diagnostics},
        )

    async def run_type_check(self, files: Optional[List[str]] = None) -> ToolOutput:
        """Run the type checker. data: errors, warnings, diagnostics."""
        result = await self._run(self.commands.type_check + self._file_args(files))
        diagnostics = []
        for line in result.stdout.splitlines():
            match = _MYPY_LINE.match(line.strip())
            if match and match.group("level") != "note":
                diagnostics.append({
                    "file": match.group("file"),
                    "line": int(match.group("line")),
                    "column": int(match.group("col") or 1),
                    "level": match.group("level"),
                    "message": match.group("msg"),
                })
        errors = sum(1 for d in diagnostics if d["level"] == "error")
        return ToolOutput(
            output=result.output or "No type errors found",
            success=result.ok,
            data={"errors": errors, "warnings": len(diagnostics) - errors, "diagnostics": diagnostics},
        )

    async def run_tests(self, pattern: Optional[str] = None, test_name: Optional[str] = None) -> ToolOutput:
        """Run the test suite. data: passed, failed, skipped."""
        cmd = list(self.commands.tests)
        if pattern:
            cmd.append(self._rel(self.resolve_path(pattern)))
        if test_name:
            cmd += ["-k", test_name]
        result = await self._run(cmd)

        counts = {"passed": 0, "failed": 0, "skipped": 0}
        for number, label in _PYTEST_COUNT.findall(result.output):
            key = "failed" if label.startswith("error") else label
            counts[key] += int(number)
        if not result.ok and counts["failed"] == 0:
            # Collection errors and crashes still count as a failure
            counts["failed"] = 1

        summary = f"Tests: {counts['passed']} passed, {counts['failed']} failed, {counts['skipped']} skipped"
        return ToolOutput(
            output=f"{summary}\n{result.output}" if counts["failed"] else summary,
            success=result.ok,
            data=counts,
        )

    async def run_build(self) -> ToolOutput:
        """Run the configured build command. data: success."""
        result = await self._run(list(self.commands.build))
        output = "Build succeeded" if result.ok else f"Build failed with errors:\n{result.output}"
        return ToolOutput(output=output, success=result.ok, data={"success": result.ok})

    async def _tool_run_lint(self, params: Dict[str, Any]) -> ToolOutput:
        return await self.run_lint(params.get("files"))

    async def _tool_run_type_check(self, params: Dict[str, Any]) -> ToolOutput:
        return await self.run_type_check(params.get("files"))

    async def _tool_run_tests(self, params: Dict[str, Any]) -> ToolOutput:
        return await self.run_tests(params.get("pattern"), params.get("testName"))

    async def _tool_run_build(self, params: Dict[str, Any]) -> ToolOutput:
        return await self.run_build()

    # ------------------------------------------------------------------
    # Filesystem tools
    # ------------------------------------------------------------------

    async def _tool_read_file(self, params: Dict[str, Any]) -> ToolOutput:
        if not params.get("path"):
            raise ToolError("read_file requires 'path'")
        path = self.resolve_path(params["path"])
        if not os.path.isfile(path):
            raise ToolError(f"File not found: {params['path']}")

        with open(path, "r", encoding="utf-8", errors="replace") as f:
            lines = f.read().splitlines()

        start = max(1, int(params.get("startLine") or 1))
        end = min(len(lines), int(params.get("endLine") or len(lines)))
        end = min(end, start + MAX_READ_LINES - 1)
        width = len(str(end))
        body = "\n".join(f"{n:>{width}}: {lines[n - 1]}" for n in range(start, end + 1))
        header = f"{self._rel(path)} (lines {start}-{end} of {len(lines)})"
        return ToolOutput(output=f"{header}\n{body}", data={"lines": len(lines)})

    async def _tool_search_code(self, params: Dict[str, Any]) -> ToolOutput:
        if not params.get("pattern"):
            raise ToolError("search_code requires 'pattern'")
        flags = re.IGNORECASE if params.get("ignoreCase") else 0
        regex = re.compile(params["pattern"], flags)
        max_results = int(params.get("maxResults") or 100)

        base = self.resolve_path(params.get("path"))
        if os.path.isfile(base):
            candidates = [base]
        else:
            include = params.get("include")
            patterns = None
            if include:
                patterns = [include if "/" in include else f"**/{include}"]
            candidates = find_files(base, include=patterns) if patterns else find_files(base)

        matches = []
        for path in candidates:
            try:
                with open(path, "r", encoding="utf-8", errors="replace") as f:
                    for number, line in enumerate(f, start=1):
                        if regex.search(line):
                            matches.append(f"{self._rel(path)}:{number}: {line.rstrip()}")
                            if len(matches) >= max_results:
                                break
            except OSError:
                continue
            if len(matches) >= max_results:
                break

        if not matches:
            return ToolOutput(output="No matches found", data={"count": 0})
        return ToolOutput(output="\n".join(matches), data={"count": len(matches)})

    async def _tool_list_files(self, params: Dict[str, Any]) -> ToolOutput:
        base = self.resolve_path(params.get("path"))
        if not os.path.isdir(base):
            raise ToolError(f"Not a directory: {params.get('path')}")
        show_hidden = bool(params.get("showHidden"))

        entries = []
        if params.get("recursive"):
            for dirpath, dirnames, filenames in os.walk(base):
                rel_dir = self._rel(dirpath)
                prefix = "" if rel_dir == "." else rel_dir + "/"
                dirnames[:] = sorted(
                    d for d in dirnames
                    if (show_hidden or not d.startswith("."))
                    and not matches_any(f"{prefix}{d}/", DEFAULT_EXCLUDE)
                )
                for name in sorted(filenames):
                    if show_hidden or not name.startswith("."):
                        entries.append(self._rel(os.path.join(dirpath, name)))
        else:
            for name in sorted(os.listdir(base)):
                if not show_hidden and name.startswith("."):
                    continue
                full = os.path.join(base, name)
                entries.append(self._rel(full) + ("/" if os.path.isdir(full) else ""))

        return ToolOutput(output="\n".join(entries) or "(empty)", data={"count": len(entries)})

    async def _tool_get_file_info(self, params: Dict[str, Any]) -> ToolOutput:
        if not params.get("path"):
            raise ToolError("get_file_info requires 'path'")
        path = self.resolve_path(params["path"])
        if not os.path.isfile(path):
            raise ToolError(f"File not found: {params['path']}")

        with open(path, "r", encoding="utf-8", errors="replace") as f:
            content = f.read()

        imports: List[str] = []
        for pattern in _IMPORT_PATTERNS:
            for name in pattern.findall(content):
                if name not in imports:
                    imports.append(name)

        info = {
            "path": self._rel(path),
            "size": os.path.getsize(path),
            "lines": len(content.splitlines()),
            "language": detect_language(path),
            "imports": imports,
        }
        return ToolOutput(output=json.dumps(info, indent=2), data=info)
