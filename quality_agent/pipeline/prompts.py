"""Prompts for agentic analysis, group analysis and fix re-analysis."""

import json
import re
from typing import Any, Dict, List, Optional

from ..models import ToolDefinition
from ..utils.files import detect_language


COMPLETION_SENTINEL = "[ANALYSIS_COMPLETE]"


ANALYSIS_SYSTEM_PROMPT = """
You are an expert code quality analyst with deep expertise in software engineering,
security vulnerabilities, performance and maintainable design.

Your task is to analyze source code and find issues that static analyzers miss.

## What to Look For

### Logic Bugs
- Off-by-one errors, wrong operators, missing conditions
- Incorrect None/null handling and unhandled edge cases
- Race conditions and state management bugs

### Security Issues
- Injection vulnerabilities (SQL, command, XSS)
- Authentication/authorization flaws
- Sensitive data exposure and missing input validation
- Insecure cryptographic usage

### Error Handling
- Swallowed exceptions and missing cleanup
- Unhelpful error messages

### Performance
- N+1 query patterns, needless recomputation
- Blocking calls inside async code

### Code Smells
- Functions doing too much, deep nesting
- Magic numbers, misleading names, dead branches

## Response Format
When asked for JSON, respond ONLY with valid JSON of this shape:
{
  "issues": [
    {
      "type": "bug|security|lint|stub|duplicate|dead-code|coverage|type",
      "severity": "error|warning|info|hint",
      "title": "Brief, descriptive title",
      "description": "Why this is an issue",
      "file": "path/to/file.py",
      "lineStart": 10,
      "lineEnd": 15,
      "suggestedFix": "How to fix it",
      "confidence": 0.85
    }
  ],
  "summary": "Brief summary of overall code quality"
}

## Guidelines
1. Only report real issues you are confident about (confidence > 0.7)
2. Include exact line numbers and clear descriptions
3. Prioritize security and bug issues over style
4. Skip what linters already report (formatting, unused imports)
5. Report at most 20 issues per analysis
"""


AGENT_WORKFLOW = """
## Workflow
1. Examine the initial context (lint/type results, file list)
2. Use read_file to examine specific files in detail
3. Use search_code to find patterns or usages
4. Use the run_* tools to gather more information if needed
5. Call create_issue for each problem found
6. When done, output {sentinel}

Be thorough but efficient. Focus on high-impact issues first.
"""


INITIAL_PROMPT = """Please analyze this codebase for issues.

## Project Root
{root_dir}

## Files Available for Analysis
{file_listing}
{tool_context}{focus_areas}
Start by examining the most important files and look for:
1. Logic bugs and edge cases
2. Security vulnerabilities
3. Missing error handling
4. Performance issues
5. Code smells

Use the tools to explore the codebase and create issues for any problems you find."""


REANALYSIS_SYSTEM_PROMPT = """
You are a code review expert verifying that a fix correctly addresses an issue.

Analyze the provided code and determine:
1. Does the fix resolve the original issue?
2. Are there any new issues introduced by the fix?
3. Are there any remaining concerns about this code?

Be thorough but fair. Minor style changes are acceptable.

Respond ONLY with valid JSON:
{
  "originalIssueResolved": true,
  "resolutionAssessment": "Explanation of whether and how the fix addresses the issue",
  "newIssues": [
    {
      "type": "bug|security|lint|type|stub|duplicate|dead-code|coverage",
      "severity": "error|warning|info|hint",
      "title": "Brief title",
      "description": "Description",
      "lineStart": 10,
      "lineEnd": 12,
      "suggestedFix": "How to fix"
    }
  ],
  "remainingConcerns": ["Any concerns about the code"]
}
"""


REANALYSIS_PROMPT = """## Re-Analysis Request

A fix was applied to address this issue:

### File
{file_path}

### Original Issue
{issue_description}
(Lines {line_start}-{line_end})

### Applied Fix
{applied_fix}

### Current File Content
```{language}
{content}
```

Please analyze if:
1. The fix correctly addresses the original issue
2. The fix introduced any new issues
3. There are any remaining related issues

Respond with JSON:
{{
  "originalIssueResolved": true,
  "resolutionAssessment": "Explanation of whether the fix worked",
  "newIssues": [],
  "remainingConcerns": ["Any lingering concerns about this code"]
}}
newIssues entries use the same shape as regular analysis issues."""


def build_system_prompt(tools: List[ToolDefinition]) -> str:
    """System prompt for the agentic loop, with the tool catalogue appended."""
    tool_docs = "\n\n".join(
        f"### {t.name}\n{t.description}\nParameters: {json.dumps(t.parameters, indent=2)}"
        for t in tools
    )
    return (
        ANALYSIS_SYSTEM_PROMPT
        + "\n## Available Tools\n"
        + "You can use the following tools to explore the codebase:\n\n"
        + tool_docs
        + "\n"
        + AGENT_WORKFLOW.format(sentinel=COMPLETION_SENTINEL)
    )


def build_initial_prompt(
    root_dir: str,
    files: List[str],
    tool_context: str = "",
    focus_areas: Optional[List[str]] = None,
    listing_limit: int = 50,
) -> str:
    """First user turn: project root, capped file listing, tool context, focus."""
    listing = "\n".join(files[:listing_limit])
    if len(files) > listing_limit:
        listing += f"\n\n... and {len(files) - listing_limit} more files"

    context = f"\n## Initial Tool Results\n{tool_context}\n" if tool_context else ""
    focus = ""
    if focus_areas:
        focus = f"\n## Focus Areas\nPay special attention to: {', '.join(focus_areas)}\n"

    return INITIAL_PROMPT.format(
        root_dir=root_dir,
        file_listing=listing,
        tool_context=context,
        focus_areas=focus,
    )


def generate_analysis_prompt(files: Dict[str, str], context: str = "") -> str:
    """Single-turn prompt embedding file contents (relative path -> content)."""
    parts = []
    if context:
        parts += ["## Context", context, ""]

    parts += ["## Files to Analyze", ""]
    for path, content in files.items():
        parts.append(f"### {path}")
        parts.append("```" + detect_language(path))
        parts.append(content)
        parts.append("```")
        parts.append("")

    parts.append("Analyze these files and respond with the JSON structure specified in the system prompt.")
    return "\n".join(parts)


def generate_reanalysis_prompt(
    file_path: str,
    content: str,
    issue_description: str,
    line_start: int,
    line_end: int,
    applied_fix: str,
) -> str:
    return REANALYSIS_PROMPT.format(
        file_path=file_path,
        issue_description=issue_description,
        line_start=line_start,
        line_end=line_end,
        applied_fix=applied_fix,
        language=detect_language(file_path),
        content=content,
    )


_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)


def extract_json(text: str, required_key: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Pull the first JSON object out of a model reply.

    Tries fenced ```json blocks first, then the widest {...} span. When
    required_key is given, objects lacking it are rejected.

    Returns:
        The parsed object, or None when nothing parseable was found
    """
    candidates = [m.group(1) for m in _FENCED_JSON.finditer(text or "")]
    start = (text or "").find("{")
    end = (text or "").rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if not isinstance(parsed, dict):
            continue
        if required_key is not None and required_key not in parsed:
            continue
        return parsed
    return None
