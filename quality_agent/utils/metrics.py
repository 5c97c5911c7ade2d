"""Issue list post-processing and report formatting."""

from typing import Iterable, List

from ..models import AnalysisResult, AnalysisSummary, Issue


def deduplicate_issues(issues: Iterable[Issue]) -> List[Issue]:
    """
    Drop repeated findings, keeping the first occurrence.

    Two issues are the same finding when they share (file, line, message),
    regardless of which analyzer produced them.
    """
    seen = set()
    unique: List[Issue] = []
    for issue in issues:
        key = issue.dedup_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(issue)
    return unique


def sort_issues(issues: Iterable[Issue]) -> List[Issue]:
    """Stable sort by severity (error first), then file path, then line."""
    return sorted(
        issues,
        key=lambda i: (i.severity.rank, i.location.file, i.location.line),
    )


def cap_issues(issues: List[Issue], max_issues: int) -> List[Issue]:
    """Keep the front of the list. max_issues <= 0 means unlimited."""
    if max_issues <= 0:
        return list(issues)
    return list(issues[:max_issues])


def summarize(issues: Iterable[Issue]) -> AnalysisSummary:
    """
    Count issues by category and severity.

    Every category and severity key is present in the result, even at zero.
    """
    summary = AnalysisSummary()
    for issue in issues:
        summary.total += 1
        summary.by_category[issue.category.value] += 1
        summary.by_severity[issue.severity.value] += 1
    return summary


def format_report(result: AnalysisResult, limit: int = 50) -> str:
    """
    Format an analysis result as a human-readable markdown report.

    Args:
        result: Completed analysis result
        limit: Maximum number of individual issues listed

    Returns:
        Formatted report string
    """
    summary = result.summary
    lines = [
        "## Code Quality Report",
        "",
        "### Summary",
        f"- Total issues: {summary.total}",
        f"- Analyzers: {', '.join(result.analyzers_run) or 'none'}",
        f"- Duration: {result.duration:.2f}s",
        "",
        "### Severity Breakdown",
    ]
    for severity, count in summary.by_severity.items():
        lines.append(f"- {severity.capitalize()}: {count}")

    lines.append("")
    lines.append("### Category Breakdown")
    for category, count in summary.by_category.items():
        if count:
            lines.append(f"- {category}: {count}")

    if result.issues:
        lines.append("")
        lines.append("### Issues")
        for issue in result.issues[:limit]:
            loc = issue.location
            lines.append(
                f"- [{issue.severity.value}] `{loc.file}:{loc.line}` "
                f"({issue.category.value}) {issue.message}"
            )
        remaining = len(result.issues) - limit
        if remaining > 0:
            lines.append(f"- ... and {remaining} more")

    return "\n".join(lines)
