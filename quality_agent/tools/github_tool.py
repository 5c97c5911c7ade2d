"""GitHub API wrapper for publishing scan reports."""

import os
from typing import Dict, List, Optional

from github import Github, GithubException
from github.Issue import Issue as GHIssue

from ..models import AnalysisResult, Issue, Severity
from ..utils import get_logger


REPORT_LABEL = "code-quality"


class GitHubReporter:
    """
    Publishes analysis results to a repository's issue tracker.

    Handles:
    - Rendering a scan report as markdown
    - Creating or updating a single report issue per scan title
    """

    def __init__(self, repo: str, token: Optional[str] = None, client: Optional[Github] = None):
        """
        Initialize GitHub reporter.

        Args:
            repo: Repository in format "owner/repo"
            token: GitHub token (defaults to GITHUB_TOKEN env var)
            client: Pre-built client (tests inject a fake)
        """
        self.logger = get_logger()
        if client is None:
            self.token = token or os.environ.get("GITHUB_TOKEN")
            if not self.token:
                raise ValueError("GitHub token required. Set GITHUB_TOKEN env var or pass token parameter.")
            client = Github(self.token)

        self.gh = client
        self.repo = self.gh.get_repo(repo)

    def format_report(self, result: AnalysisResult, title: str, limit: int = 50) -> str:
        """Render an analysis result as an issue body."""
        body_parts = [f"## {title}\n"]

        if not result.issues:
            body_parts.append("No issues found. The code looks good.\n")
        else:
            by_severity: Dict[Severity, List[Issue]] = {}
            for issue in result.issues:
                by_severity.setdefault(issue.severity, []).append(issue)

            body_parts.append(f"Found **{len(result.issues)}** issues:\n")

            shown = 0
            for severity in Severity:
                issues = by_severity.get(severity)
                if not issues:
                    continue
                body_parts.append(f"\n### {severity.value.upper()} ({len(issues)})\n")
                for issue in issues:
                    if shown >= limit:
                        break
                    loc = issue.location
                    body_parts.append(
                        f"- **{loc.file}:{loc.line}** [{issue.category.value}] {issue.message[:100]}"
                    )
                    shown += 1

            if len(result.issues) > limit:
                body_parts.append(f"\n... and {len(result.issues) - limit} more")

        body_parts.append("\n---\n")
        body_parts.append("### Stats\n")
        body_parts.append(f"- Analyzers: {', '.join(result.analyzers_run) or 'none'}")
        body_parts.append(f"- Duration: {result.duration:.1f}s")

        body_parts.append("\n\n---\n*Generated by quality-agent*")
        return "\n".join(body_parts)

    def publish_report(self, result: AnalysisResult, title: str = "Code quality report") -> Optional[GHIssue]:
        """
        Create the report issue, or update the open one with the same title.

        Returns:
            The GitHub issue, or None if the API call failed
        """
        body = self.format_report(result, title)
        try:
            for existing in self.repo.get_issues(state="open"):
                if existing.title == title:
                    existing.edit(body=body)
                    self.logger.info(f"Updated report issue #{existing.number}")
                    return existing

            issue = self.repo.create_issue(title=title, body=body, labels=[REPORT_LABEL])
            self.logger.info(f"Created report issue #{issue.number}")
            return issue
        except GithubException as e:
            self.logger.warning(f"Failed to publish report: {e}")
            return None
