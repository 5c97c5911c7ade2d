"""Coverage analyzer: flags files whose test coverage is below a threshold."""

import json
import os
from typing import Dict, List, Optional

from ..models import Issue, IssueCategory, Severity
from .base import AnalyzerOptions, BaseAnalyzer, FileContent


# Searched in order, relative to the project root
REPORT_CANDIDATES = [
    "coverage.json",
    "coverage/coverage-summary.json",
    "coverage/lcov.info",
    "lcov.info",
]


def parse_coverage_json(data: dict, root_dir: str) -> Dict[str, float]:
    """coverage.py JSON report or istanbul json-summary -> {abs path: percent}."""
    percents = {}
    if isinstance(data.get("files"), dict):
        for path, entry in data["files"].items():
            summary = entry.get("summary", {})
            if "percent_covered" in summary:
                percents[os.path.normpath(os.path.join(root_dir, path))] = float(summary["percent_covered"])
        return percents

    for path, entry in data.items():
        if path == "total" or not isinstance(entry, dict):
            continue
        pct = entry.get("lines", {}).get("pct")
        if isinstance(pct, (int, float)):
            percents[os.path.normpath(os.path.join(root_dir, path))] = float(pct)
    return percents


def parse_lcov(text: str, root_dir: str) -> Dict[str, float]:
    percents = {}
    source: Optional[str] = None
    found = hit = 0
    for line in text.splitlines():
        line = line.strip()
        if line.startswith("SF:"):
            source = os.path.normpath(os.path.join(root_dir, line[3:]))
            found = hit = 0
        elif line.startswith("LF:"):
            found = int(line[3:] or 0)
        elif line.startswith("LH:"):
            hit = int(line[3:] or 0)
        elif line == "end_of_record" and source:
            percents[source] = 100.0 * hit / found if found else 100.0
            source = None
    return percents


class CoverageAnalyzer(BaseAnalyzer):
    """
    Reads an existing coverage report; it never runs the test suite.

    Settings:
        threshold: Minimum line coverage percent (default 50)
        report: Explicit report path, relative to the root
    """

    name = "coverage"
    description = "Flags files with low test coverage"
    category = IssueCategory.COVERAGE
    default_config = {"threshold": 50.0, "report": None}

    def load_report(self, root_dir: str, report: Optional[str]) -> Optional[Dict[str, float]]:
        candidates = [report] if report else REPORT_CANDIDATES
        for candidate in candidates:
            path = os.path.join(root_dir, candidate)
            if not os.path.isfile(path):
                continue
            with open(path, "r", encoding="utf-8") as f:
                text = f.read()
            self.logger.debug(f"Using coverage report {path}")
            if path.endswith(".json"):
                try:
                    return parse_coverage_json(json.loads(text), root_dir)
                except ValueError:
                    self.logger.warning(f"Unreadable coverage report: {path}")
                    return None
            return parse_lcov(text, root_dir)
        return None

    async def analyze(self, files: List[str], options: AnalyzerOptions) -> List[Issue]:
        settings = self.settings(options)
        threshold = float(settings["threshold"])
        percents = self.load_report(options.root_dir, settings.get("report"))
        if not percents:
            return []

        issues = []
        for path in files:
            pct = percents.get(os.path.normpath(path))
            if pct is None or pct >= threshold:
                continue
            file = self.read_file(path) or FileContent(path=path, content="", lines=[])
            issues.append(self.create_issue(
                file,
                1,
                f"Low test coverage: {pct:.1f}% (threshold {threshold:.0f}%)",
                Severity.WARNING,
                fingerprint="low-coverage",
                suggestion="Add tests for the uncovered code paths",
                metadata={"coverage": pct, "threshold": threshold},
            ))
        return issues
