"""File prioritisation and grouping for the agentic analysis pass."""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..utils.files import matches_any


PRIORITY_PATTERNS = [
    "**/{index,main,app,server,__main__}.{py,ts,tsx,js,jsx}",
    "**/api/**",
    "**/routes/**",
    "**/services/**",
    "**/controllers/**",
    "**/handlers/**",
    "**/middleware/**",
    "**/auth/**",
    "**/security/**",
]

LOW_PRIORITY_PATTERNS = [
    "**/test_*.py",
    "**/*_test.py",
    "**/*.test.{ts,tsx,js,jsx}",
    "**/*.spec.{ts,tsx,js,jsx}",
    "**/tests/**",
    "**/__tests__/**",
    "**/__mocks__/**",
    "**/fixtures/**",
    "**/examples/**",
    "**/docs/**",
]

SECURITY_HINTS = ("auth", "security", "login", "permission")
API_HINTS = ("api", "route", "handler", "controller")


@dataclass
class PrioritizedFile:
    """A file with its analysis priority (0-100)."""
    path: str
    relative_path: str
    priority: int
    reason: str
    size: int


@dataclass
class AnalysisGroup:
    """Related files analysed together in one prompt."""
    name: str
    files: List[PrioritizedFile]
    reason: str


@dataclass
class ExplorationResult:
    prioritized_files: List[PrioritizedFile] = field(default_factory=list)
    analysis_groups: List[AnalysisGroup] = field(default_factory=list)
    total_files: int = 0
    skipped_files: int = 0


class FileBrowser:
    """
    Ranks files by how likely they are to hide real problems.

    Entry points, API handlers and security code rank above tests, docs and
    fixtures. Ranked files are then grouped by directory for the group pass.
    """

    def __init__(
        self,
        root_dir: str,
        max_file_size: int = 100 * 1024,
        max_files: int = 100,
    ):
        self.root_dir = os.path.abspath(root_dir)
        self.max_file_size = max_file_size
        self.max_files = max_files
        self._cache: Dict[str, str] = {}

    def explore(self, files: List[str]) -> ExplorationResult:
        """Prioritise files (highest first) and build analysis groups."""
        prioritized: List[PrioritizedFile] = []
        skipped = 0

        for path in files:
            try:
                size = os.path.getsize(path)
            except OSError:
                skipped += 1
                continue
            if size > self.max_file_size:
                skipped += 1
                continue

            rel = os.path.relpath(path, self.root_dir).replace(os.sep, "/")
            score, reason = self._score(rel, size)
            prioritized.append(PrioritizedFile(path, rel, score, reason, size))

        # Stable: equal scores keep discovery order
        prioritized.sort(key=lambda f: -f.priority)
        limited = prioritized[:self.max_files]

        return ExplorationResult(
            prioritized_files=limited,
            analysis_groups=self._create_groups(limited),
            total_files=len(files),
            skipped_files=skipped,
        )

    def read_file(self, path: str) -> Optional[str]:
        """Read a file as text, caching the result. None when unreadable."""
        if path in self._cache:
            return self._cache[path]
        try:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                content = f.read()
        except OSError:
            return None
        self._cache[path] = content
        return content

    def read_files(self, paths: List[str]) -> Dict[str, str]:
        """Read several files, skipping unreadable ones."""
        contents = {}
        for path in paths:
            content = self.read_file(path)
            if content is not None:
                contents[path] = content
        return contents

    def clear_cache(self):
        self._cache.clear()

    def _score(self, rel: str, size: int):
        score = 50
        reasons = []

        if matches_any(rel, PRIORITY_PATTERNS):
            score += 30
            reasons.append("matches priority pattern")
        if matches_any(rel, LOW_PRIORITY_PATTERNS):
            score -= 30
            reasons.append("test/doc file")

        name = os.path.basename(rel).lower()
        if any(h in name for h in ("auth", "security", "login")):
            score += 20
            reasons.append("security-related")
        if any(h in name for h in ("api", "route", "handler")):
            score += 15
            reasons.append("API endpoint")
        if "service" in name or "controller" in name:
            score += 10
            reasons.append("business logic")

        if size < 500:
            score -= 10
            reasons.append("small file")
        elif 2000 < size < 20000:
            score += 10
            reasons.append("substantial file")
        elif size > 50000:
            score -= 20
            reasons.append("very large file")

        if rel.startswith(("src/", "lib/")):
            score += 5
            reasons.append("source directory")

        return max(0, min(100, score)), ", ".join(reasons) or "default priority"

    def _create_groups(self, files: List[PrioritizedFile]) -> List[AnalysisGroup]:
        groups: List[AnalysisGroup] = []
        used = set()

        by_dir: Dict[str, List[PrioritizedFile]] = {}
        for f in files:
            by_dir.setdefault(os.path.dirname(f.relative_path), []).append(f)

        for directory, dir_files in by_dir.items():
            if len(dir_files) >= 2:
                groups.append(AnalysisGroup(
                    name=_group_name(directory),
                    files=dir_files,
                    reason=f"Files in {directory or '.'} directory",
                ))
                used.update(f.path for f in dir_files)

        security = [
            f for f in files
            if f.path not in used and any(h in f.relative_path for h in SECURITY_HINTS)
        ]
        if security:
            groups.append(AnalysisGroup(
                "Security & Authentication", security,
                "Files related to security and authentication",
            ))
            used.update(f.path for f in security)

        api = [
            f for f in files
            if f.path not in used and any(h in f.relative_path for h in API_HINTS)
        ]
        if api:
            groups.append(AnalysisGroup("API & Routes", api, "API endpoints and route handlers"))
            used.update(f.path for f in api)

        core = [f for f in files if f.path not in used and f.priority >= 60]
        if core:
            groups.append(AnalysisGroup("Core Files", core[:10], "High-priority source files"))

        return groups


def _group_name(directory: str) -> str:
    parts = [p for p in directory.split("/") if p]
    if not parts:
        return "Root Files"
    last = parts[-1]
    return last[:1].upper() + last[1:]
