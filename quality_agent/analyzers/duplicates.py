"""Duplicate code analyzer: repeated windows of normalized lines."""

import hashlib
import re
from typing import Dict, List, Tuple

from ..models import Issue, IssueCategory, Severity
from .base import AnalyzerOptions, BaseAnalyzer, FileContent


_WHITESPACE = re.compile(r"\s+")


class DuplicateAnalyzer(BaseAnalyzer):
    """
    Finds blocks of at least min_lines significant lines that appear more
    than once, within a file or across files.

    Lines are normalized (whitespace collapsed, blank and comment lines
    dropped) before hashing. Overlapping windows of the same duplicated
    region are reported once, at the first duplicated line.
    """

    name = "duplicate"
    description = "Detects copy-pasted code blocks"
    category = IssueCategory.DUPLICATE
    default_config = {"min_lines": 6, "min_chars": 80}

    def significant_lines(self, file: FileContent) -> List[Tuple[int, str]]:
        result = []
        for index, line in enumerate(file.lines):
            normalized = _WHITESPACE.sub(" ", line).strip()
            if not normalized or self.is_comment_line(line):
                continue
            result.append((index + 1, normalized))
        return result

    async def analyze(self, files: List[str], options: AnalyzerOptions) -> List[Issue]:
        settings = self.settings(options)
        min_lines = int(settings["min_lines"])
        min_chars = int(settings["min_chars"])

        first_seen: Dict[str, Tuple[str, int, int]] = {}  # digest -> (path, start, end)
        issues = []

        for file in self.read_files(files):
            lines = self.significant_lines(file)
            reported_until = 0

            for start in range(len(lines) - min_lines + 1):
                window = lines[start:start + min_lines]
                text = "\n".join(text for _, text in window)
                if len(text) < min_chars:
                    continue

                digest = hashlib.sha1(text.encode("utf-8")).hexdigest()
                first_line, last_line = window[0][0], window[-1][0]
                original = first_seen.get(digest)

                if original is None:
                    first_seen[digest] = (file.path, first_line, last_line)
                    continue
                if original[0] == file.path and original[2] >= first_line:
                    # Overlaps its own first occurrence
                    continue
                if first_line <= reported_until:
                    reported_until = last_line
                    continue

                reported_until = last_line
                where = self.relative_path(original[0], options.root_dir)
                issues.append(self.create_issue(
                    file,
                    first_line,
                    f"Duplicate code block ({min_lines}+ lines) also found at {where}:{original[1]}",
                    Severity.INFO,
                    fingerprint=digest,
                    end_line=last_line,
                    suggestion="Extract the shared logic into a function",
                    metadata={"duplicate_of": f"{original[0]}:{original[1]}"},
                ))

        return issues
