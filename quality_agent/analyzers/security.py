"""Security analyzer: hardcoded secrets and injection-prone patterns."""

import re
from dataclasses import dataclass, field
from typing import List, Pattern

from ..models import Issue, IssueCategory, Severity
from .base import AnalyzerOptions, BaseAnalyzer, FileContent


@dataclass
class SecurityPattern:
    type: str
    pattern: Pattern[str]
    severity: Severity
    message: str
    suggestion: str = ""
    false_positives: List[Pattern[str]] = field(default_factory=list)


_USER_INPUT = r"(?:req|request|params|query|body|input|argv)"

SECRET_PATTERNS = [
    SecurityPattern(
        "hardcoded-api-key",
        re.compile(r"""(?:api[_-]?key|apikey)\s*[:=]\s*['"`]([a-zA-Z0-9_\-]{20,})['"`]""", re.I),
        Severity.ERROR,
        "Potential hardcoded API key detected",
        "Load the key from an environment variable or a secrets manager",
    ),
    SecurityPattern(
        "hardcoded-password",
        re.compile(r"""(?:secret|password|passwd|pwd)\s*[:=]\s*['"`]([^'"`]{8,})['"`]""", re.I),
        Severity.ERROR,
        "Potential hardcoded password or secret detected",
        "Load the secret from configuration outside the source tree",
        [re.compile(r"process\.env|os\.environ|getenv|example|placeholder|changeme|<[^>]+>", re.I)],
    ),
    SecurityPattern(
        "hardcoded-aws-credential",
        re.compile(r"""aws[_-]?(?:access[_-]?key|secret)\w*\s*[:=]\s*['"`]([A-Za-z0-9/+]{16,})['"`]""", re.I),
        Severity.ERROR,
        "Potential hardcoded AWS credential detected",
        "Use the AWS credential chain instead of literals",
    ),
    SecurityPattern(
        "private-key",
        re.compile(r"""(?:private[_-]?key|priv[_-]?key)\s*[:=]\s*['"`]-----BEGIN""", re.I),
        Severity.ERROR,
        "Private key detected in source code",
        "Move the key to a protected file or secrets store",
    ),
    SecurityPattern(
        "bearer-token",
        re.compile(r"""bearer\s+[a-zA-Z0-9_\-.]{20,}""", re.I),
        Severity.ERROR,
        "Potential hardcoded bearer token detected",
        "Inject tokens at runtime",
    ),
    SecurityPattern(
        "github-token",
        re.compile(r"ghp_[a-zA-Z0-9]{36}"),
        Severity.ERROR,
        "GitHub personal access token detected",
        "Revoke the token and read it from the environment",
    ),
    SecurityPattern(
        "openai-key",
        re.compile(r"sk-[a-zA-Z0-9]{48}"),
        Severity.ERROR,
        "Potential OpenAI API key detected",
        "Revoke the key and read it from the environment",
    ),
]

INJECTION_PATTERNS = [
    SecurityPattern(
        "sql-injection",
        re.compile(r"""(?:execute|query|exec)\s*\(\s*f?['"`](?:SELECT|INSERT|UPDATE|DELETE|DROP)[^'"`]*(?:\$\{|\{[^}]*\})""", re.I),
        Severity.ERROR,
        "Potential SQL injection vulnerability",
        "Use parameterized queries",
    ),
    SecurityPattern(
        "sql-injection",
        re.compile(r"""(?:execute|query)\s*\(\s*['"](?:SELECT|INSERT|UPDATE|DELETE|DROP)[^'"]*['"]\s*(?:%|\.format\(|\+)""", re.I),
        Severity.ERROR,
        "Potential SQL injection vulnerability",
        "Use parameterized queries",
    ),
    SecurityPattern(
        "command-injection",
        re.compile(r"(?:os\.system|os\.popen|subprocess\.\w+)\s*\(.*(?:f['\"]|%\s*\(|\.format\(|\+\s*\w).*shell\s*=\s*True", re.I),
        Severity.ERROR,
        "Potential command injection vulnerability",
        "Pass an argument list and avoid shell=True",
    ),
    SecurityPattern(
        "command-injection",
        re.compile(r"(?:os\.system|os\.popen)\s*\(\s*(?:f['\"]|[^)]*(?:%|\.format\(|\+))", re.I),
        Severity.ERROR,
        "Potential command injection vulnerability",
        "Use subprocess with an argument list",
    ),
    SecurityPattern(
        "command-injection",
        re.compile(r"(?:exec|spawn|execSync|spawnSync)\s*\(\s*(?:[^)]*\$\{|[^)]*\+\s*" + _USER_INPUT + ")", re.I),
        Severity.ERROR,
        "Potential command injection vulnerability",
        "Pass arguments as an array",
    ),
    SecurityPattern(
        "code-injection",
        re.compile(r"\b(?:eval|exec)\s*\(\s*(?:[^)]*\$\{|[^)]*" + _USER_INPUT + r"\b)", re.I),
        Severity.ERROR,
        "Potential code injection via eval()/exec()",
        "Never evaluate user-controlled input",
    ),
    SecurityPattern(
        "xss",
        re.compile(r"innerHTML\s*=\s*(?:[^;]*\$\{|[^;]*\+\s*" + _USER_INPUT + ")", re.I),
        Severity.ERROR,
        "Potential XSS vulnerability via innerHTML",
        "Use textContent or sanitize the markup",
    ),
    SecurityPattern(
        "path-traversal",
        re.compile(r"(?:open|readFile|writeFile|createReadStream|unlink)\s*\(\s*(?:[^)]*\$\{|[^)]*\+\s*" + _USER_INPUT + ")", re.I),
        Severity.ERROR,
        "Potential path traversal vulnerability",
        "Normalize the path and check it stays inside the allowed directory",
    ),
    SecurityPattern(
        "weak-hash",
        re.compile(r"""hashlib\.(?:md5|sha1)\s*\(|createHash\s*\(\s*['"`](?:md5|sha1)['"`]""", re.I),
        Severity.WARNING,
        "Weak hash algorithm detected",
        "Use SHA-256 or stronger for anything security related",
    ),
    SecurityPattern(
        "unsafe-deserialization",
        re.compile(r"\b(?:pickle\.loads?|yaml\.load)\s*\((?![^)]*Loader\s*=\s*yaml\.SafeLoader)"),
        Severity.WARNING,
        "Unsafe deserialization of possibly untrusted data",
        "Use a safe loader or a data-only format",
    ),
]

ALL_PATTERNS = SECRET_PATTERNS + INJECTION_PATTERNS


class SecurityAnalyzer(BaseAnalyzer):
    """
    Line-oriented detection of hardcoded secrets and injection patterns.

    Settings:
        types: Restrict to these pattern types (default: all)
    """

    name = "security"
    description = "Detects hardcoded secrets and injection-prone code"
    category = IssueCategory.SECURITY
    default_config = {"types": None}

    def patterns(self, options: AnalyzerOptions) -> List[SecurityPattern]:
        allowed = self.settings(options).get("types")
        if not allowed:
            return list(ALL_PATTERNS)
        return [p for p in ALL_PATTERNS if p.type in allowed]

    async def analyze(self, files: List[str], options: AnalyzerOptions) -> List[Issue]:
        patterns = self.patterns(options)
        issues = []
        for file in self.read_files(files):
            issues.extend(self.scan(file, patterns))
        return issues

    def scan(self, file: FileContent, patterns: List[SecurityPattern]) -> List[Issue]:
        issues = []
        for index, line in enumerate(file.lines):
            if self.is_comment_line(line):
                continue

            comment_at = self.comment_start(line)
            for pattern in patterns:
                if any(fp.search(line) for fp in pattern.false_positives):
                    continue
                match = pattern.pattern.search(line)
                if not match:
                    continue
                if comment_at != -1 and comment_at < match.start() and not _inside_string(line, comment_at):
                    continue

                issues.append(self.create_issue(
                    file,
                    index + 1,
                    pattern.message,
                    pattern.severity,
                    fingerprint=pattern.type,
                    column=match.start() + 1,
                    suggestion=pattern.suggestion,
                    metadata={"vulnerability_type": pattern.type},
                ))
        return issues


def _inside_string(line: str, position: int) -> bool:
    """Rough check: an odd number of quotes before position."""
    before = line[:position]
    return any(before.count(q) % 2 == 1 for q in ("'", '"', "`"))
