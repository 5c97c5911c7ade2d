"""File discovery, glob matching and language detection."""

import os
import re
from functools import lru_cache
from typing import Iterable, List, Optional, Pattern


@lru_cache(maxsize=512)
def glob_to_regex(pattern: str) -> Pattern[str]:
    """
    Compile a glob pattern to a regex over posix relative paths.

    Supports ``**`` (any depth, including none), ``*``, ``?`` and
    ``{a,b}`` alternation.
    """
    out = []
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
            continue
        if pattern.startswith("**", i):
            out.append(".*")
            i += 2
            continue
        if c == "*":
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "{":
            end = pattern.find("}", i)
            if end == -1:
                out.append(re.escape(c))
            else:
                options = pattern[i + 1:end].split(",")
                out.append("(?:" + "|".join(re.escape(o) for o in options) + ")")
                i = end + 1
                continue
        else:
            out.append(re.escape(c))
        i += 1
    return re.compile("^" + "".join(out) + "$")


def matches_any(rel_path: str, patterns: Iterable[str]) -> bool:
    """Check a posix relative path against a set of glob patterns."""
    return any(glob_to_regex(p).match(rel_path) for p in patterns)


DEFAULT_INCLUDE = [
    # JavaScript/TypeScript
    "**/*.ts", "**/*.tsx", "**/*.js", "**/*.jsx", "**/*.mjs", "**/*.cjs",
    # Web
    "**/*.html", "**/*.htm", "**/*.vue", "**/*.svelte", "**/*.astro",
    "**/*.css", "**/*.scss", "**/*.sass", "**/*.less",
    # Python
    "**/*.py", "**/*.pyw", "**/*.pyi",
    # Systems and JVM
    "**/*.go", "**/*.rs",
    "**/*.java", "**/*.kt", "**/*.kts", "**/*.scala",
    "**/*.c", "**/*.cpp", "**/*.cc", "**/*.cxx", "**/*.h", "**/*.hpp", "**/*.cs",
    # Scripting
    "**/*.rb", "**/*.erb", "**/*.php",
    "**/*.swift", "**/*.m", "**/*.mm",
    "**/*.sh", "**/*.bash", "**/*.zsh",
    # Config (often contains secrets)
    "**/*.json", "**/*.yaml", "**/*.yml", "**/*.toml", "**/*.xml",
    "**/*.sql", "**/*.md",
    # Other languages
    "**/*.lua", "**/*.pl", "**/*.pm", "**/*.r", "**/*.R",
    "**/*.dart", "**/*.ex", "**/*.exs",
    "**/*.clj", "**/*.cljs",
    "**/*.hs", "**/*.ml",
    "**/*.jl", "**/*.zig", "**/*.nim",
]

DEFAULT_EXCLUDE = [
    "**/node_modules/**",
    "**/dist/**",
    "**/build/**",
    "**/.git/**",
    "**/coverage/**",
    "**/__pycache__/**",
    "**/venv/**",
    "**/.venv/**",
    "**/target/**",
    "**/vendor/**",
    "**/*.d.ts",
    "**/*.min.js",
    "**/*.min.css",
    "**/*.map",
    "**/*.lock",
    "**/package-lock.json",
    "**/yarn.lock",
    "**/pnpm-lock.yaml",
]


def find_files(
    root_dir: str,
    include: Optional[List[str]] = None,
    exclude: Optional[List[str]] = None,
) -> List[str]:
    """
    Find candidate source files under root_dir.

    Args:
        root_dir: Project root
        include: Glob patterns to include (default: broad source set)
        exclude: Glob patterns to exclude (default: build output, vendored
            code and lockfiles)

    Returns:
        Sorted, de-duplicated absolute paths
    """
    include = DEFAULT_INCLUDE if include is None else include
    exclude = DEFAULT_EXCLUDE if exclude is None else exclude
    root = os.path.abspath(root_dir)

    found = set()
    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = os.path.relpath(dirpath, root).replace(os.sep, "/")
        rel_dir = "" if rel_dir == "." else rel_dir + "/"

        # Prune excluded directories before descending
        dirnames[:] = [
            d for d in dirnames
            if not matches_any(f"{rel_dir}{d}/", exclude)
        ]

        for name in filenames:
            rel = f"{rel_dir}{name}"
            if matches_any(rel, exclude):
                continue
            if matches_any(rel, include):
                found.add(os.path.join(dirpath, name))

    return sorted(found)


LANGUAGES = {
    "py": "python", "pyi": "python",
    "ts": "typescript", "tsx": "typescript",
    "js": "javascript", "jsx": "javascript", "mjs": "javascript", "cjs": "javascript",
    "rb": "ruby", "go": "go", "rs": "rust", "java": "java", "kt": "kotlin",
    "swift": "swift", "cs": "csharp", "cpp": "cpp", "cc": "cpp", "hpp": "cpp",
    "c": "c", "h": "c", "php": "php", "sql": "sql",
    "sh": "bash", "bash": "bash", "zsh": "bash",
    "yml": "yaml", "yaml": "yaml", "json": "json", "toml": "toml",
    "xml": "xml", "html": "html", "css": "css", "scss": "scss",
    "vue": "vue", "svelte": "svelte", "md": "markdown",
}


def detect_language(file_path: str) -> str:
    """Fence language for a path, falling back to the bare extension."""
    ext = os.path.splitext(file_path)[1].lstrip(".").lower()
    return LANGUAGES.get(ext, ext)
