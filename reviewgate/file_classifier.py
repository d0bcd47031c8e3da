"""Path predicates: which changed files are reviewable, security-sensitive, or core.

All checks are case-insensitive and never raise. When unsure, a file counts as
reviewable: skipping real code hides issues from review.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath

# JSON files that carry semantic rules worth reviewing.
REVIEWABLE_JSON_FILES = {"widget.json"}

# Whole path segments only: "prebuild/" or "redist/" stay reviewable.
SKIP_DIRECTORIES = (
    "node_modules",
    "vendor",
    "dist",
    "build",
    "coverage",
    ".github",
    "__pycache__",
    ".venv",
    ".next",
)

_SKIP_DIR_RE = re.compile(r"(^|/)(" + "|".join(re.escape(d) for d in SKIP_DIRECTORIES) + r")/")

SKIP_FILENAMES = {
    "package-lock.json",
    "yarn.lock",
    "pnpm-lock.yaml",
    "poetry.lock",
    "pipfile.lock",
    "gemfile.lock",
    "cargo.lock",
    "composer.lock",
    "go.sum",
}

SKIP_EXTENSIONS = (
    ".md", ".txt", ".rst", ".yml", ".yaml", ".lock",
    ".png", ".jpg", ".jpeg", ".gif", ".svg", ".ico", ".webp",
    ".woff", ".woff2", ".ttf", ".eot",
    ".pdf", ".zip", ".gz", ".tar",
    ".min.js", ".min.css", ".map",
)

SECURITY_SENSITIVE_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"auth",
        r"middleware",
        r"migration",
        r"session",
        r"encrypt",
        r"password",
        r"token",
        r"permission",
        r"sql",
        r"route",
        r"api/",
        r"secret",
        r"crypt",
        r"sanitiz",
        r"valid",
        r"login",
    )
)

CORE_FILE_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^index\.(js|ts|jsx|tsx|mjs|cjs)$",
        r"^app\.(js|ts|py)$",
        r"^server\.(js|ts|py)$",
        r"^main\.(js|ts|py|go)$",
    )
)

TEST_FILE_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\.test\.[jt]sx?$",
        r"\.spec\.[jt]sx?$",
        r"(^|/)tests?/",
        r"__tests__/",
        r"(^|/)test_[^/]+\.py$",
        r"_test\.(py|go)$",
    )
)


def _basename(path: str) -> str:
    return PurePosixPath(path).name


def is_reviewable(path: str | None) -> bool:
    """Reject generated, vendored, binary, and documentation paths."""
    lower = (path or "").strip().lower()
    if not lower:
        return False

    if _SKIP_DIR_RE.search(lower):
        return False

    name = _basename(lower)
    if name in SKIP_FILENAMES:
        return False

    if lower.endswith(".json"):
        return name in REVIEWABLE_JSON_FILES

    if lower.endswith(SKIP_EXTENSIONS):
        return False

    return True


def is_security_sensitive(path: str | None) -> bool:
    text = path or ""
    return any(p.search(text) for p in SECURITY_SENSITIVE_PATTERNS)


def is_core_file(path: str | None) -> bool:
    name = _basename((path or "").strip())
    if not name:
        return False
    return any(p.search(name) for p in CORE_FILE_PATTERNS)


def is_test_file(path: str | None) -> bool:
    text = path or ""
    return any(p.search(text) for p in TEST_FILE_PATTERNS)
