"""Label suggestions from impact flags, changed paths, and PR wording."""

from __future__ import annotations

from ..file_classifier import is_test_file
from ..impact import ImpactAssessment

BREAKING_KEYWORDS = ("breaking", "deprecated", "removed", "migration required")
PERFORMANCE_KEYWORDS = ("performance", "memory", "cache", "optimize", "speed", "slow", "leak", "latency")
BUG_KEYWORDS = ("fix", "bug", "issue", "error", "crash", "broken")
FEATURE_PREFIXES = ("feature", "add", "new", "implement", "introduce")
REFACTOR_KEYWORDS = ("refactor", "cleanup", "reorganize", "restructure")

CODE_EXTENSIONS = (".js", ".jsx", ".ts", ".tsx", ".py", ".go", ".rb", ".java")


def has_test_files(paths: list[str]) -> bool:
    return any(is_test_file(p) for p in paths)


def _is_doc(path: str) -> bool:
    return path.endswith(".md") or "docs/" in path or "README" in path


def suggest_labels(
    impact: ImpactAssessment | None,
    file_paths: list[str],
    title: str | None = "",
    body: str | None = "",
    has_tests: bool = False,
) -> list[str]:
    labels: list[str] = []
    title_lower = (title or "").lower()
    combined = f"{title_lower} {(body or '').lower()}"

    if impact is not None:
        if impact.affects_auth or impact.affects_middleware:
            labels.append("security")
        if impact.affects_schema:
            labels.append("database")
        if impact.affects_dependencies:
            labels.append("dependencies")

    routes_changed = impact is not None and impact.affects_routes
    if any(k in combined for k in BREAKING_KEYWORDS) or (routes_changed and "api" in combined):
        labels.append("breaking-change")

    if not has_tests and any(p.endswith(CODE_EXTENSIONS) for p in file_paths):
        labels.append("needs-tests")

    if any(k in combined for k in PERFORMANCE_KEYWORDS):
        labels.append("performance")

    if any(k in title_lower for k in BUG_KEYWORDS):
        labels.append("bug")

    if title_lower.startswith(FEATURE_PREFIXES) or "add " in title_lower:
        labels.append("enhancement")

    if file_paths and all(_is_doc(p) for p in file_paths):
        labels.append("documentation")

    if any(k in combined for k in REFACTOR_KEYWORDS):
        labels.append("refactor")

    return list(dict.fromkeys(labels))
