"""Deterministic platform impact assessment.

Pure path matching, no reviewer call. Each changed path is checked against
the risk taxonomy and a fixed set of flag patterns; the overall level is the
highest risk any signal raised.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .defaults_config import RiskTaxonomy, default_risk_taxonomy
from .diff_parser import DiffFile

LOW = "low"
MEDIUM = "medium"
HIGH = "high"
CRITICAL = "critical"

# Highest first.
RISK_LEVELS = (CRITICAL, HIGH, MEDIUM, LOW)

MAX_EXAMPLE_FILES = 3


def _patterns(*raw: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in raw)


AUTH_FILE_PATTERNS = _patterns(
    r"auth", r"login", r"logout", r"session", r"passport", r"oauth", r"saml", r"(^|/)sso", r"jwt"
)
DATA_SOURCE_PATTERNS = _patterns(
    r"data[-_]?sources?", r"(^|/)db/", r"(^|/)database/", r"(^|/)repositories/"
)
MIDDLEWARE_FILE_PATTERNS = _patterns(r"middlewares?/", r"middlewares?\.[a-z]+$")
MIGRATION_FILE_PATTERNS = _patterns(r"migrations?/", r"(^|/)schema\.(sql|prisma|rb)$", r"\.sql$")
ROUTE_FILE_PATTERNS = _patterns(r"(^|/)routes?/", r"(^|/)controllers?/", r"(^|/)api/", r"router\.[a-z]+$")
DEPENDENCY_FILE_PATTERNS = _patterns(
    r"(^|/)package\.json$",
    r"(^|/)requirements[^/]*\.txt$",
    r"(^|/)pyproject\.toml$",
    r"(^|/)gemfile$",
    r"(^|/)go\.mod$",
    r"(^|/)cargo\.toml$",
    r"(^|/)pom\.xml$",
    r"(^|/)build\.gradle(\.kts)?$",
)


@dataclass(frozen=True)
class ImpactRecord:
    file: str
    category: str
    risk: str
    description: str


@dataclass(frozen=True)
class ImpactAssessment:
    level: str = LOW
    impacts: tuple[ImpactRecord, ...] = ()
    summary: str = ""
    affects_auth: bool = False
    affects_data: bool = False
    affects_middleware: bool = False
    affects_schema: bool = False
    affects_routes: bool = False
    affects_dependencies: bool = False
    critical_file_count: int = 0
    high_file_count: int = 0


def _rank(level: str) -> int:
    try:
        return RISK_LEVELS.index(level)
    except ValueError:
        return RISK_LEVELS.index(LOW)


def higher_risk(a: str, b: str) -> str:
    """Return whichever level is more severe."""
    return a if _rank(a) <= _rank(b) else b


def _any_match(patterns: tuple[re.Pattern[str], ...], path: str) -> bool:
    return any(p.search(path) for p in patterns)


def assess_impact(
    files: list[DiffFile],
    repo_name: str = "",
    taxonomy: RiskTaxonomy | None = None,
) -> ImpactAssessment:
    """Assess how platform-critical the changed paths are."""
    if taxonomy is None:
        taxonomy = default_risk_taxonomy()
    categories = [c for c in taxonomy.categories if c.applies_to_repo(repo_name)]

    level = LOW
    flags = {
        "affects_auth": False,
        "affects_data": False,
        "affects_middleware": False,
        "affects_schema": False,
        "affects_routes": False,
        "affects_dependencies": False,
    }
    impacts: list[ImpactRecord] = []
    seen: set[tuple[str, str]] = set()

    for file in files:
        path = file.path
        for category in categories:
            if not category.matches(path):
                continue
            key = (path, category.name)
            if key in seen:
                continue
            seen.add(key)
            impacts.append(
                ImpactRecord(
                    file=path,
                    category=category.name,
                    risk=category.risk,
                    description=category.description,
                )
            )
            level = higher_risk(level, category.risk)

        if _any_match(AUTH_FILE_PATTERNS, path):
            flags["affects_auth"] = True
            level = higher_risk(level, HIGH)
        if _any_match(DATA_SOURCE_PATTERNS, path):
            flags["affects_data"] = True
            level = higher_risk(level, HIGH)
        if _any_match(MIDDLEWARE_FILE_PATTERNS, path):
            flags["affects_middleware"] = True
            level = higher_risk(level, CRITICAL)
        if _any_match(MIGRATION_FILE_PATTERNS, path):
            flags["affects_schema"] = True
            level = higher_risk(level, CRITICAL)
        if _any_match(ROUTE_FILE_PATTERNS, path):
            flags["affects_routes"] = True
            level = higher_risk(level, MEDIUM)
        if _any_match(DEPENDENCY_FILE_PATTERNS, path):
            flags["affects_dependencies"] = True
            level = higher_risk(level, MEDIUM)

    return ImpactAssessment(
        level=level,
        impacts=tuple(impacts),
        summary=build_summary(impacts, flags, level),
        critical_file_count=sum(1 for i in impacts if i.risk == CRITICAL),
        high_file_count=sum(1 for i in impacts if i.risk == HIGH),
        **flags,
    )


def affected_areas(flags: dict[str, bool]) -> list[str]:
    areas: list[str] = []
    if flags.get("affects_auth"):
        areas.append("authentication")
    if flags.get("affects_middleware"):
        areas.append("middleware pipeline")
    if flags.get("affects_schema"):
        areas.append("database schema")
    if flags.get("affects_data"):
        areas.append("data source layer")
    if flags.get("affects_routes"):
        areas.append("API routes")
    if flags.get("affects_dependencies"):
        areas.append("dependencies")
    return areas


def build_summary(impacts: list[ImpactRecord], flags: dict[str, bool], level: str) -> str:
    """Prompt-ready summary; empty for low impact so callers can omit the section."""
    if level == LOW:
        return ""

    parts: list[str] = []
    categories = list(dict.fromkeys(i.category for i in impacts))
    impacted = list(dict.fromkeys(i.file for i in impacts))

    if impacted:
        examples = ", ".join(impacted[:MAX_EXAMPLE_FILES])
        more = len(impacted) - MAX_EXAMPLE_FILES
        more_text = f" and {more} more" if more > 0 else ""
        parts.append(f"This PR modifies {', '.join(categories)} paths ({examples}{more_text}).")

    areas = affected_areas(flags)
    if areas:
        parts.append(f"Affected areas: {', '.join(areas)}.")

    if level == CRITICAL:
        parts.append(
            "These are critical platform paths: pay special attention to security regressions, "
            "breaking changes, and data integrity."
        )
    elif level == HIGH:
        parts.append("These are high-impact platform paths: check for breaking changes and regressions.")
    else:
        parts.append("Review for unintended side effects.")

    return " ".join(parts)
