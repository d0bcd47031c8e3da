"""PR complexity scoring (0-100) driving reviewer tier and thinking mode.

Scoring rubric (conditions are independent and summed, then capped at 100):
  - Total changes > 200 lines: +20
  - Files > 10: +15
  - Any security-sensitive file path: +25
  - Complexity keyword in PR title/body: +15
  - More than 20 hunks in total: +10
  - Any single file with > 100 changes: +15
  - Impact level critical/high/medium: +30/+20/+10
  - Impact touches the database schema: +15
"""

from __future__ import annotations

from .diff_parser import DiffFile, total_changes
from .file_classifier import is_security_sensitive
from .impact import CRITICAL, HIGH, MEDIUM, ImpactAssessment

COMPLEXITY_KEYWORDS = (
    "refactor",
    "migration",
    "security",
    "architecture",
    "breaking",
    "rewrite",
)

DEEP_TIER = "deep"
FAST_TIER = "fast"

DEEP_TIER_THRESHOLD = 40
THINKING_THRESHOLD = 50

_IMPACT_POINTS = {CRITICAL: 30, HIGH: 20, MEDIUM: 10}

THINKING_MODES = ("auto", "always", "never")


def score_complexity(
    files: list[DiffFile],
    title: str | None = "",
    body: str | None = "",
    impact: ImpactAssessment | None = None,
) -> int:
    score = 0

    if total_changes(files) > 200:
        score += 20

    if len(files) > 10:
        score += 15

    if any(is_security_sensitive(f.path) for f in files):
        score += 25

    text = f"{title or ''} {body or ''}".lower()
    if any(keyword in text for keyword in COMPLEXITY_KEYWORDS):
        score += 15

    if sum(len(f.hunks) for f in files) > 20:
        score += 10

    if any(f.additions + f.deletions > 100 for f in files):
        score += 15

    if impact is not None:
        score += _IMPACT_POINTS.get(impact.level, 0)
        if impact.affects_schema:
            score += 15

    return min(score, 100)


def recommend_tier(score: int) -> str:
    """Deep (more capable, pricier) reviewer at 40+, fast otherwise."""
    return DEEP_TIER if score >= DEEP_TIER_THRESHOLD else FAST_TIER


def should_enable_thinking(mode: str | None, tier: str, score: int) -> bool:
    mode = (mode or "auto").strip().lower()
    if mode == "always":
        return True
    if mode == "never":
        return False
    return tier == DEEP_TIER or score >= THINKING_THRESHOLD
