"""Markdown rendering for the posted review body.

Sections appear in a fixed order and each is omitted when it has nothing to
say: marker, heading, status badge, walkthrough, impact banner, summary,
severity counts, tips, labels, related issues, closing line.
"""

from __future__ import annotations

from .annotators.issues import IssueRef
from .annotators.tips import Tip
from .impact import CRITICAL, HIGH, LOW, MEDIUM, ImpactAssessment
from .verdict import (
    APPROVE,
    CRITICAL as SEV_CRITICAL,
    MAX_FILE_SUMMARY_CHARS,
    REQUEST_CHANGES,
    SUGGESTION,
    WARNING,
    FileSummary,
    ReviewComment,
    ReviewVerdict,
    truncate,
)

HEADING = "## AI Code Review"
CLOSING_LINE = "*Automated review by reviewgate*"

MAX_WALKTHROUGH_ROWS = 10

_SEVERITY_ICON = {
    SEV_CRITICAL: "🔴",
    WARNING: "🟡",
    SUGGESTION: "🔵",
}

_SEVERITY_LABEL = {
    SEV_CRITICAL: "Critical",
    WARNING: "Warning",
    SUGGESTION: "Suggestion",
}

_IMPACT_ICON = {
    CRITICAL: "🚨",
    HIGH: "⚠️",
    MEDIUM: "ℹ️",
}

_STATUS_BADGE = {
    APPROVE: "✅ **Approved**",
    REQUEST_CHANGES: "❌ **Changes requested**",
}


def severity_icon(severity: str | None) -> str:
    text = str(severity or "").strip().lower()
    return _SEVERITY_ICON.get(text, _SEVERITY_ICON[SUGGESTION])


def severity_label(severity: str | None) -> str:
    text = str(severity or "").strip().lower()
    return _SEVERITY_LABEL.get(text, _SEVERITY_LABEL[SUGGESTION])


def _cell(text: str) -> str:
    return " ".join(text.replace("|", "\\|").split())


def status_badge(approval: str, *, complexity: int | None = None, tier: str | None = None) -> str:
    parts = [_STATUS_BADGE.get(approval, "💬 **Commented**")]
    if complexity is not None:
        parts.append(f"complexity {complexity}/100")
    if tier:
        parts.append(f"{tier} review")
    return " · ".join(parts)


def walkthrough_table(summaries: tuple[FileSummary, ...] | list[FileSummary]) -> str:
    if not summaries:
        return ""
    lines = ["| File | Summary |", "|------|---------|"]
    for item in summaries[:MAX_WALKTHROUGH_ROWS]:
        lines.append(f"| `{_cell(item.path)}` | {_cell(truncate(item.summary, max_len=MAX_FILE_SUMMARY_CHARS))} |")
    overflow = len(summaries) - MAX_WALKTHROUGH_ROWS
    if overflow > 0:
        noun = "file" if overflow == 1 else "files"
        lines.append("")
        lines.append(f"_…and {overflow} more {noun}._")
    return "\n".join(lines)


def impact_areas(impact: ImpactAssessment) -> list[str]:
    areas: list[str] = []
    if impact.affects_auth:
        areas.append("Authentication")
    if impact.affects_middleware:
        areas.append("Middleware")
    if impact.affects_schema:
        areas.append("Database Schema")
    if impact.affects_data:
        areas.append("Data Sources")
    if impact.affects_routes:
        areas.append("API Routes")
    if impact.affects_dependencies:
        areas.append("Dependencies")
    return areas


def impact_banner(impact: ImpactAssessment | None) -> str:
    """Blockquote banner for medium+ impact; empty for low."""
    if impact is None or impact.level == LOW:
        return ""
    icon = _IMPACT_ICON.get(impact.level, "")
    lines = [f"> {icon} **Platform Impact: {impact.level.upper()}**"]
    areas = impact_areas(impact)
    if areas:
        lines.append(f"> Affects: {', '.join(areas)}")
    return "\n".join(lines)


def severity_counts(comments: tuple[ReviewComment, ...] | list[ReviewComment]) -> dict[str, int]:
    counts = {SEV_CRITICAL: 0, WARNING: 0, SUGGESTION: 0}
    for comment in comments:
        counts[comment.severity] = counts.get(comment.severity, 0) + 1
    return counts


def severity_table(comments: tuple[ReviewComment, ...] | list[ReviewComment]) -> str:
    counts = severity_counts(comments)
    rows = [
        f"| {severity_icon(sev)} {severity_label(sev)} | {count} |"
        for sev, count in counts.items()
        if count
    ]
    if not rows:
        return ""
    return "\n".join(["| Severity | Count |", "|----------|-------|", *rows])


def tips_section(tips: list[Tip]) -> str:
    if not tips:
        return ""
    lines = ["### 💡 Tips", ""]
    for tip in tips:
        lines.append(f"- **{tip.title}**: {tip.description}")
    return "\n".join(lines)


def labels_line(labels: list[str]) -> str:
    if not labels:
        return ""
    return "**Suggested labels:** " + ", ".join(f"`{label}`" for label in labels)


def issues_section(issues: list[IssueRef], primary: str | None = None) -> str:
    """Related issues; the PR's own ticket, when present, leads the list."""
    if not issues:
        return ""
    ordered = sorted(issues, key=lambda issue: issue.id != primary)
    lines = ["**Related issues:**"]
    for issue in ordered:
        suffix = " (primary)" if primary and issue.id == primary else ""
        lines.append(f"- [{issue.id}]({issue.url}){suffix}")
    return "\n".join(lines)


def inline_comment_body(comment: ReviewComment) -> str:
    return f"{severity_icon(comment.severity)} **{severity_label(comment.severity)}**\n\n{comment.body}"


def render_review_body(
    verdict: ReviewVerdict,
    *,
    marker: str = "",
    impact: ImpactAssessment | None = None,
    complexity: int | None = None,
    tier: str | None = None,
    tips: list[Tip] | None = None,
    labels: list[str] | None = None,
    issues: list[IssueRef] | None = None,
    primary_ticket: str | None = None,
) -> str:
    sections = [
        marker,
        HEADING,
        status_badge(verdict.approval, complexity=complexity, tier=tier),
        walkthrough_table(verdict.file_summaries),
        impact_banner(impact),
        verdict.summary.strip(),
        severity_table(verdict.comments),
        tips_section(tips or []),
        labels_line(labels or []),
        issues_section(issues or [], primary_ticket),
        "---\n" + CLOSING_LINE,
    ]
    return "\n\n".join(s for s in sections if s)


def format_comments_as_body(comments: tuple[ReviewComment, ...] | list[ReviewComment]) -> str:
    """Comments rendered as text, for when inline anchoring is rejected."""
    lines = ["### Review Comments", ""]
    for c in comments:
        lines.append(f"{severity_icon(c.severity)} **{c.path}:{c.line}**")
        lines.append("")
        lines.append(c.body)
        lines.append("")
        lines.append("---")
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"
