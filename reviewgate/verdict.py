"""Validation of the reviewing service's structured verdict.

Reviewer output is untrusted. `parse_verdict` returns either a clean
ReviewVerdict or a VerdictParseError; `validate_verdict` turns the error case
into a safe fallback so a bad response never breaks the run.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass

APPROVE = "approve"
REQUEST_CHANGES = "request_changes"
COMMENT = "comment"
APPROVALS = (APPROVE, REQUEST_CHANGES, COMMENT)

CRITICAL = "critical"
WARNING = "warning"
SUGGESTION = "suggestion"
SEVERITIES = (CRITICAL, WARNING, SUGGESTION)

MAX_FILE_SUMMARY_CHARS = 120

FALLBACK_SUMMARY = "AI review encountered a parsing error. Manual review recommended."

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)
_LEADING_INT_RE = re.compile(r"\s*([-+]?\d+)")


@dataclass(frozen=True)
class ReviewComment:
    path: str
    line: int
    severity: str
    body: str


@dataclass(frozen=True)
class FileSummary:
    path: str
    summary: str


@dataclass(frozen=True)
class ReviewVerdict:
    summary: str
    approval: str
    comments: tuple[ReviewComment, ...] = ()
    file_summaries: tuple[FileSummary, ...] = ()

    def with_comments(self, extra: list[ReviewComment]) -> "ReviewVerdict":
        return ReviewVerdict(
            summary=self.summary,
            approval=self.approval,
            comments=self.comments + tuple(extra),
            file_summaries=self.file_summaries,
        )


@dataclass(frozen=True)
class VerdictParseError:
    reason: str


def fallback_verdict() -> ReviewVerdict:
    return ReviewVerdict(summary=FALLBACK_SUMMARY, approval=COMMENT)


def as_int(value: object) -> int | None:
    """Integer value of ``value``, or of the integer its text starts with."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        try:
            return int(value)
        except (OverflowError, ValueError):
            return None
    match = _LEADING_INT_RE.match(str(value))
    return int(match.group(1)) if match else None


def _norm(value: object) -> str:
    return " ".join(str(value or "").strip().lower().split())


def normalize_approval(value: object) -> str:
    text = _norm(value)
    return text if text in APPROVALS else COMMENT


def normalize_severity(value: object) -> str:
    text = _norm(value)
    return text if text in SEVERITIES else SUGGESTION


def truncate(text: str, *, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 1].rstrip() + "…"


def _clean_comment(raw: object) -> ReviewComment | None:
    if not isinstance(raw, dict):
        return None
    path = raw.get("path")
    line = raw.get("line")
    body = raw.get("body")
    if not path or not line or not body:
        return None

    # Unparseable but present: anchor at the top of the file.
    parsed_line = as_int(line) or 1

    return ReviewComment(
        path=str(path).strip(),
        line=max(1, parsed_line),
        severity=normalize_severity(raw.get("severity")),
        body=str(body),
    )


def _clean_file_summaries(raw: object) -> tuple[FileSummary, ...]:
    if not isinstance(raw, list):
        return ()
    out: list[FileSummary] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        path = str(item.get("path") or "").strip()
        summary = str(item.get("summary") or "").strip()
        if not path or not summary:
            continue
        out.append(FileSummary(path=path, summary=truncate(summary, max_len=MAX_FILE_SUMMARY_CHARS)))
    return tuple(out)


def parse_verdict(raw: object) -> ReviewVerdict | VerdictParseError:
    """Validate a raw verdict object; never raises."""
    if not isinstance(raw, dict):
        return VerdictParseError("verdict is not an object")
    if not raw.get("summary"):
        return VerdictParseError("missing summary")
    if not raw.get("approval"):
        return VerdictParseError("missing approval")
    comments_raw = raw.get("comments")
    if not isinstance(comments_raw, list):
        return VerdictParseError("comments is not a list")

    comments = tuple(c for c in (_clean_comment(item) for item in comments_raw) if c is not None)
    return ReviewVerdict(
        summary=str(raw.get("summary")).strip(),
        approval=normalize_approval(raw.get("approval")),
        comments=comments,
        file_summaries=_clean_file_summaries(raw.get("file_summaries")),
    )


def validate_verdict(raw: object) -> ReviewVerdict:
    result = parse_verdict(raw)
    if isinstance(result, VerdictParseError):
        return fallback_verdict()
    return result


def decode_verdict_text(text: str | None) -> object | VerdictParseError:
    """Decode reviewer text (bare or fenced JSON) into a raw object."""
    candidate = (text or "").strip()
    if not candidate:
        return VerdictParseError("empty response")
    match = _FENCED_JSON_RE.search(candidate)
    if match:
        candidate = match.group(1).strip()
    try:
        return json.loads(candidate)
    except json.JSONDecodeError as exc:
        return VerdictParseError(f"invalid JSON: {exc}")


def parse_verdict_text(text: str | None) -> ReviewVerdict | VerdictParseError:
    decoded = decode_verdict_text(text)
    if isinstance(decoded, VerdictParseError):
        return decoded
    return parse_verdict(decoded)
