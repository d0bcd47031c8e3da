"""GitHub access through the gh CLI.

Fetches PR metadata, diffs and file contents; lists, creates and dismisses PR
reviews. Every call goes through `_run_gh`, which retries transient failures
(rate limits, 5xx, connection resets) and fails fast on everything else.
"""

from __future__ import annotations

import base64
import json
import os
import re
import subprocess
import tempfile
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import quote

from .retry import is_transient_status, with_retry

_STATUS_RE = re.compile(r"http (\d{3})")

_TRANSIENT_MARKERS = ("connection reset", "timed out", "timeout", "eof")

# GitHub's name for the new-file side of a diff.
_SIDES = {"new": "RIGHT", "old": "LEFT"}


class GitHubError(Exception):
    """A gh CLI call failed."""

    def __init__(self, message: str, *, status: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.stderr = stderr


class GitHubPermissionError(GitHubError):
    """Token is missing or lacks pull-requests: write permission."""


class TransientGitHubError(GitHubError):
    """Rate limit, 5xx, or dropped connection; safe to retry."""


@dataclass(frozen=True)
class PullRequestInfo:
    number: int
    title: str
    body: str
    base_ref: str
    head_sha: str


@dataclass(frozen=True)
class InlineComment:
    path: str
    line: int
    body: str
    side: str = "new"


def _status_from_stderr(stderr: str) -> int | None:
    match = _STATUS_RE.search(stderr.lower())
    return int(match.group(1)) if match else None


def _classify_failure(args: list[str], stderr: str) -> GitHubError:
    status = _status_from_stderr(stderr)
    lower = stderr.lower()
    message = f"gh {' '.join(args[:4])} failed: {stderr.strip() or 'no output'}"
    if status in (401, 403) or "resource not accessible" in lower:
        return GitHubPermissionError(
            "GitHub rejected the token (needs pull-requests: write). " + message,
            status=status,
            stderr=stderr,
        )
    if is_transient_status(status) or any(m in lower for m in _TRANSIENT_MARKERS):
        return TransientGitHubError(message, status=status, stderr=stderr)
    return GitHubError(message, status=status, stderr=stderr)


def _run_gh_once(args: list[str]) -> subprocess.CompletedProcess[str]:
    result = subprocess.run(["gh", *args], capture_output=True, text=True, check=False)
    if result.returncode == 0:
        return result
    raise _classify_failure(args, result.stderr or "")


def _run_gh(
    args: list[str],
    *,
    max_retries: int = 3,
    base_delay: float = 1.0,
) -> subprocess.CompletedProcess[str]:
    """Run a gh CLI command, retrying transient errors with exponential backoff.

    Raises:
        GitHubPermissionError: token lacks access (never retried)
        TransientGitHubError: still failing after max_retries attempts
        GitHubError: any other gh failure
    """
    return with_retry(
        lambda: _run_gh_once(args),
        is_retryable=lambda exc: isinstance(exc, TransientGitHubError),
        max_attempts=max_retries,
        base_delay=base_delay,
        label=f"gh {args[0] if args else ''}".strip(),
    )


def _load_json(text: str | None, default: object) -> object:
    try:
        return json.loads(text or "")
    except json.JSONDecodeError:
        return default


def fetch_pull_request(repo: str, pr_number: int) -> PullRequestInfo:
    result = _run_gh(["api", f"repos/{repo}/pulls/{pr_number}"])
    data = _load_json(result.stdout, {})
    if not isinstance(data, dict):
        data = {}
    base = data.get("base") if isinstance(data.get("base"), dict) else {}
    head = data.get("head") if isinstance(data.get("head"), dict) else {}
    return PullRequestInfo(
        number=pr_number,
        title=str(data.get("title") or ""),
        body=str(data.get("body") or ""),
        base_ref=str(base.get("ref") or ""),
        head_sha=str(head.get("sha") or ""),
    )


def fetch_pr_diff(repo: str, pr_number: int) -> str:
    result = _run_gh(
        [
            "api",
            f"repos/{repo}/pulls/{pr_number}",
            "-H",
            "Accept: application/vnd.github.v3.diff",
        ]
    )
    return result.stdout or ""


def fetch_file_content(repo: str, path: str, ref: str) -> str | None:
    """Return decoded file content at ref, or None for directories/binaries."""
    endpoint = f"repos/{repo}/contents/{quote(path, safe='/')}?ref={quote(ref, safe='')}"
    result = _run_gh(["api", endpoint])
    data = _load_json(result.stdout, {})
    if not isinstance(data, dict) or data.get("type") != "file":
        return None
    content = data.get("content")
    if not isinstance(content, str) or not content:
        return None
    try:
        return base64.b64decode(content).decode("utf-8")
    except (ValueError, UnicodeDecodeError):
        return None


def list_commit_messages(repo: str, pr_number: int) -> list[str]:
    result = _run_gh(["api", f"repos/{repo}/pulls/{pr_number}/commits?per_page=100"])
    data = _load_json(result.stdout, [])
    messages: list[str] = []
    if isinstance(data, list):
        for item in data:
            commit = item.get("commit") if isinstance(item, dict) else None
            if isinstance(commit, dict) and isinstance(commit.get("message"), str):
                messages.append(commit["message"])
    return messages


def list_pr_reviews(
    repo: str,
    pr_number: int,
    *,
    per_page: int = 100,
    max_pages: int = 20,
) -> list[dict]:
    """Fetch all reviews on a PR (paginated)."""
    reviews: list[dict] = []
    for page in range(1, max_pages + 1):
        endpoint = f"repos/{repo}/pulls/{pr_number}/reviews?per_page={per_page}&page={page}"
        result = _run_gh(["api", endpoint])
        payload = _load_json(result.stdout, [])
        if not isinstance(payload, list) or not payload:
            break
        reviews.extend(r for r in payload if isinstance(r, dict))
        if len(payload) < per_page:
            break
    return reviews


def create_pr_review(
    *,
    repo: str,
    pr_number: int,
    commit_id: str,
    body: str,
    event: str,
    comments: list[InlineComment] | None = None,
) -> dict:
    payload: dict[str, object] = {
        "event": event,
        "commit_id": commit_id,
        "body": body,
    }
    if comments:
        payload["comments"] = [
            {
                "path": c.path,
                "line": c.line,
                "side": _SIDES.get(c.side, "RIGHT"),
                "body": c.body,
            }
            for c in comments
        ]

    with tempfile.NamedTemporaryFile("w", encoding="utf-8", suffix=".json", delete=False) as handle:
        json.dump(payload, handle)
        tmp_path = handle.name

    try:
        result = _run_gh(
            [
                "api",
                "-X",
                "POST",
                f"repos/{repo}/pulls/{pr_number}/reviews",
                "--input",
                tmp_path,
            ]
        )
    finally:
        os.unlink(tmp_path)
    data = _load_json(result.stdout, {})
    return data if isinstance(data, dict) else {}


def dismiss_pr_review(repo: str, pr_number: int, review_id: int, message: str) -> None:
    _run_gh(
        [
            "api",
            "-X",
            "PUT",
            f"repos/{repo}/pulls/{pr_number}/reviews/{review_id}/dismissals",
            "-f",
            f"message={message}",
            "-f",
            "event=DISMISS",
        ]
    )


class PullRequestService(Protocol):
    """What the review pipeline needs from the hosting platform."""

    def get_pull_request(self, pr_number: int) -> PullRequestInfo:
        ...

    def get_diff(self, pr_number: int) -> str:
        ...

    def get_file_content(self, path: str, ref: str) -> str | None:
        ...

    def list_commit_messages(self, pr_number: int) -> list[str]:
        ...

    def list_reviews(self, pr_number: int) -> list[dict]:
        ...

    def create_review(
        self,
        pr_number: int,
        *,
        commit_id: str,
        body: str,
        event: str,
        comments: list[InlineComment],
    ) -> dict:
        ...

    def dismiss_review(self, pr_number: int, review_id: int, message: str) -> None:
        ...


@dataclass(frozen=True)
class GhPullRequestService:
    """PullRequestService backed by the gh CLI for one repository."""

    repo: str

    def get_pull_request(self, pr_number: int) -> PullRequestInfo:
        return fetch_pull_request(self.repo, pr_number)

    def get_diff(self, pr_number: int) -> str:
        return fetch_pr_diff(self.repo, pr_number)

    def get_file_content(self, path: str, ref: str) -> str | None:
        return fetch_file_content(self.repo, path, ref)

    def list_commit_messages(self, pr_number: int) -> list[str]:
        return list_commit_messages(self.repo, pr_number)

    def list_reviews(self, pr_number: int) -> list[dict]:
        return list_pr_reviews(self.repo, pr_number)

    def create_review(
        self,
        pr_number: int,
        *,
        commit_id: str,
        body: str,
        event: str,
        comments: list[InlineComment],
    ) -> dict:
        return create_pr_review(
            repo=self.repo,
            pr_number=pr_number,
            commit_id=commit_id,
            body=body,
            event=event,
            comments=comments,
        )

    def dismiss_review(self, pr_number: int, review_id: int, message: str) -> None:
        dismiss_pr_review(self.repo, pr_number, review_id, message)
