"""Submit a validated verdict as a single PR review.

Order of operations:
  1. skip if this head commit already carries one of our reviews
  2. dismiss our earlier approving / changes-requested reviews
  3. map the verdict approval to a review event
  4. keep only inline comments that land on added lines
  5. upgrade a clean comment-only approval to APPROVE
  6. submit; on a 422 line-association error, resubmit body-only
"""

from __future__ import annotations

from dataclasses import dataclass

from . import console
from .diff_parser import DiffFile, addition_lines
from .github import GitHubError, InlineComment, PullRequestService
from .markdown import format_comments_as_body, inline_comment_body
from .verdict import APPROVE, REQUEST_CHANGES, ReviewComment, ReviewVerdict

MARKER_PREFIX = "<!-- reviewgate:review"

DEFAULT_BOT_LOGIN = "github-actions[bot]"

CAN_REQUEST_CHANGES = "can-request-changes"
COMMENT_ONLY = "comment-only"
REVIEW_MODES = (CAN_REQUEST_CHANGES, COMMENT_ONLY)

EVENT_APPROVE = "APPROVE"
EVENT_REQUEST_CHANGES = "REQUEST_CHANGES"
EVENT_COMMENT = "COMMENT"

SKIPPED = "skipped"
POSTED = "posted"
POSTED_BODY_ONLY = "posted_body_only"

BINDING_STATES = frozenset({"APPROVED", "CHANGES_REQUESTED"})

DISMISS_MESSAGE = "Superseded by a newer automated review."


@dataclass(frozen=True)
class PostResult:
    outcome: str
    event: str | None = None
    comment_count: int = 0


def review_marker(head_sha: str) -> str:
    return f"{MARKER_PREFIX} sha={head_sha[:12]} -->"


def is_own_review(review: dict, bot_login: str = DEFAULT_BOT_LOGIN) -> bool:
    if not isinstance(review, dict):
        return False
    user = review.get("user")
    login = user.get("login") if isinstance(user, dict) else None
    body = str(review.get("body") or "")
    return login == bot_login and MARKER_PREFIX in body


def has_existing_review(reviews: list[dict], head_sha: str, bot_login: str = DEFAULT_BOT_LOGIN) -> bool:
    return any(
        is_own_review(r, bot_login) and r.get("commit_id") == head_sha
        for r in reviews
    )


def dismiss_stale_reviews(
    service: PullRequestService,
    pr_number: int,
    reviews: list[dict],
    bot_login: str = DEFAULT_BOT_LOGIN,
) -> int:
    """Dismiss our earlier binding reviews. Failures are logged, never raised."""
    dismissed = 0
    for review in reviews:
        if not is_own_review(review, bot_login):
            continue
        if review.get("state") not in BINDING_STATES:
            continue
        review_id = review.get("id")
        if not isinstance(review_id, int):
            continue
        try:
            service.dismiss_review(pr_number, review_id, DISMISS_MESSAGE)
        except GitHubError as exc:
            console.warn(f"Could not dismiss stale review {review_id}: {exc}")
            continue
        dismissed += 1
    return dismissed


def map_approval_to_event(approval: str, review_mode: str = CAN_REQUEST_CHANGES) -> str:
    if approval == APPROVE:
        return EVENT_APPROVE
    if approval == REQUEST_CHANGES and review_mode == CAN_REQUEST_CHANGES:
        return EVENT_REQUEST_CHANGES
    return EVENT_COMMENT


def build_valid_line_map(files: list[DiffFile]) -> dict[str, set[int]]:
    """path -> new-file line numbers that are additions."""
    return {f.path: addition_lines(f) for f in files}


def reconcile_comments(
    comments: tuple[ReviewComment, ...] | list[ReviewComment],
    files: list[DiffFile],
) -> list[InlineComment]:
    valid = build_valid_line_map(files)
    kept: list[InlineComment] = []
    for c in comments:
        if c.line in valid.get(c.path, ()):
            kept.append(InlineComment(path=c.path, line=c.line, body=inline_comment_body(c), side="new"))
    return kept


def post_review(
    service: PullRequestService,
    *,
    pr_number: int,
    head_sha: str,
    verdict: ReviewVerdict,
    files: list[DiffFile],
    body: str,
    review_mode: str = CAN_REQUEST_CHANGES,
    bot_login: str = DEFAULT_BOT_LOGIN,
) -> PostResult:
    reviews = service.list_reviews(pr_number)
    if has_existing_review(reviews, head_sha, bot_login):
        console.notice(f"Commit {head_sha[:7]} already reviewed. Skipping.")
        return PostResult(outcome=SKIPPED)

    dismissed = dismiss_stale_reviews(service, pr_number, reviews, bot_login)
    if dismissed:
        console.info(f"Dismissed {dismissed} stale review(s).")

    event = map_approval_to_event(verdict.approval, review_mode)
    inline = reconcile_comments(verdict.comments, files)
    dropped = len(verdict.comments) - len(inline)
    if dropped:
        console.info(f"Dropped {dropped} comment(s) not anchored to added lines.")

    if not inline and event == EVENT_COMMENT and verdict.approval == APPROVE:
        event = EVENT_APPROVE

    try:
        service.create_review(pr_number, commit_id=head_sha, body=body, event=event, comments=inline)
    except GitHubError as exc:
        if not inline or exc.status != 422:
            raise
        console.warn("Inline comments rejected (422); retrying as body-only review.")
        fallback_body = body + "\n\n---\n\n" + format_comments_as_body(verdict.comments)
        service.create_review(pr_number, commit_id=head_sha, body=fallback_body, event=event, comments=[])
        return PostResult(outcome=POSTED_BODY_ONLY, event=event, comment_count=0)

    return PostResult(outcome=POSTED, event=event, comment_count=len(inline))
