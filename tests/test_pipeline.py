"""End-to-end runs against an in-memory PR service and a scripted reviewer."""
from __future__ import annotations

import pytest
from conftest import FakeService, added_lines_hunk, file_diff

from reviewgate.annotators.test_gaps import AUTH_GAP
from reviewgate.pipeline import (
    COMPLETED,
    effective_diff_budget,
    run_review,
    select_model,
)
from reviewgate.poster import SKIPPED
from reviewgate.reviewer import DEEP_MODEL, FAST_MODEL, ReviewerResponse, TriageResult, Usage
from reviewgate.settings import RunSettings
from reviewgate.verdict import FALLBACK_SUMMARY, VerdictParseError

HANDLER_HUNK = "\n".join(
    [
        "@@ -10,3 +10,9 @@ function handler()",
        " const a = 1;",
        "-const b = 2;",
        "+const b = 3;",
        "+const c = 4;",
        "+const d = 5;",
        "+const e = 6;",
        "+const f = 7;",
        "+const g = 8;",
        "+const h = 9;",
        " return a;",
    ]
)

GOOD_VERDICT = {
    "summary": "Mostly fine.",
    "approval": "comment",
    "comments": [
        {"path": "src/handler.js", "line": 12, "severity": "warning", "body": "Unused constant."},
        {"path": "src/handler.js", "line": 10, "severity": "suggestion", "body": "Context line."},
    ],
    "file_summaries": [{"path": "src/handler.js", "summary": "Adds constants."}],
}


class FakeReviewer:
    triage_model = FAST_MODEL

    def __init__(self, raw: object = None, *, flagged: list[str] | None = None) -> None:
        self.raw = GOOD_VERDICT if raw is None else raw
        self.flagged = flagged
        self.calls: list[dict] = []
        self.triage_calls: list[list[str]] = []

    def review(self, *, system_prompt, user_prompt, model, thinking=False, max_output_tokens=4096):
        self.calls.append(
            {"system_prompt": system_prompt, "user_prompt": user_prompt, "model": model, "thinking": thinking}
        )
        return ReviewerResponse(raw=self.raw, model=model, thinking_enabled=thinking, usage=Usage(10_000, 1_000))

    def triage(self, *, diff, file_list, title):
        self.triage_calls.append(list(file_list))
        flagged = self.flagged if self.flagged is not None else list(file_list)
        return TriageResult(flagged_files=flagged, usage=Usage(2_000, 50))


def settings(**overrides) -> RunSettings:
    base = {"repo": "owner/web", "pr_number": 7, "api_key": "sk-test"}
    base.update(overrides)
    return RunSettings(**base)


def handler_service(**kwargs) -> FakeService:
    return FakeService(diff=file_diff("src/handler.js", [HANDLER_HUNK]), **kwargs)


def test_posts_review_with_reconciled_comments() -> None:
    service = handler_service(title="Tidy handler")
    reviewer = FakeReviewer()

    outcome = run_review(settings(), service, reviewer)

    assert outcome.status == COMPLETED
    assert outcome.event == "COMMENT"
    assert outcome.comment_count == 1
    assert outcome.cost_usd > 0

    (created,) = service.created
    assert [(c.path, c.line) for c in created["comments"]] == [("src/handler.js", 12)]
    assert created["commit_id"] == "abc123def4567890"
    assert created["body"].startswith("<!-- reviewgate:review sha=abc123def456 -->")
    assert "## AI Code Review" in created["body"]
    assert "| `src/handler.js` | Adds constants. |" in created["body"]

    prompt = reviewer.calls[0]["user_prompt"]
    assert "- Repository: web" in prompt
    assert "- Changed files: src/handler.js" in prompt
    assert "### src/handler.js (+7/-1)" in prompt
    assert "[modified]" not in prompt


def test_title_ticket_is_marked_primary_in_review_body() -> None:
    service = handler_service(title="Tidy handler for PS-9", body="Follows up DEV-1.")

    run_review(settings(), service, FakeReviewer())

    body = service.created[0]["body"]
    primary = "- [PS-9](https://weboo.atlassian.net/browse/PS-9) (primary)"
    assert body.index(primary) < body.index("- [DEV-1](https://weboo.atlassian.net/browse/DEV-1)")


def test_second_run_on_same_commit_is_skipped() -> None:
    service = handler_service()

    run_review(settings(), service, FakeReviewer())
    second = run_review(settings(), service, FakeReviewer())

    assert second.status == SKIPPED
    assert second.reason == "already-reviewed"
    assert len(service.created) == 1


@pytest.mark.parametrize("raw", [{"summary": "ok"}, VerdictParseError("invalid JSON"), "nonsense"])
def test_unusable_reviewer_output_posts_fallback(raw) -> None:
    service = handler_service()

    outcome = run_review(settings(), service, FakeReviewer(raw))

    assert outcome.status == COMPLETED
    assert outcome.event == "COMMENT"
    assert FALLBACK_SUMMARY in service.created[0]["body"]
    assert service.created[0]["comments"] == []


def test_skip_without_pr_number() -> None:
    service = handler_service()
    reviewer = FakeReviewer()

    outcome = run_review(settings(pr_number=None), service, reviewer)

    assert (outcome.status, outcome.reason) == (SKIPPED, "no-pr-number")
    assert reviewer.calls == []


def test_skip_when_only_docs_change() -> None:
    service = FakeService(diff=file_diff("README.md", [added_lines_hunk(40)]))
    outcome = run_review(settings(), service, FakeReviewer())
    assert outcome.reason == "no-reviewable-files"
    assert service.created == []


def test_skip_below_change_threshold() -> None:
    service = FakeService(diff=file_diff("src/a.js", [added_lines_hunk(4)]))
    reviewer = FakeReviewer()

    outcome = run_review(settings(), service, reviewer)

    assert outcome.reason == "below-threshold"
    assert reviewer.calls == []


def test_risky_change_gets_deep_review_with_context_and_test_gap() -> None:
    token_hunks = [added_lines_hunk(2, start=1 + i * 50) for i in range(3)]
    diff = "\n".join(
        [
            file_diff("libs/auth/session.js", [added_lines_hunk(60)], status="added"),
            file_diff("libs/auth/token.js", token_hunks),
        ]
    )
    service = FakeService(diff=diff, contents={"libs/auth/token.js": "module.exports = {};"})
    reviewer = FakeReviewer({"summary": "Auth rework.", "approval": "comment", "comments": []})

    outcome = run_review(settings(), service, reviewer)

    call = reviewer.calls[0]
    assert call["model"] == DEEP_MODEL
    assert call["thinking"] is True
    assert service.content_requests == [("libs/auth/session.js", "main"), ("libs/auth/token.js", "main")]
    assert "### libs/auth/token.js (full file)" in call["user_prompt"]
    assert "### libs/auth/session.js (full file)" not in call["user_prompt"]
    assert "## Platform Impact" in call["user_prompt"]
    assert "- Changed files: libs/auth/session.js (added), libs/auth/token.js" in call["user_prompt"]

    assert any(c.body == AUTH_GAP for c in outcome.verdict.comments)
    assert "Platform Impact: CRITICAL" in service.created[0]["body"]
    assert "deep review" in service.created[0]["body"]


def test_large_diff_is_triaged_down_to_flagged_files() -> None:
    long_line = "const value = computeSomething(alpha, beta); //"
    diff = "\n".join(file_diff(f"src/f{i}.js", [added_lines_hunk(40, text=long_line)]) for i in range(6))
    service = FakeService(diff=diff)
    reviewer = FakeReviewer({"summary": "ok", "approval": "approve", "comments": []}, flagged=["src/f1.js"])

    outcome = run_review(settings(max_diff_tokens=200), service, reviewer)

    assert reviewer.triage_calls == [[f"src/f{i}.js" for i in range(6)]]
    assert "- Changed files: src/f1.js\n" in reviewer.calls[0]["user_prompt"]
    assert outcome.event == "APPROVE"
    review_only = (10_000 * 3.0 + 1_000 * 15.0) / 1_000_000
    assert outcome.cost_usd > review_only


def test_triage_flagging_everything_keeps_full_diff() -> None:
    long_line = "const value = computeSomething(alpha, beta); //"
    diff = "\n".join(file_diff(f"src/f{i}.js", [added_lines_hunk(40, text=long_line)]) for i in range(6))
    reviewer = FakeReviewer({"summary": "ok", "approval": "comment", "comments": []})

    run_review(settings(max_diff_tokens=200), FakeService(diff=diff), reviewer)

    assert "src/f5.js" in reviewer.calls[0]["user_prompt"]


def test_select_model() -> None:
    assert select_model(settings(), 10) == (FAST_MODEL, "fast")
    assert select_model(settings(), 40) == (DEEP_MODEL, "deep")
    assert select_model(settings(auto_model_selection=False), 90) == (FAST_MODEL, "fast")
    assert select_model(settings(model=DEEP_MODEL), 0) == (DEEP_MODEL, "deep")
    assert select_model(settings(model="custom-model"), 90) == ("custom-model", "fast")


def test_effective_diff_budget() -> None:
    assert effective_diff_budget(15000, 0) == 15000
    assert effective_diff_budget(15000, 3000) == 12000
    assert effective_diff_budget(15000, 12000) == 7500
