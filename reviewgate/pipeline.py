"""End-to-end review of one pull request.

fetch -> parse -> filter -> impact -> complexity -> context -> budget ->
(triage) -> review -> validate -> annotate -> render -> post
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from . import console
from .annotators.issues import detect_issues, extract_primary_ticket
from .annotators.labels import has_test_files, suggest_labels
from .annotators.test_gaps import suggest_test_gaps
from .annotators.tips import generate_tips
from .complexity import DEEP_TIER, FAST_TIER, recommend_tier, score_complexity, should_enable_thinking
from .defaults_config import (
    DEFAULT_SEVERITY_RULES_PATH,
    DEFAULT_STANDARDS_PATH,
    DEFAULT_TAXONOMY_PATH,
    ConfigError,
    RiskTaxonomy,
    SeverityRules,
    load_risk_taxonomy,
    load_severity_rules,
    load_standards,
)
from .diff_parser import MODIFIED, DiffFile, parse_diff, total_changes
from .file_classifier import is_reviewable, is_security_sensitive
from .github import GitHubError, PullRequestService
from .impact import assess_impact
from .markdown import render_review_body
from .poster import SKIPPED, post_review, review_marker
from .reviewer import ReviewerResponse, TriageResult, Usage, build_system_prompt, build_user_prompt, estimate_cost
from .settings import RunSettings
from .token_budget import BudgetResult, allocate, estimate_tokens, format_diff_for_prompt, format_file_for_prompt
from .verdict import ReviewVerdict, VerdictParseError, fallback_verdict, parse_verdict

MIN_CHANGES_THRESHOLD = 5

TRIAGE_TOKEN_MULTIPLIER = 1.5
TRIAGE_MIN_FILES = 5

FULL_CONTEXT_SCORE_THRESHOLD = 30
FULL_CONTEXT_MAX_FILES = 5
FULL_CONTEXT_MAX_LINES = 500
FULL_CONTEXT_MIN_HUNKS = 3
FULL_CONTEXT_MIN_CHANGES = 50

DEFAULT_BASE_BRANCH = "main"

COMPLETED = "completed"


class Reviewer(Protocol):
    triage_model: str

    def review(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        model: str,
        thinking: bool = False,
        max_output_tokens: int = 4096,
    ) -> ReviewerResponse:
        ...

    def triage(self, *, diff: str, file_list: list[str], title: str) -> TriageResult:
        ...


@dataclass(frozen=True)
class RunOutcome:
    status: str
    reason: str = ""
    event: str | None = None
    comment_count: int = 0
    cost_usd: float = 0.0
    verdict: ReviewVerdict | None = None


def _load_taxonomy(settings: RunSettings) -> RiskTaxonomy:
    path = settings.taxonomy_path or DEFAULT_TAXONOMY_PATH
    try:
        return load_risk_taxonomy(path)
    except ConfigError as exc:
        console.warn(f"Risk taxonomy unavailable, using path flags only: {exc}")
        return RiskTaxonomy()


def _load_severity_rules(settings: RunSettings) -> SeverityRules | None:
    path = settings.severity_rules_path or DEFAULT_SEVERITY_RULES_PATH
    try:
        return load_severity_rules(path)
    except ConfigError as exc:
        console.warn(f"Severity rules unavailable: {exc}")
        return None


def _load_standards(settings: RunSettings) -> str:
    path = settings.standards_path or DEFAULT_STANDARDS_PATH
    try:
        return load_standards(path)
    except ConfigError as exc:
        console.warn(f"Coding standards unavailable: {exc}")
        return ""


def file_label(file: DiffFile) -> str:
    return file.path if file.status == MODIFIED else f"{file.path} ({file.status})"


def full_context_candidates(files: list[DiffFile]) -> list[DiffFile]:
    candidates = [
        f
        for f in files
        if is_security_sensitive(f.path)
        or len(f.hunks) >= FULL_CONTEXT_MIN_HUNKS
        or f.additions + f.deletions >= FULL_CONTEXT_MIN_CHANGES
    ]
    return candidates[:FULL_CONTEXT_MAX_FILES]


def fetch_full_file_context(service: PullRequestService, ref: str, files: list[DiffFile]) -> str:
    """Base-branch source of key files; files that cannot be fetched are skipped."""
    sections: list[str] = []
    for file in full_context_candidates(files):
        try:
            content = service.get_file_content(file.path, ref)
        except GitHubError as exc:
            # New files do not exist on the base branch.
            console.info(f"Could not fetch full content for {file.path}: {exc}")
            continue
        if content is None:
            continue
        lines = content.split("\n")
        shown = "\n".join(lines[:FULL_CONTEXT_MAX_LINES])
        note = ""
        if len(lines) > FULL_CONTEXT_MAX_LINES:
            note = f"\n[... truncated at {FULL_CONTEXT_MAX_LINES}/{len(lines)} lines]"
        sections.append(f"### {file.path} (full file)\n```\n{shown}{note}\n```\n")
    return "\n".join(sections)


def effective_diff_budget(max_diff_tokens: int, context_tokens: int) -> int:
    """Diff budget shrinks by the context size but never below half."""
    if context_tokens <= 0:
        return max_diff_tokens
    return max(max_diff_tokens - context_tokens, max_diff_tokens // 2)


def should_triage(files: list[DiffFile], budget: int) -> bool:
    full_tokens = sum(estimate_tokens(format_file_for_prompt(f)) for f in files)
    return full_tokens > budget * TRIAGE_TOKEN_MULTIPLIER and len(files) > TRIAGE_MIN_FILES


def select_model(settings: RunSettings, score: int) -> tuple[str, str]:
    """(model, tier). An explicit model wins over automatic selection."""
    if settings.model:
        tier = DEEP_TIER if settings.model == settings.deep_model else FAST_TIER
        console.info(f"Model (explicit override): {settings.model}")
        return settings.model, tier
    if settings.auto_model_selection:
        tier = recommend_tier(score)
        model = settings.deep_model if tier == DEEP_TIER else settings.fast_model
        console.info(f"Model (auto-selected, {tier} tier): {model}")
        return model, tier
    console.info(f"Model (default): {settings.fast_model}")
    return settings.fast_model, FAST_TIER


def resolve_verdict(response: ReviewerResponse) -> ReviewVerdict:
    parsed = response.raw
    if not isinstance(parsed, VerdictParseError):
        parsed = parse_verdict(parsed)
    if isinstance(parsed, VerdictParseError):
        console.warn(f"Reviewer output rejected ({parsed.reason}); posting fallback verdict.")
        return fallback_verdict()
    return parsed


def _commit_messages(service: PullRequestService, pr_number: int) -> list[str]:
    try:
        return service.list_commit_messages(pr_number)
    except GitHubError as exc:
        console.warn(f"Could not list commits for issue detection: {exc}")
        return []


def run_review(settings: RunSettings, service: PullRequestService, reviewer: Reviewer) -> RunOutcome:
    pr_number = settings.pr_number
    if not pr_number:
        console.info("No PR number provided. Skipping review.")
        return RunOutcome(status=SKIPPED, reason="no-pr-number")

    console.info(f"Reviewing PR #{pr_number} on {settings.repo}")

    pr = service.get_pull_request(pr_number)
    title = settings.pr_title or pr.title
    body = settings.pr_body or pr.body
    base = settings.pr_base or pr.base_ref or DEFAULT_BASE_BRANCH
    head_sha = pr.head_sha

    diff_text = service.get_diff(pr_number)
    files = [f for f in parse_diff(diff_text) if is_reviewable(f.path)]
    if not files:
        console.info("No reviewable code files in this PR. Skipping.")
        return RunOutcome(status=SKIPPED, reason="no-reviewable-files")

    changes = total_changes(files)
    if changes < MIN_CHANGES_THRESHOLD:
        console.info(f"Only {changes} line(s) changed. Below threshold of {MIN_CHANGES_THRESHOLD}. Skipping.")
        return RunOutcome(status=SKIPPED, reason="below-threshold")

    console.info(f"Found {len(files)} reviewable file(s) with {changes} total changes")

    impact = assess_impact(files, settings.repo_name, _load_taxonomy(settings))
    console.info(f"Platform impact: {impact.level}")

    score = score_complexity(files, title, body, impact)
    console.info(f"Complexity score: {score}/100")
    model, tier = select_model(settings, score)
    thinking = should_enable_thinking(settings.thinking_mode, tier, score)

    context = ""
    if score >= FULL_CONTEXT_SCORE_THRESHOLD:
        context = fetch_full_file_context(service, base, files)
    context_tokens = estimate_tokens(context)
    if context_tokens:
        console.info(f"Full file context: {context_tokens} estimated tokens")

    budget = effective_diff_budget(settings.max_diff_tokens, context_tokens)
    budget_result: BudgetResult = allocate(files, budget)
    if budget_result.truncated:
        console.info(
            f"Diff truncated: reviewing {budget_result.included_files}/{budget_result.total_files} "
            f"files (~{budget_result.estimated_tokens} tokens)"
        )
    diff_for_review = format_diff_for_prompt(budget_result)
    labels_for_review = [file_label(f) for f in files]

    triage_usage: Usage | None = None
    if should_triage(files, budget):
        console.info(f"Large diff detected ({len(files)} files). Running triage pass...")
        triage = reviewer.triage(diff=diff_for_review, file_list=[f.path for f in files], title=title)
        triage_usage = triage.usage
        console.info(f"Triage flagged {len(triage.flagged_files)}/{len(files)} files for deep review")
        flagged = set(triage.flagged_files)
        flagged_files = [f for f in files if f.path in flagged]
        if flagged_files and len(flagged_files) < len(files):
            diff_for_review = format_diff_for_prompt(allocate(flagged_files, budget))
            labels_for_review = [file_label(f) for f in flagged_files]

    response = reviewer.review(
        system_prompt=build_system_prompt(_load_severity_rules(settings)),
        user_prompt=build_user_prompt(
            standards=_load_standards(settings),
            diff=diff_for_review,
            title=title,
            body=body,
            base=base,
            repo=settings.repo_name,
            file_list=labels_for_review,
            impact_summary=impact.summary,
            full_file_context=context,
        ),
        model=model,
        thinking=thinking,
        max_output_tokens=settings.max_output_tokens,
    )
    verdict = resolve_verdict(response)
    console.info(f"Reviewer response: {verdict.approval} ({len(verdict.comments)} comments)")
    console.info(
        f"Token usage: {response.usage.input_tokens} input, {response.usage.output_tokens} output"
        + (" (extended thinking)" if response.thinking_enabled else "")
    )

    gaps = suggest_test_gaps(files, impact, verdict.comments)
    if gaps:
        verdict = verdict.with_comments(gaps)
        console.info(f"Added {len(gaps)} test suggestion(s)")

    paths = [f.path for f in files]
    review_body = render_review_body(
        verdict,
        marker=review_marker(head_sha),
        impact=impact,
        complexity=score,
        tier=tier,
        tips=generate_tips(diff_for_review),
        labels=suggest_labels(impact, paths, title, body, has_test_files(paths)),
        issues=detect_issues(title, body, _commit_messages(service, pr_number), diff_text, settings.repo),
        primary_ticket=extract_primary_ticket(title),
    )

    result = post_review(
        service,
        pr_number=pr_number,
        head_sha=head_sha,
        verdict=verdict,
        files=files,
        body=review_body,
        review_mode=settings.review_mode,
        bot_login=settings.bot_login,
    )
    if result.outcome == SKIPPED:
        return RunOutcome(status=SKIPPED, reason="already-reviewed", verdict=verdict)

    console.notice(f"Review posted: {result.event} with {result.comment_count} inline comment(s)")

    cost = estimate_cost(response.usage, response.model)
    breakdown = f"Review ({response.model}): ${cost:.4f}"
    if triage_usage is not None:
        triage_cost = estimate_cost(triage_usage, reviewer.triage_model)
        cost += triage_cost
        breakdown += f" | Triage ({reviewer.triage_model}): ${triage_cost:.4f}"
    console.info(f"Estimated cost: ${cost:.4f} ({breakdown})")

    return RunOutcome(
        status=COMPLETED,
        reason=result.outcome,
        event=result.event,
        comment_count=result.comment_count,
        cost_usd=cost,
        verdict=verdict,
    )
