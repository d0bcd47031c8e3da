"""Command-line entry point.

Arguments default to the GitHub Actions environment. The process always exits
0: a failed review is reported as a warning annotation, or an error
annotation when the token lacks permission, and never fails the host workflow.
"""

from __future__ import annotations

import argparse
import os
from dataclasses import replace
from pathlib import Path

from . import console
from .complexity import THINKING_MODES
from .github import GhPullRequestService, GitHubPermissionError
from .pipeline import run_review
from .poster import REVIEW_MODES
from .reviewer import AnthropicReviewer
from .settings import RunSettings


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Review a pull request and post the result as a PR review.")
    p.add_argument("--repo", default=None, help="owner/repo (default: env GITHUB_REPOSITORY)")
    p.add_argument("--pr", type=int, default=None, help="PR number (default: env PR_NUMBER)")
    p.add_argument("--review-mode", choices=REVIEW_MODES, default=None, help="default: env REVIEW_MODE")
    p.add_argument("--max-diff-tokens", type=int, default=None)
    p.add_argument("--max-output-tokens", type=int, default=None)
    p.add_argument("--model", default=None, help="Explicit model; disables automatic selection.")
    p.add_argument("--thinking", choices=THINKING_MODES, default=None, help="default: env ENABLE_THINKING")
    p.add_argument("--taxonomy", type=Path, default=None, help="Risk taxonomy YAML")
    p.add_argument("--severity-rules", type=Path, default=None, help="Severity rules YAML")
    p.add_argument("--standards", type=Path, default=None, help="Coding standards markdown")
    return p


def resolve_settings(args: argparse.Namespace, env: dict[str, str] | None = None) -> RunSettings:
    settings = RunSettings.from_env(env)
    overrides = {
        "repo": args.repo,
        "pr_number": args.pr,
        "review_mode": args.review_mode,
        "max_diff_tokens": args.max_diff_tokens if args.max_diff_tokens and args.max_diff_tokens > 0 else None,
        "max_output_tokens": (
            args.max_output_tokens if args.max_output_tokens and args.max_output_tokens > 0 else None
        ),
        "model": args.model,
        "thinking_mode": args.thinking,
        "taxonomy_path": args.taxonomy,
        "severity_rules_path": args.severity_rules,
        "standards_path": args.standards,
    }
    return replace(settings, **{k: v for k, v in overrides.items() if v is not None})


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = resolve_settings(args, dict(os.environ))
        if not settings.repo:
            console.warn("Missing repository (set --repo or GITHUB_REPOSITORY). Skipping review.")
            return 0
        reviewer = AnthropicReviewer(settings.api_key, triage_model=settings.fast_model)
        outcome = run_review(settings, GhPullRequestService(settings.repo), reviewer)
        console.info(f"Review run finished: {outcome.status} {outcome.reason}".rstrip())
    except GitHubPermissionError as exc:
        console.error(f"AI review could not post (check pull-requests: write permission): {exc}")
    except Exception as exc:  # never fail the host workflow
        console.warn(f"AI review failed: {exc}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
