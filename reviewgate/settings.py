"""Run settings resolved from the GitHub Actions environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from .complexity import THINKING_MODES
from .poster import CAN_REQUEST_CHANGES, DEFAULT_BOT_LOGIN, REVIEW_MODES
from .reviewer import DEEP_MODEL, FAST_MODEL

DEFAULT_MAX_DIFF_TOKENS = 15000
DEFAULT_MAX_OUTPUT_TOKENS = 4096


def parse_positive_int(raw: str | None, default: int) -> int:
    if raw is None:
        return default
    try:
        value = int(str(raw).strip())
    except ValueError:
        return default
    return value if value > 0 else default


def parse_optional_int(raw: str | None) -> int | None:
    value = parse_positive_int(raw, 0)
    return value or None


def parse_bool(raw: str | None, default: bool) -> bool:
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _optional_path(raw: str | None) -> Path | None:
    text = (raw or "").strip()
    return Path(text) if text else None


def _choice(raw: str | None, allowed: tuple[str, ...], default: str) -> str:
    text = (raw or "").strip().lower()
    return text if text in allowed else default


def _resolve_repo(env: Mapping[str, str]) -> str:
    repo = (env.get("GITHUB_REPOSITORY") or "").strip()
    if repo:
        return repo
    owner = (env.get("REPO_OWNER") or "").strip()
    name = (env.get("REPO_NAME") or "").strip()
    return f"{owner}/{name}" if owner and name else ""


@dataclass(frozen=True)
class RunSettings:
    repo: str
    pr_number: int | None
    api_key: str = ""
    review_mode: str = CAN_REQUEST_CHANGES
    max_diff_tokens: int = DEFAULT_MAX_DIFF_TOKENS
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS
    auto_model_selection: bool = True
    model: str = ""
    fast_model: str = FAST_MODEL
    deep_model: str = DEEP_MODEL
    thinking_mode: str = "auto"
    bot_login: str = DEFAULT_BOT_LOGIN
    pr_title: str = ""
    pr_body: str = ""
    pr_base: str = ""
    taxonomy_path: Path | None = None
    severity_rules_path: Path | None = None
    standards_path: Path | None = None

    @property
    def repo_name(self) -> str:
        return self.repo.split("/", 1)[-1]

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "RunSettings":
        env = os.environ if env is None else env
        return cls(
            repo=_resolve_repo(env),
            pr_number=parse_optional_int(env.get("PR_NUMBER")),
            api_key=(env.get("ANTHROPIC_API_KEY") or "").strip(),
            review_mode=_choice(env.get("REVIEW_MODE"), REVIEW_MODES, CAN_REQUEST_CHANGES),
            max_diff_tokens=parse_positive_int(env.get("MAX_DIFF_TOKENS"), DEFAULT_MAX_DIFF_TOKENS),
            max_output_tokens=parse_positive_int(env.get("MAX_OUTPUT_TOKENS"), DEFAULT_MAX_OUTPUT_TOKENS),
            auto_model_selection=parse_bool(env.get("AUTO_MODEL_SELECTION"), True),
            model=(env.get("REVIEW_MODEL") or "").strip(),
            fast_model=(env.get("REVIEWGATE_FAST_MODEL") or "").strip() or FAST_MODEL,
            deep_model=(env.get("REVIEWGATE_DEEP_MODEL") or "").strip() or DEEP_MODEL,
            thinking_mode=_choice(env.get("ENABLE_THINKING"), THINKING_MODES, "auto"),
            bot_login=(env.get("REVIEWGATE_BOT_LOGIN") or "").strip() or DEFAULT_BOT_LOGIN,
            pr_title=env.get("PR_TITLE") or "",
            pr_body=env.get("PR_BODY") or "",
            pr_base=(env.get("PR_BASE") or "").strip(),
            taxonomy_path=_optional_path(env.get("REVIEWGATE_TAXONOMY")),
            severity_rules_path=_optional_path(env.get("REVIEWGATE_SEVERITY_RULES")),
            standards_path=_optional_path(env.get("REVIEWGATE_STANDARDS")),
        )
