"""Related-issue detection: Jira keys and GitHub `#N` references.

GitHub references are heuristic. Diffs are full of `#333`-style colour codes,
ports, and small constants, so numbers are filtered through IssueHeuristics
before they become links.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

JIRA_PREFIXES = ("DEV", "PS", "SEC", "INFRA", "QA", "OPS")
JIRA_BASE_URL = "https://weboo.atlassian.net/browse"

JIRA = "jira"
GITHUB = "github"

_JIRA_RE = re.compile(rf"\b({'|'.join(JIRA_PREFIXES)})-(\d+)\b", re.IGNORECASE)
_JIRA_AT_START_RE = re.compile(rf"^\s*({'|'.join(JIRA_PREFIXES)})-(\d+)", re.IGNORECASE)
_GITHUB_REF_RE = re.compile(r"(?:^|[^\w/])#(\d+)\b", re.MULTILINE)
_REPEATED_DIGIT_RE = re.compile(r"^(\d)\1+$")


@dataclass(frozen=True)
class IssueRef:
    id: str
    url: str
    type: str


@dataclass(frozen=True)
class IssueHeuristics:
    """Cutoffs for treating `#N` as an issue number."""

    min_number: int = 100
    max_number: int = 99999
    skip_repeated_digits: bool = True
    # 6 digits is the full hex colour form (#333333).
    skip_lengths: tuple[int, ...] = (6,)

    def accepts(self, digits: str) -> bool:
        number = int(digits)
        if number < self.min_number or number > self.max_number:
            return False
        if len(digits) in self.skip_lengths:
            return False
        if self.skip_repeated_digits and _REPEATED_DIGIT_RE.match(digits):
            return False
        return True


def _jira_ref(prefix: str, number: str, base_url: str) -> IssueRef:
    key = f"{prefix.upper()}-{number}"
    return IssueRef(id=key, url=f"{base_url}/{key}", type=JIRA)


def detect_issues(
    title: str | None = "",
    body: str | None = "",
    commit_messages: list[str] | None = None,
    diff_text: str | None = "",
    repo: str = "",
    heuristics: IssueHeuristics | None = None,
    *,
    jira_base_url: str = JIRA_BASE_URL,
) -> list[IssueRef]:
    """Unique references, Jira first, each group sorted by id.

    `repo` is "owner/name"; GitHub references are only linked when it is set.
    """
    heuristics = heuristics or IssueHeuristics()
    text = "\n".join([title or "", body or "", *(commit_messages or []), diff_text or ""])

    found: dict[str, IssueRef] = {}
    for match in _JIRA_RE.finditer(text):
        ref = _jira_ref(match.group(1), match.group(2), jira_base_url)
        found.setdefault(ref.id, ref)

    if repo:
        for match in _GITHUB_REF_RE.finditer(text):
            digits = match.group(1)
            if not heuristics.accepts(digits):
                continue
            key = f"#{digits}"
            found.setdefault(
                key, IssueRef(id=key, url=f"https://github.com/{repo}/issues/{digits}", type=GITHUB)
            )

    return sorted(found.values(), key=lambda ref: (ref.type != JIRA, ref.id))


def extract_primary_ticket(title: str | None) -> str | None:
    """Jira key at the start of the title, else the first one anywhere in it."""
    if not title:
        return None
    match = _JIRA_AT_START_RE.match(title) or _JIRA_RE.search(title)
    if match is None:
        return None
    return f"{match.group(1).upper()}-{match.group(2)}"
