"""Token budgeting for the diff sent to the reviewing service.

Files are ranked security > core > change volume and packed greedily into the
budget. A file that does not fit may be included partially (leading hunks
only); either way the scan continues so one huge file cannot starve the rest
of the diff.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace

from .diff_parser import ADDITION, DELETION, MODIFIED, DiffFile, Hunk
from .file_classifier import is_core_file, is_security_sensitive

# Bonuses dwarf any realistic per-file change volume, so the ordering is
# effectively lexicographic: security, then core, then volume.
SECURITY_BONUS = 1_000_000
CORE_BONUS = 100_000

# Below this many remaining tokens a partial file is not worth including.
MIN_PARTIAL_TOKENS = 200


@dataclass(frozen=True)
class BudgetResult:
    files: list[DiffFile]
    total_files: int
    included_files: int
    truncated: bool
    estimated_tokens: int


def estimate_tokens(text: str | None) -> int:
    """Cheap proxy: roughly four characters per token for code."""
    if not text:
        return 0
    return math.ceil(len(text) / 4)


def _status_label(file: DiffFile) -> str:
    if file.status and file.status != MODIFIED:
        return f" [{file.status}]"
    return ""


def format_file_header(file: DiffFile) -> str:
    tag = " [truncated]" if file.truncated else ""
    return f"### {file.path}{_status_label(file)} (+{file.additions}/-{file.deletions}){tag}\n"


def format_hunk(hunk: Hunk) -> str:
    lines = [hunk.header]
    for change in hunk.changes:
        if change.kind == ADDITION:
            lines.append("+" + change.content)
        elif change.kind == DELETION:
            lines.append("-" + change.content)
        else:
            lines.append(" " + change.content)
    return "\n".join(lines) + "\n\n"


def format_file_for_prompt(file: DiffFile) -> str:
    return format_file_header(file) + "".join(format_hunk(h) for h in file.hunks)


def file_priority(file: DiffFile) -> int:
    priority = file.additions + file.deletions
    if is_security_sensitive(file.path):
        priority += SECURITY_BONUS
    if is_core_file(file.path):
        priority += CORE_BONUS
    return priority


def truncate_file(file: DiffFile, max_tokens: int) -> DiffFile | None:
    """Keep the leading hunks that fit in max_tokens.

    Stops at the first hunk that would overflow. Returns None when not even
    one hunk fits. The original file is left untouched.
    """
    derived = replace(file, hunks=(), truncated=True)
    remaining = max_tokens - estimate_tokens(format_file_header(derived))
    if remaining <= 0:
        return None

    kept: list[Hunk] = []
    for hunk in file.hunks:
        cost = estimate_tokens(format_hunk(hunk))
        if cost > remaining:
            break
        kept.append(hunk)
        remaining -= cost

    if not kept:
        return None
    return replace(derived, hunks=tuple(kept))


def allocate(files: list[DiffFile], token_budget: int) -> BudgetResult:
    """Select (and possibly truncate) files to fit token_budget."""
    ranked = sorted(files, key=file_priority, reverse=True)

    included: list[DiffFile] = []
    used = 0
    for file in ranked:
        cost = estimate_tokens(format_file_for_prompt(file))
        if used + cost <= token_budget:
            included.append(file)
            used += cost
            continue

        remaining = token_budget - used
        if remaining > MIN_PARTIAL_TOKENS:
            partial = truncate_file(file, remaining)
            if partial is not None:
                partial_cost = estimate_tokens(format_file_for_prompt(partial))
                if partial_cost <= remaining:
                    included.append(partial)
                    used += partial_cost
        # Keep scanning: smaller files further down may still fit.

    return BudgetResult(
        files=included,
        total_files=len(files),
        included_files=len(included),
        truncated=len(included) < len(files),
        estimated_tokens=used,
    )


def format_diff_for_prompt(result: BudgetResult) -> str:
    output = "".join(format_file_for_prompt(f) for f in result.files)
    if result.truncated:
        omitted = result.total_files - result.included_files
        output += f"\n[Note: {omitted} file(s) omitted due to size constraints]\n"
    return output
