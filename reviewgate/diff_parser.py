"""Unified diff parsing for PR review.

Turns the raw `git diff` text GitHub returns for a pull request into
files -> hunks -> changes, keeping the old/new line numbers needed to anchor
inline review comments.

Files whose new side is /dev/null (pure deletions) are never emitted: there is
nothing at the new path to comment on.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

ADDITION = "addition"
DELETION = "deletion"
CONTEXT = "context"

MODIFIED = "modified"
ADDED = "added"
DELETED = "deleted"
RENAMED = "renamed"

_HUNK_RE = re.compile(
    r"^@@ -(?P<old_start>\d+)(?:,(?P<old_count>\d+))? \+(?P<new_start>\d+)(?:,(?P<new_count>\d+))? @@(?P<context>.*)"
)

# Parser states.
NO_FILE = "no_file"
IN_FILE = "in_file"
IN_HUNK = "in_hunk"


@dataclass(frozen=True)
class Change:
    """One line of a hunk.

    Additions carry the new-file line number in `line`, deletions the old-file
    line number. Context lines carry both `old_line` and `new_line`.
    """

    kind: str
    content: str
    line: int | None = None
    old_line: int | None = None
    new_line: int | None = None


@dataclass(frozen=True)
class Hunk:
    header: str
    context: str
    changes: tuple[Change, ...] = ()


@dataclass(frozen=True)
class DiffFile:
    path: str
    status: str
    hunks: tuple[Hunk, ...] = ()
    additions: int = 0
    deletions: int = 0
    truncated: bool = False


@dataclass
class _PendingHunk:
    header: str
    context: str
    changes: list[Change] = field(default_factory=list)

    def freeze(self) -> Hunk:
        return Hunk(header=self.header, context=self.context, changes=tuple(self.changes))


@dataclass
class _DiffAccumulator:
    """Scan state for one parse_diff call.

    Counters are seeded from each hunk header and advance independently:
    additions move the new counter, deletions the old one, context both.
    """

    files: list[DiffFile] = field(default_factory=list)
    state: str = NO_FILE
    pending_status: str = MODIFIED
    path: str = ""
    status: str = MODIFIED
    hunks: list[_PendingHunk] = field(default_factory=list)
    old_line: int = 0
    new_line: int = 0
    old_remaining: int = 0
    new_remaining: int = 0

    def close_file(self) -> None:
        if self.state == NO_FILE:
            return
        hunks = tuple(h.freeze() for h in self.hunks)
        additions = sum(1 for h in hunks for c in h.changes if c.kind == ADDITION)
        deletions = sum(1 for h in hunks for c in h.changes if c.kind == DELETION)
        self.files.append(
            DiffFile(
                path=self.path,
                status=self.status,
                hunks=hunks,
                additions=additions,
                deletions=deletions,
            )
        )
        self.state = NO_FILE
        self.path = ""
        self.hunks = []

    def reset(self) -> None:
        self.close_file()
        self.pending_status = MODIFIED

    def open_file(self, path: str) -> None:
        self.close_file()
        self.path = path
        self.status = self.pending_status
        self.state = IN_FILE

    def open_hunk(self, match: re.Match[str], header: str) -> None:
        self.old_line = int(match.group("old_start"))
        self.new_line = int(match.group("new_start"))
        self.old_remaining = int(match.group("old_count") or 1)
        self.new_remaining = int(match.group("new_count") or 1)
        self.hunks.append(_PendingHunk(header=header, context=(match.group("context") or "").strip()))
        self.state = IN_HUNK

    def add_change(self, raw: str) -> None:
        hunk = self.hunks[-1]
        if raw.startswith("+"):
            hunk.changes.append(Change(kind=ADDITION, content=raw[1:], line=self.new_line))
            self.new_line += 1
            self.new_remaining -= 1
        elif raw.startswith("-"):
            hunk.changes.append(Change(kind=DELETION, content=raw[1:], line=self.old_line))
            self.old_line += 1
            self.old_remaining -= 1
        elif raw.startswith(" "):
            hunk.changes.append(
                Change(
                    kind=CONTEXT,
                    content=raw[1:],
                    old_line=self.old_line,
                    new_line=self.new_line,
                )
            )
            self.old_line += 1
            self.new_line += 1
            self.old_remaining -= 1
            self.new_remaining -= 1
        # "\ No newline at end of file" and blank separators fall through.

    def feed(self, raw: str) -> None:
        # A removed "-- comment" line reads "--- comment"; while the hunk header
        # still promises lines, +/- lines are content, not file headers.
        if (
            self.state == IN_HUNK
            and raw[:1] in ("+", "-")
            and (self.old_remaining > 0 or self.new_remaining > 0)
        ):
            self.add_change(raw)
            return

        if raw.startswith("diff --git"):
            self.reset()
            return
        if raw.startswith("new file mode"):
            self.pending_status = ADDED
            return
        if raw.startswith("deleted file mode"):
            self.pending_status = DELETED
            return
        if raw.startswith("rename from "):
            self.pending_status = RENAMED
            return
        if raw.startswith("rename to "):
            return
        # File headers end whatever file came before, even without "diff --git".
        if raw.startswith("--- /dev/null"):
            self.close_file()
            self.pending_status = ADDED
            return
        if raw.startswith("--- "):
            self.close_file()
            if self.pending_status != RENAMED:
                self.pending_status = MODIFIED
            return
        if raw.startswith("+++ /dev/null"):
            self.close_file()
            self.pending_status = DELETED
            return
        if raw.startswith("+++ b/"):
            self.open_file(raw[6:])
            return

        match = _HUNK_RE.match(raw)
        if match:
            # Orphan hunks (no materialized file) are dropped.
            if self.state != NO_FILE:
                self.open_hunk(match, raw)
            return

        if self.state == IN_HUNK:
            self.add_change(raw)


def parse_diff(diff_text: str | None) -> list[DiffFile]:
    """Parse a unified diff into DiffFile records, in diff order."""
    acc = _DiffAccumulator()
    for raw in (diff_text or "").split("\n"):
        acc.feed(raw.rstrip("\r"))
    acc.close_file()
    return acc.files


def total_changes(files: list[DiffFile]) -> int:
    return sum(f.additions + f.deletions for f in files)


def addition_lines(file: DiffFile) -> set[int]:
    """New-file line numbers of every addition in the file."""
    return {
        c.line
        for h in file.hunks
        for c in h.changes
        if c.kind == ADDITION and c.line is not None
    }


def first_addition_line(file: DiffFile) -> int:
    """First added line number, or 1 when the file has no additions."""
    for hunk in file.hunks:
        for change in hunk.changes:
            if change.kind == ADDITION and change.line is not None:
                return change.line
    return 1
