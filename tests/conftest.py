"""Shared helpers: import path setup, diff builders, and a fake PR service."""
import importlib.util
import sys
from pathlib import Path

ROOT = Path(__file__).parent.parent
SCRIPTS_DIR = ROOT / "scripts"

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from reviewgate.github import GitHubError, InlineComment, PullRequestInfo  # noqa: E402


def _import_script(name: str, filename: str):
    """Import a script file as a module using importlib."""
    spec = importlib.util.spec_from_file_location(name, SCRIPTS_DIR / filename)
    mod = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(mod)
    return mod


review_pr = _import_script("review_pr", "review-pr.py")


def file_diff(path: str, hunks: list[str], *, status: str = "modified") -> str:
    """Unified diff text for one file. Each hunk is '@@ header @@' plus body lines."""
    old = "/dev/null" if status == "added" else f"a/{path}"
    new = "/dev/null" if status == "deleted" else f"b/{path}"
    lines = [f"diff --git a/{path} b/{path}"]
    if status == "added":
        lines.append("new file mode 100644")
    if status == "deleted":
        lines.append("deleted file mode 100644")
    lines.append("index 1111111..2222222 100644")
    lines.append(f"--- {old}")
    lines.append(f"+++ {new}")
    lines.extend(hunks)
    return "\n".join(lines)


def added_lines_hunk(count: int, *, start: int = 1, text: str = "line") -> str:
    body = [f"+{text} {i}" for i in range(count)]
    return "\n".join([f"@@ -0,0 +{start},{count} @@", *body])


class FakeService:
    """In-memory PullRequestService recording every write."""

    def __init__(
        self,
        *,
        diff: str = "",
        title: str = "Update handler",
        body: str = "",
        base_ref: str = "main",
        head_sha: str = "abc123def4567890",
        reviews: list[dict] | None = None,
        contents: dict[str, str] | None = None,
        commits: list[str] | None = None,
        create_errors: list[Exception] | None = None,
        dismiss_error: Exception | None = None,
    ) -> None:
        self.diff = diff
        self.pr = PullRequestInfo(number=7, title=title, body=body, base_ref=base_ref, head_sha=head_sha)
        self.reviews = list(reviews or [])
        self.contents = dict(contents or {})
        self.commits = list(commits or [])
        self.create_errors = list(create_errors or [])
        self.dismiss_error = dismiss_error
        self.created: list[dict] = []
        self.dismissed: list[int] = []
        self.content_requests: list[tuple[str, str]] = []

    def get_pull_request(self, pr_number: int) -> PullRequestInfo:
        return self.pr

    def get_diff(self, pr_number: int) -> str:
        return self.diff

    def get_file_content(self, path: str, ref: str) -> str | None:
        self.content_requests.append((path, ref))
        if path not in self.contents:
            raise GitHubError(f"gh api contents/{path} failed: Not Found (HTTP 404)", status=404)
        return self.contents[path]

    def list_commit_messages(self, pr_number: int) -> list[str]:
        return list(self.commits)

    def list_reviews(self, pr_number: int) -> list[dict]:
        return list(self.reviews)

    def create_review(
        self,
        pr_number: int,
        *,
        commit_id: str,
        body: str,
        event: str,
        comments: list[InlineComment],
    ) -> dict:
        if self.create_errors:
            raise self.create_errors.pop(0)
        review = {
            "id": 1000 + len(self.created),
            "user": {"login": "github-actions[bot]"},
            "commit_id": commit_id,
            "body": body,
            "state": {"APPROVE": "APPROVED", "REQUEST_CHANGES": "CHANGES_REQUESTED"}.get(event, "COMMENTED"),
        }
        self.created.append({"event": event, "body": body, "comments": list(comments), "commit_id": commit_id})
        self.reviews.append(review)
        return review

    def dismiss_review(self, pr_number: int, review_id: int, message: str) -> None:
        if self.dismiss_error is not None:
            raise self.dismiss_error
        self.dismissed.append(review_id)
