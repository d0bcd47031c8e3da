#!/usr/bin/env python3
"""Review the current pull request and post the result.

Run from a GitHub Actions job with GH_TOKEN (pull-requests: write),
ANTHROPIC_API_KEY, GITHUB_REPOSITORY and PR_NUMBER set. Always exits 0.
"""

from __future__ import annotations

import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent

# Allow running from a checkout without installing the package.
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from reviewgate.cli import main  # noqa: E402

if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
