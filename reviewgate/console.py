"""Run output for GitHub Actions logs.

Progress goes to stderr as plain lines; notable events use workflow
annotations so they surface in the job summary.
"""

from __future__ import annotations

import sys


def info(message: str) -> None:
    print(message, file=sys.stderr)


def notice(message: str) -> None:
    print(f"::notice::{message}", file=sys.stderr)


def warn(message: str) -> None:
    print(f"::warning::{message}", file=sys.stderr)


def error(message: str) -> None:
    print(f"::error::{message}", file=sys.stderr)
