"""Automated pull-request reviewer for GitHub Actions."""

from __future__ import annotations

from .diff_parser import DiffFile, parse_diff
from .impact import ImpactAssessment, assess_impact
from .pipeline import RunOutcome, run_review
from .settings import RunSettings
from .verdict import ReviewVerdict, validate_verdict

__version__ = "0.1.0"

__all__ = [
    "DiffFile",
    "ImpactAssessment",
    "ReviewVerdict",
    "RunOutcome",
    "RunSettings",
    "assess_impact",
    "parse_diff",
    "run_review",
    "validate_verdict",
]
