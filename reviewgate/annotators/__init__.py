"""Deterministic post-review annotators (no reviewer call).

Each annotator reads the parsed diff and PR metadata and produces extra,
low-noise output for the review: test-gap comments, label suggestions, tips,
and related issue links.
"""
