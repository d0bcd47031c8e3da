from __future__ import annotations

from dataclasses import replace

from conftest import added_lines_hunk, file_diff

from reviewgate.diff_parser import parse_diff
from reviewgate.token_budget import (
    CORE_BONUS,
    MIN_PARTIAL_TOKENS,
    SECURITY_BONUS,
    allocate,
    estimate_tokens,
    file_priority,
    format_diff_for_prompt,
    format_file_for_prompt,
    format_file_header,
    format_hunk,
    truncate_file,
)

LONG_LINE = "const value = computeSomething(alpha, beta);"


def one_file(path: str, lines: int, *, hunks: int = 1, text: str = LONG_LINE):
    hunk_texts = [added_lines_hunk(lines, start=1 + i * 100, text=text) for i in range(hunks)]
    return parse_diff(file_diff(path, hunk_texts))[0]


def cost(file) -> int:
    return estimate_tokens(format_file_for_prompt(file))


def test_estimate_tokens_rounds_up() -> None:
    assert estimate_tokens("") == 0
    assert estimate_tokens(None) == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


def test_prompt_format_marks_changes_and_status() -> None:
    f = parse_diff(file_diff("lib/new.js", [added_lines_hunk(1)], status="added"))[0]
    text = format_file_for_prompt(f)
    assert text.startswith("### lib/new.js [added] (+1/-0)\n")
    assert "@@ -0,0 +1,1 @@\n+line 0\n" in text


def test_exact_budget_includes_the_file() -> None:
    f = one_file("src/feature.js", 5)
    result = allocate([f], cost(f))

    assert result.files == [f]
    assert result.included_files == 1
    assert result.truncated is False
    assert result.estimated_tokens == cost(f)


def test_security_file_outranks_large_plain_file() -> None:
    small_secure = one_file("libs/auth.js", 1)
    large_plain = one_file("src/report.js", 900)
    core = one_file("src/index.js", 2)

    assert file_priority(small_secure) > file_priority(core) > file_priority(large_plain)
    assert file_priority(small_secure) >= SECURITY_BONUS
    assert file_priority(core) >= CORE_BONUS

    result = allocate([large_plain, core, small_secure], 10**9)
    assert [f.path for f in result.files] == ["libs/auth.js", "src/index.js", "src/report.js"]


def test_oversized_file_does_not_starve_small_files() -> None:
    huge = one_file("src/huge.js", 3000)
    smalls = [one_file(f"src/small_{i}.js", 3) for i in range(3)]
    budget = 400

    assert cost(huge) > budget
    assert sum(cost(s) for s in smalls) <= budget

    result = allocate([huge, *smalls], budget)

    assert sorted(f.path for f in result.files) == sorted(s.path for s in smalls)
    assert result.total_files == 4
    assert result.included_files == 3
    assert result.truncated is True
    assert result.estimated_tokens <= budget


def test_estimated_tokens_never_exceed_budget() -> None:
    files = [one_file(f"src/f{i}.js", n, hunks=2) for i, n in enumerate([40, 5, 120, 12, 60])]
    for budget in (0, 50, 150, 300, 700, 1500, 5000):
        result = allocate(files, budget)
        assert result.estimated_tokens <= budget
        assert result.estimated_tokens == sum(cost(f) for f in result.files)
        assert result.truncated == (result.included_files < result.total_files)


def test_partial_inclusion_keeps_leading_hunks() -> None:
    f = one_file("src/multi.js", 10, hunks=3)
    header = estimate_tokens(format_file_header(replace(f, hunks=(), truncated=True)))
    first_two = sum(estimate_tokens(format_hunk(h)) for h in f.hunks[:2])
    budget = header + first_two + 5
    assert budget > MIN_PARTIAL_TOKENS
    assert budget < cost(f)

    result = allocate([f], budget)

    assert result.included_files == 1
    assert result.truncated is False
    partial = result.files[0]
    assert partial.truncated is True
    assert partial.hunks == f.hunks[:2]
    assert len(f.hunks) == 3
    assert "[truncated]" in format_file_for_prompt(partial)
    assert result.estimated_tokens <= budget


def test_no_partial_inclusion_below_minimum() -> None:
    f = one_file("src/multi.js", 10, hunks=3)
    result = allocate([f], MIN_PARTIAL_TOKENS)
    assert result.files == []
    assert result.truncated is True


def test_truncate_file_returns_none_when_nothing_fits() -> None:
    f = one_file("src/multi.js", 10)
    assert truncate_file(f, 5) is None


def test_omitted_files_note() -> None:
    huge = one_file("src/huge.js", 3000)
    small = one_file("src/small.js", 3)
    text = format_diff_for_prompt(allocate([huge, small], 100))
    assert "### src/small.js" in text
    assert "1 file(s) omitted" in text
