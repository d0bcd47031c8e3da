from __future__ import annotations

from conftest import added_lines_hunk, file_diff

from reviewgate.diff_parser import (
    ADDED,
    ADDITION,
    CONTEXT,
    DELETION,
    MODIFIED,
    RENAMED,
    addition_lines,
    first_addition_line,
    parse_diff,
    total_changes,
)

MODIFIED_HUNK = "\n".join(
    [
        "@@ -10,4 +10,5 @@ function handler(req, res) {",
        " const a = 1;",
        "-const b = 2;",
        "+const b = 3;",
        "+const c = 4;",
        " return a;",
        " }",
    ]
)


def test_empty_diff_yields_no_files() -> None:
    assert parse_diff("") == []
    assert parse_diff(None) == []


def test_modified_file_line_numbers() -> None:
    files = parse_diff(file_diff("src/handler.js", [MODIFIED_HUNK]))

    assert len(files) == 1
    f = files[0]
    assert f.path == "src/handler.js"
    assert f.status == MODIFIED
    assert (f.additions, f.deletions) == (2, 1)

    hunk = f.hunks[0]
    assert hunk.context == "function handler(req, res) {"
    kinds = [c.kind for c in hunk.changes]
    assert kinds == [CONTEXT, DELETION, ADDITION, ADDITION, CONTEXT, CONTEXT]

    first_ctx, deletion, add_b, add_c, ret, _ = hunk.changes
    assert (first_ctx.old_line, first_ctx.new_line) == (10, 10)
    assert deletion.line == 11
    assert (add_b.line, add_c.line) == (11, 12)
    assert (ret.old_line, ret.new_line) == (12, 13)
    assert add_b.content == "const b = 3;"


def test_round_trip_structure_for_multiple_files() -> None:
    text = "\n".join(
        [
            file_diff("a.js", [MODIFIED_HUNK, "@@ -40,2 +41,3 @@\n x\n+y\n z"]),
            file_diff("lib/new.js", [added_lines_hunk(3)], status="added"),
        ]
    )
    files = parse_diff(text)

    assert [(f.path, f.status, len(f.hunks)) for f in files] == [
        ("a.js", MODIFIED, 2),
        ("lib/new.js", ADDED, 1),
    ]
    for f in files:
        plus = sum(1 for h in f.hunks for c in h.changes if c.kind == ADDITION)
        minus = sum(1 for h in f.hunks for c in h.changes if c.kind == DELETION)
        assert (f.additions, f.deletions) == (plus, minus)
    assert files[0].hunks[1].changes[1].line == 42
    assert [c.line for c in files[1].hunks[0].changes] == [1, 2, 3]


def test_pure_deletion_is_omitted() -> None:
    deleted = file_diff("old/gone.js", ["@@ -1,2 +0,0 @@\n-one\n-two"], status="deleted")
    assert parse_diff(deleted) == []


def test_deleted_entry_between_files_does_not_leak_hunks() -> None:
    text = "\n".join(
        [
            file_diff("first.js", ["@@ -1,1 +1,2 @@\n keep\n+first"]),
            file_diff("gone.js", ["@@ -1,3 +0,0 @@\n-x\n-y\n-z"], status="deleted"),
            file_diff("second.js", ["@@ -5,1 +5,2 @@\n keep\n+second"]),
        ]
    )
    files = parse_diff(text)

    assert [f.path for f in files] == ["first.js", "second.js"]
    assert [c.content for h in files[0].hunks for c in h.changes] == ["keep", "first"]
    assert [c.content for h in files[1].hunks for c in h.changes] == ["keep", "second"]


def test_deleted_entry_without_diff_header_does_not_corrupt_previous_file() -> None:
    text = "\n".join(
        [
            "--- a/first.js",
            "+++ b/first.js",
            "@@ -1,1 +1,2 @@",
            " keep",
            "+first",
            "--- a/gone.js",
            "+++ /dev/null",
            "@@ -1,1 +0,0 @@",
            "-gone",
            "--- a/second.js",
            "+++ b/second.js",
            "@@ -1,1 +1,2 @@",
            " keep",
            "+second",
        ]
    )
    files = parse_diff(text)

    assert [f.path for f in files] == ["first.js", "second.js"]
    assert [len(f.hunks) for f in files] == [1, 1]
    assert files[0].additions == 1 and files[0].deletions == 0
    assert files[1].status == MODIFIED


def test_removed_line_that_looks_like_a_header_is_content() -> None:
    hunk = "\n".join(["@@ -1,2 +1,1 @@", "--- drop this sql comment", " select 1;"])
    files = parse_diff(file_diff("db/query.sql", [hunk]))

    assert len(files) == 1
    deletion = files[0].hunks[0].changes[0]
    assert deletion.kind == DELETION
    assert deletion.content == "-- drop this sql comment"


def test_orphan_hunk_before_any_file_is_dropped() -> None:
    text = "@@ -1,1 +1,1 @@\n-a\n+b\n" + file_diff("x.js", ["@@ -1,1 +1,1 @@\n-c\n+d"])
    files = parse_diff(text)
    assert len(files) == 1
    assert files[0].additions == 1


def test_no_newline_marker_and_crlf_are_ignored() -> None:
    hunk = "@@ -1,1 +1,1 @@\r\n-old\r\n\\ No newline at end of file\r\n+new\r\n\\ No newline at end of file"
    files = parse_diff(file_diff("x.js", [hunk]))
    assert [c.content for c in files[0].hunks[0].changes] == ["old", "new"]


def test_rename_is_tagged() -> None:
    text = "\n".join(
        [
            "diff --git a/old.js b/new.js",
            "similarity index 90%",
            "rename from old.js",
            "rename to new.js",
            "--- a/old.js",
            "+++ b/new.js",
            "@@ -1,1 +1,1 @@",
            "-a",
            "+b",
        ]
    )
    files = parse_diff(text)
    assert files[0].path == "new.js"
    assert files[0].status == RENAMED


def test_helpers() -> None:
    files = parse_diff(file_diff("src/handler.js", [MODIFIED_HUNK]))
    assert total_changes(files) == 3
    assert addition_lines(files[0]) == {11, 12}
    assert first_addition_line(files[0]) == 11

    only_deletes = parse_diff(file_diff("x.js", ["@@ -1,1 +1,0 @@\n-a"]))
    assert first_addition_line(only_deletes[0]) == 1
