"""Tests for diff_parser.py: unified diff text to files, hunks and lines."""

from diff_parser import clean_path, parse_unified_diff
from models import DiffLineType


SIMPLE_DIFF = (
    "diff --git a/src/app.py b/src/app.py\n"
    "index 83db48f..bf269f4 100644\n"
    "--- a/src/app.py\n"
    "+++ b/src/app.py\n"
    "@@ -10,3 +10,4 @@ def main():\n"
    " context one\n"
    "-removed\n"
    "+added one\n"
    "+added two\n"
    " context two\n"
)

MULTI_FILE_DIFF = (
    "diff --git a/a.py b/a.py\n"
    "--- a/a.py\n"
    "+++ b/a.py\n"
    "@@ -1,2 +1,3 @@\n"
    " first\n"
    "+inserted\n"
    " second\n"
    "@@ -20,2 +21,2 @@ class Foo:\n"
    "-old\n"
    "+new\n"
    " tail\n"
    "diff --git a/b.py b/b.py\n"
    "--- a/b.py\n"
    "+++ b/b.py\n"
    "@@ -5,1 +5,2 @@\n"
    " keep\n"
    "+more\n"
)


class TestCleanPath:
    def test_strips_git_prefixes(self):
        assert clean_path("a/src/app.py") == "src/app.py"
        assert clean_path("b/src/app.py") == "src/app.py"

    def test_only_one_prefix_is_removed(self):
        assert clean_path("b/a/nested.py") == "a/nested.py"

    def test_dev_null_and_empty(self):
        assert clean_path("/dev/null") is None
        assert clean_path("") is None
        assert clean_path(None) is None

    def test_unprefixed_path_kept(self):
        assert clean_path("README.md") == "README.md"


class TestParseUnifiedDiff:
    def test_single_hunk_line_numbers(self):
        diff = parse_unified_diff(SIMPLE_DIFF)
        assert len(diff.files) == 1
        file_diff = diff.files[0]
        assert file_diff.old_path == "src/app.py"
        assert file_diff.new_path == "src/app.py"

        hunk = file_diff.hunks[0]
        assert (hunk.old_start, hunk.old_length, hunk.new_start, hunk.new_length) == (10, 3, 10, 4)
        assert hunk.section_header == "def main():"

        summary = [(l.line_type, l.old_line_number, l.new_line_number, l.position) for l in hunk.lines]
        assert summary == [
            (DiffLineType.CONTEXT, 10, 10, 1),
            (DiffLineType.DELETED, 11, None, 2),
            (DiffLineType.ADDED, None, 11, 3),
            (DiffLineType.ADDED, None, 12, 4),
            (DiffLineType.CONTEXT, 12, 13, 5),
        ]

    def test_added_and_deleted_lines_have_exactly_one_number(self):
        diff = parse_unified_diff(MULTI_FILE_DIFF)
        for file_diff in diff.files:
            for hunk in file_diff.hunks:
                for line in hunk.lines:
                    if line.line_type == DiffLineType.ADDED:
                        assert line.old_line_number is None and line.new_line_number is not None
                    elif line.line_type == DiffLineType.DELETED:
                        assert line.new_line_number is None and line.old_line_number is not None

    def test_raw_hunk_text_is_verbatim(self):
        diff = parse_unified_diff(SIMPLE_DIFF)
        hunk = diff.files[0].hunks[0]
        assert hunk.raw_text == (
            "@@ -10,3 +10,4 @@ def main():\n"
            " context one\n"
            "-removed\n"
            "+added one\n"
            "+added two\n"
            " context two"
        )
        assert all(line.hunk_text == hunk.raw_text for line in hunk.lines)

    def test_later_hunk_headers_take_a_position(self):
        diff = parse_unified_diff(MULTI_FILE_DIFF)
        first, second = diff.files[0].hunks
        assert [l.position for l in first.lines] == [1, 2, 3]
        # position 4 is the second "@@" header
        assert [l.position for l in second.lines] == [5, 6, 7]

    def test_positions_restart_per_file(self):
        diff = parse_unified_diff(MULTI_FILE_DIFF)
        assert [f.new_path for f in diff.files] == ["a.py", "b.py"]
        assert [l.position for l in diff.files[1].hunks[0].lines] == [1, 2]

    def test_pure_rename_has_no_hunks(self):
        text = (
            "diff --git a/old_name.py b/new_name.py\n"
            "similarity index 100%\n"
            "rename from old_name.py\n"
            "rename to new_name.py\n"
            "diff --git a/b.py b/b.py\n"
            "--- a/b.py\n"
            "+++ b/b.py\n"
            "@@ -1 +1 @@\n"
            "-x\n"
            "+y\n"
        )
        diff = parse_unified_diff(text)
        renamed = diff.files[0]
        assert renamed.old_path == "old_name.py"
        assert renamed.new_path == "new_name.py"
        assert renamed.hunks == []
        assert diff.files[1].hunks[0].lines[1].new_line_number == 1

    def test_new_and_deleted_files(self):
        text = (
            "diff --git a/new.py b/new.py\n"
            "new file mode 100644\n"
            "--- /dev/null\n"
            "+++ b/new.py\n"
            "@@ -0,0 +1,2 @@\n"
            "+one\n"
            "+two\n"
            "diff --git a/gone.py b/gone.py\n"
            "deleted file mode 100644\n"
            "--- a/gone.py\n"
            "+++ /dev/null\n"
            "@@ -1 +0,0 @@\n"
            "-bye\n"
        )
        new_file, deleted_file = parse_unified_diff(text).files
        assert new_file.old_path is None and new_file.path == "new.py"
        assert deleted_file.new_path is None and deleted_file.path == "gone.py"
        assert deleted_file.hunks[0].lines[0].old_line_number == 1

    def test_no_newline_marker_counts_as_position(self):
        text = (
            "diff --git a/a.txt b/a.txt\n"
            "--- a/a.txt\n"
            "+++ b/a.txt\n"
            "@@ -1,1 +1,2 @@\n"
            "-last\n"
            "\\ No newline at end of file\n"
            "+last\n"
            "+extra\n"
        )
        hunk = parse_unified_diff(text).files[0].hunks[0]
        assert [l.line_type for l in hunk.lines] == [
            DiffLineType.DELETED, DiffLineType.ADDED, DiffLineType.ADDED,
        ]
        assert [l.position for l in hunk.lines] == [1, 3, 4]

    def test_hunk_shorter_than_header_is_tolerated(self):
        text = (
            "--- a/short.py\n"
            "+++ b/short.py\n"
            "@@ -10,3 +10,4 @@\n"
            " context\n"
            "+added\n"
            "+added\n"
            " context\n"
        )
        hunk = parse_unified_diff(text).files[0].hunks[0]
        assert [l.new_line_number for l in hunk.lines] == [10, 11, 12, 13]

    def test_malformed_hunk_header_only_drops_that_file(self):
        text = (
            "diff --git a/bad.py b/bad.py\n"
            "--- a/bad.py\n"
            "+++ b/bad.py\n"
            "@@ -x,1 +y,1 @@\n"
            "+broken\n"
            "diff --git a/good.py b/good.py\n"
            "--- a/good.py\n"
            "+++ b/good.py\n"
            "@@ -1,1 +1,2 @@\n"
            " ok\n"
            "+fine\n"
        )
        diff = parse_unified_diff(text)
        assert [f.path for f in diff.files] == ["good.py"]
        assert diff.files[0].hunks[0].lines[1].new_line_number == 2

    def test_garbage_inside_hunk_drops_file(self):
        text = (
            "diff --git a/bad.py b/bad.py\n"
            "--- a/bad.py\n"
            "+++ b/bad.py\n"
            "@@ -1,3 +1,3 @@\n"
            " ok\n"
            "this is not a diff line\n"
            "diff --git a/good.py b/good.py\n"
            "--- a/good.py\n"
            "+++ b/good.py\n"
            "@@ -1 +1 @@\n"
            "-a\n"
            "+b\n"
        )
        assert [f.path for f in parse_unified_diff(text).files] == ["good.py"]

    def test_plain_diff_without_git_headers(self):
        text = (
            "--- a/one.py\t2024-01-01 10:00:00\n"
            "+++ b/one.py\t2024-01-02 10:00:00\n"
            "@@ -1 +1,2 @@\n"
            " a\n"
            "+b\n"
            "--- a/two.py\n"
            "+++ b/two.py\n"
            "@@ -3 +3 @@\n"
            "-c\n"
            "+d\n"
        )
        diff = parse_unified_diff(text)
        assert [f.path for f in diff.files] == ["one.py", "two.py"]

    def test_form_feed_inside_line_is_content(self):
        text = (
            "--- a/lib.c\n"
            "+++ b/lib.c\n"
            "@@ -1,3 +1,4 @@\n"
            " int x;\x0c\n"
            "+int y;\n"
            " int z;\n"
            " int w;\n"
        )
        hunk = parse_unified_diff(text).files[0].hunks[0]
        assert [(l.line_type, l.new_line_number, l.content) for l in hunk.lines] == [
            (DiffLineType.CONTEXT, 1, "int x;\x0c"),
            (DiffLineType.ADDED, 2, "int y;"),
            (DiffLineType.CONTEXT, 3, "int z;"),
            (DiffLineType.CONTEXT, 4, "int w;"),
        ]
        assert hunk.raw_text == text.split("\n", 2)[2].rstrip("\n")

    def test_crlf_line_endings(self):
        text = "--- a/x.py\r\n+++ b/x.py\r\n@@ -1 +1,2 @@\r\n a\r\n+b\r\n"
        diff = parse_unified_diff(text)
        assert diff.files[0].path == "x.py"
        assert [l.content for l in diff.files[0].hunks[0].lines] == ["a", "b"]

    def test_short_hunk_followed_by_plain_file(self):
        text = (
            "--- a/one.py\n"
            "+++ b/one.py\n"
            "@@ -10,3 +10,4 @@\n"
            " context\n"
            "+added\n"
            "+added\n"
            " context\n"
            "--- a/two.py\n"
            "+++ b/two.py\n"
            "@@ -1 +1 @@\n"
            "-old\n"
            "+new\n"
        )
        diff = parse_unified_diff(text)
        assert [f.path for f in diff.files] == ["one.py", "two.py"]
        one, two = diff.files
        assert [l.new_line_number for l in one.hunks[0].lines] == [10, 11, 12, 13]
        assert [l.line_type for l in two.hunks[0].lines] == [DiffLineType.DELETED, DiffLineType.ADDED]
        assert [l.position for l in two.hunks[0].lines] == [1, 2]

    def test_deleted_dash_line_inside_git_hunk_is_body(self):
        text = (
            "diff --git a/q.sql b/q.sql\n"
            "--- a/q.sql\n"
            "+++ b/q.sql\n"
            "@@ -1,2 +1,1 @@\n"
            "--- old comment\n"
            " select 1;\n"
        )
        lines = parse_unified_diff(text).files[0].hunks[0].lines
        assert (lines[0].line_type, lines[0].content) == (DiffLineType.DELETED, "-- old comment")

    def test_empty_input(self):
        assert parse_unified_diff("").files == []
        assert parse_unified_diff(None).files == []

    def test_parsing_is_deterministic(self):
        assert parse_unified_diff(MULTI_FILE_DIFF) == parse_unified_diff(MULTI_FILE_DIFF)
