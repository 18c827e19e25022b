"""Unit tests for dotdiff.domain.envformat: line parsing and format-preserving patching."""

import pytest

from dotdiff.domain.envformat import (
    build_assignment_line,
    is_valid_key,
    parse_lines,
    parse_to_map,
    patch_content,
)
from dotdiff.models import LineKind

SAMPLE = """\
# database
DB_HOST=localhost
DB_PORT = 5432   # trailing comment

export API_KEY="abc def"
not a line
SECRET='it''s'
"""


class TestIsValidKey:
    @pytest.mark.parametrize("key", ["FOO", "_private", "a1", "DB_HOST_2"])
    def test_accepts_identifiers(self, key):
        """
        Given a name made of letters, digits and underscores not starting with a digit
        When is_valid_key is called
        Then it returns True
        """
        assert is_valid_key(key) is True

    @pytest.mark.parametrize("key", ["", "1FOO", "FOO-BAR", "FOO BAR", "FÖO"])
    def test_rejects_malformed_names(self, key):
        """
        Given an empty name, a leading digit, or a forbidden character
        When is_valid_key is called
        Then it returns False
        """
        assert is_valid_key(key) is False


class TestParseLines:
    def test_classifies_each_line(self):
        """
        Given a file with comments, assignments, blank and garbage lines
        When parse_lines is called
        Then each physical line gets the matching kind
        """
        kinds = [line.kind for line in parse_lines(SAMPLE)]
        assert kinds == [
            LineKind.COMMENT,
            LineKind.ASSIGNMENT,
            LineKind.ASSIGNMENT,
            LineKind.BLANK,
            LineKind.ASSIGNMENT,
            LineKind.UNKNOWN,
            LineKind.ASSIGNMENT,
        ]

    def test_final_newline_does_not_add_blank_line(self):
        """
        Given content ending with a newline
        When parse_lines is called
        Then there is no phantom blank record at the end
        """
        lines = parse_lines("A=1\nB=2\n")
        assert len(lines) == 2

    def test_empty_content_has_no_lines(self):
        assert parse_lines("") == []

    def test_raw_text_is_kept(self):
        """
        Given an assignment with odd spacing
        When parse_lines is called
        Then raw holds the line exactly as written
        """
        line = parse_lines("  KEY =  value  \n")[0]
        assert line.raw == "  KEY =  value  "
        assert line.key == "KEY"
        assert line.value == "value"

    def test_invalid_key_is_unknown(self):
        line = parse_lines("1BAD=value")[0]
        assert line.kind is LineKind.UNKNOWN
        assert line.key is None


class TestParseToMap:
    def test_extracts_values(self):
        """
        Given the sample file
        When parse_to_map is called
        Then quotes are unwrapped, export is stripped and inline comments dropped
        """
        assert parse_to_map(SAMPLE) == {
            "DB_HOST": "localhost",
            "DB_PORT": "5432",
            "API_KEY": "abc def",
            "SECRET": "it",
        }

    def test_duplicate_key_last_wins(self):
        assert parse_to_map("A=1\nA=2\n") == {"A": "2"}

    def test_hash_inside_quotes_is_not_a_comment(self):
        assert parse_to_map('A="x # y"\n') == {"A": "x # y"}

    def test_double_quotes_unescape(self):
        """
        Given a double-quoted value with escaped quote, backslash and newline
        When parse_to_map is called
        Then the escapes are decoded
        """
        assert parse_to_map('A="say \\"hi\\"\\\\\\nbye"') == {"A": 'say "hi"\\\nbye'}

    def test_single_quotes_are_literal(self):
        assert parse_to_map("A='a\\nb'") == {"A": "a\\nb"}

    def test_unterminated_quote_is_taken_as_is(self):
        assert parse_to_map('A="open') == {"A": '"open'}

    def test_value_may_contain_equals(self):
        assert parse_to_map("URL=postgres://u:p@h/db?x=1") == {"URL": "postgres://u:p@h/db?x=1"}

    def test_empty_value(self):
        assert parse_to_map("A=\n") == {"A": ""}


class TestBuildAssignmentLine:
    def test_plain_value_is_bare(self):
        assert build_assignment_line("A", "simple") == "A=simple"

    @pytest.mark.parametrize("value", ["", "two words", "a#b", 'q"uote', "it's", "back\\slash", "line\nbreak"])
    def test_special_values_round_trip(self, value):
        """
        Given a value that is empty or contains whitespace, #, quotes or backslashes
        When it is serialised and parsed back
        Then the same value comes out
        """
        line = build_assignment_line("K", value)
        assert parse_to_map(line) == {"K": value}


class TestPatchContent:
    def test_no_changes_is_byte_identical(self):
        """
        Given any file content ending in a newline
        When patched with no changes
        Then the output is byte-for-byte the input
        """
        assert patch_content(SAMPLE, {}) == SAMPLE

    def test_modification_keeps_position(self):
        """
        Given a file with three keys
        When the middle key is modified
        Then only that line changes and it stays in place
        """
        result = patch_content("A=1\nB=2\nC=3\n", {"B": "20"})
        assert result == "A=1\nB=20\nC=3\n"

    def test_untouched_lines_keep_odd_spacing(self):
        result = patch_content("A =  1  \n# note\nB=2\n", {"B": "3"})
        assert result == "A =  1  \n# note\nB=3\n"

    def test_delete_drops_line(self):
        assert patch_content("A=1\nB=2\n", {"A": None}) == "B=2\n"

    def test_delete_only_line_yields_empty(self):
        """
        Given a file containing a single assignment
        When that key is deleted
        Then the result is the empty string with no forced newline
        """
        assert patch_content("KEY=old\n", {"KEY": None}) == ""

    def test_addition_goes_before_trailing_blanks(self):
        """
        Given a file with trailing blank lines
        When a new key is added
        Then it is inserted above the blank padding
        """
        result = patch_content("A=1\n\n\n", {}, {"B": "2"})
        assert result == "A=1\nB=2\n\n\n"

    def test_addition_to_empty_file(self):
        assert patch_content("", {}, {"NEW": "v"}) == "NEW=v\n"

    def test_missing_final_newline_is_added(self):
        assert patch_content("A=1", {"A": "2"}) == "A=2\n"

    def test_addition_skipped_when_already_modified(self):
        result = patch_content("A=1\n", {"A": "2"}, {"A": "3"})
        assert result == "A=2\n"

    def test_duplicate_key_modifies_last_occurrence(self):
        """
        Given a key assigned twice
        When it is modified
        Then only the last assignment (the effective one) is rewritten
        """
        assert patch_content("A=1\nA=2\n", {"A": "9"}) == "A=1\nA=9\n"

    def test_duplicate_key_delete_removes_all(self):
        assert patch_content("A=1\nB=x\nA=2\n", {"A": None}) == "B=x\n"

    def test_unknown_lines_are_preserved(self):
        result = patch_content("garbage line\nA=1\n", {"A": "2"})
        assert result == "garbage line\nA=2\n"

    def test_quoted_addition_round_trips(self):
        content = patch_content("", {}, {"K": "has space # and hash"})
        assert parse_to_map(content) == {"K": "has space # and hash"}

    def test_export_prefix_dropped_on_rewrite(self):
        assert patch_content("export A=1\n", {"A": "2"}) == "A=2\n"
