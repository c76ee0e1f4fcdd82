"""
Test COA text normalization.
"""
import sys
from pathlib import Path

repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root))

from mmet.coa.normalize import normalize_text


class TestNormalizeText:
    """Line endings, whitespace runs and blank-line runs."""

    def test_empty_and_none_return_empty_string(self):
        """Empty input always succeeds with ''."""
        assert normalize_text("") == ""
        assert normalize_text(None) == ""
        assert normalize_text("   \n\n  \t ") == ""

    def test_crlf_and_cr_fold_to_lf(self):
        """Windows and old-Mac line endings become LF."""
        assert normalize_text("a\r\nb\rc") == "a\nb\nc"

    def test_horizontal_whitespace_collapses(self):
        """Tabs and space runs collapse to a single space."""
        assert normalize_text("Total   THC:\t\t22.4 %") == "Total THC: 22.4 %"

    def test_blank_line_runs_collapse_to_one(self):
        """Three or more newlines leave exactly one blank line."""
        text = normalize_text("TERPENES\n\n\n\n\nMyrcene 0.8%")
        assert text == "TERPENES\n\nMyrcene 0.8%"

    def test_whitespace_only_lines_count_as_blank(self):
        """Lines holding only spaces do not defeat blank-run collapsing."""
        assert normalize_text("a\n  \n \t \n\nb") == "a\n\nb"

    def test_single_blank_line_is_kept(self):
        assert normalize_text("a\n\nb") == "a\n\nb"
