"""
Test terpene line parsing (section bounds, line shapes, filters).
"""
import sys
from pathlib import Path

import pytest

repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root))

from mmet.coa.normalize import normalize_text
from mmet.coa.terpene_lines import extract_terpene_candidates, terpene_sections


def _pairs(candidates):
    return [(c.name, c.pct) for c in candidates]


class TestTerpeneSection:
    """Sections bounded by a terpene heading and the next section heading."""

    def test_section_stops_at_next_heading(self, flower_coa, cfg):
        sections = terpene_sections(normalize_text(flower_coa), cfg)
        assert len(sections) == 1
        assert "Bifenazate ND" not in sections[0]
        assert "- beta-Myrcene 0.82%" in sections[0]

    def test_section_stops_at_page_marker(self, tabular_coa, cfg):
        """'Page 2 of 4' ends the section; later lines are ignored."""
        candidates = extract_terpene_candidates(normalize_text(tabular_coa), cfg)
        assert "Myrcene" not in [c.name for c in candidates]

    def test_whole_document_without_heading(self, cfg):
        text = "Myrcene 0.8%\nLimonene 0.3%"
        assert terpene_sections(text, cfg) == []
        assert _pairs(extract_terpene_candidates(text, cfg)) == [("Myrcene", 0.8), ("Limonene", 0.3)]

    def test_summary_panel_heading_is_skipped(self, cfg):
        """An empty 'Terpenes Complete' status line does not hide the real table."""
        text = (
            "Summary\nCannabinoids Complete\nTerpenes Complete\nPesticides Pass\n\n"
            "Total THC: 21.0%\n\nTERPENES\n- Myrcene 0.80%\n- Limonene 0.40%\n\nPESTICIDES\nBifenazate ND"
        )
        sections = terpene_sections(text, cfg)
        assert sections[0] == []
        assert _pairs(extract_terpene_candidates(text, cfg)) == [("Myrcene", 0.80), ("Limonene", 0.40)]

    def test_empty_sections_fall_back_to_whole_document(self, cfg):
        text = "Terpenes\nNot tested\nPesticides Pass\n- Linalool 0.30%"
        assert _pairs(extract_terpene_candidates(text, cfg)) == [("Linalool", 0.30)]


class TestLineShapes:
    """Bulleted, parenthetical and bare lines."""

    def test_bulleted_lines(self, flower_coa, cfg):
        candidates = extract_terpene_candidates(normalize_text(flower_coa), cfg)
        assert _pairs(candidates) == [
            ("beta-Myrcene", 0.82),
            ("β-Caryophyllene", 0.41),
            ("D-Limonene", 0.35),
            ("alpha-Pinene", 0.12),
        ]
        assert all(c.pattern == "bulleted" for c in candidates)

    def test_parenthetical_pairs_on_one_line(self, cfg):
        """Several 'Name (x%)' pairs on one line are all captured."""
        text = "Terpenes\nPrimary: Myrcene (0.82%); Limonene (0.41%), Linalool (0.2%)"
        candidates = extract_terpene_candidates(text, cfg)
        assert _pairs(candidates) == [("Myrcene", 0.82), ("Limonene", 0.41), ("Linalool", 0.2)]
        assert {c.pattern for c in candidates} == {"parenthetical"}

    def test_bare_tabular_lines(self, tabular_coa, cfg):
        candidates = extract_terpene_candidates(normalize_text(tabular_coa), cfg)
        assert _pairs(candidates) == [
            ("beta-Caryophyllene", 1.77),
            ("Linalool", 0.695),
            ("D-Limonene", 0.507),
        ]
        assert {c.pattern for c in candidates} == {"bare"}

    def test_mixed_shapes(self, component_coa, cfg):
        candidates = extract_terpene_candidates(normalize_text(component_coa), cfg)
        assert _pairs(candidates) == [
            ("Caryophyllene", 1.0),
            ("Limonene", 0.60),
            ("Linalool", 0.25),
            ("Humulene", 0.31),
        ]


class TestCandidateFilters:
    """Range checks, non-terpene tokens and first-occurrence dedup."""

    @pytest.mark.parametrize("line", [
        "Myrcene 0.00%",
        "Myrcene 51.0%",
    ])
    def test_out_of_range_percent_discarded(self, line, cfg):
        assert extract_terpene_candidates(f"Terpenes\n{line}", cfg) == []

    def test_fifty_percent_is_kept(self, cfg):
        """Upper bound is inclusive."""
        assert _pairs(extract_terpene_candidates("Terpenes\nMyrcene 50.0%", cfg)) == [("Myrcene", 50.0)]

    @pytest.mark.parametrize("line", [
        "Total Terpenes 2.10%",
        "Analyte 1.20%",
        "Result 0.50%",
        "THCa 22.5%",
        "Total Cannabinoids 30.1%",
    ])
    def test_non_terpene_names_discarded(self, line, cfg):
        assert extract_terpene_candidates(f"Terpenes\n{line}", cfg) == []

    def test_first_occurrence_per_raw_name_wins(self, cfg):
        """Same letters-only name twice → only the first is kept."""
        text = "Terpenes\nbeta-Myrcene 0.80%\nBeta Myrcene 0.10%\nMyrcene 0.05%"
        candidates = extract_terpene_candidates(text, cfg)
        assert _pairs(candidates) == [("beta-Myrcene", 0.80), ("Myrcene", 0.05)]

    def test_greek_prefixes_keep_names_distinct(self, cfg):
        """α/β are spelled out before the letters-only key is built."""
        text = "Terpenes\n- α-Pinene 0.10%\n- β-Pinene 0.15%\n- beta-Pinene 0.40%\n- Pinene 0.05%"
        candidates = extract_terpene_candidates(text, cfg)
        assert _pairs(candidates) == [("α-Pinene", 0.10), ("β-Pinene", 0.15), ("Pinene", 0.05)]

    def test_novel_terpene_kept(self, cfg):
        """Names outside the canonical vocabulary are still candidates."""
        candidates = extract_terpene_candidates("Terpenes\ndelta-3-Carene 0.15%", cfg)
        assert _pairs(candidates) == [("delta-3-Carene", 0.15)]
