"""
Test terpene canonicalization, merging and banding.
"""
import math
import sys
from pathlib import Path

import pytest

repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root))

from mmet.schemas import TerpeneCandidate, TerpeneEntry
from mmet.terpenes import (
    canonicalize_terpene,
    merge_terpenes,
    terpene_band,
    terpene_map,
    top_terpenes,
)


class TestCanonicalizeTerpene:
    """Raw COA labels → canonical keys."""

    @pytest.mark.parametrize("raw, expected", [
        ("β-Caryophyllene", "caryophyllene"),
        ("beta caryophyllene", "caryophyllene"),
        ("BETA-CARYOPHYLLENE", "caryophyllene"),
        ("ß-Caryophyllene", "caryophyllene"),
        ("D-Limonene", "limonene"),
        ("d_limonene", "limonene"),
        ("α-Pinene", "pinene"),
        ("a-pinene", "pinene"),
        ("alpha/beta-Pinene", "pinene"),
        ("beta-Myrcene", "myrcene"),
        ("alpha-Bisabolol", "bisabolol"),
        ("Ocimenes", "ocimene"),
        ("trans-beta-Ocimene", "ocimene"),
        ("alpha-Terpineol", "terpinolene"),
        ("Guaiol", "guaiol"),
        ("alpha-Humulene", "humulene"),
    ])
    def test_variants_map_to_canonical(self, raw, expected, cfg):
        assert canonicalize_terpene(raw, cfg) == expected

    def test_novel_terpene_preserved(self, cfg):
        """Unknown names are normalized, not discarded."""
        assert canonicalize_terpene("Caryophyllene Oxide", cfg) == "caryophyllene oxide"
        assert canonicalize_terpene("delta-3-Carene", cfg) == "delta carene"

    def test_empty_input(self, cfg):
        assert canonicalize_terpene("", cfg) == ""
        assert canonicalize_terpene(None, cfg) == ""
        assert canonicalize_terpene("  ", cfg) == ""

    @pytest.mark.parametrize("raw", [
        "β-Caryophyllene", "D-Limonene", "Ocimenes", "alpha-Terpineol", "Caryophyllene Oxide",
    ])
    def test_idempotent(self, raw, cfg):
        once = canonicalize_terpene(raw, cfg)
        assert canonicalize_terpene(once, cfg) == once


class TestMergeTerpenes:
    """Duplicate canonical names are summed."""

    def test_duplicates_are_summed(self, cfg):
        """β-Caryophyllene 1.0 + beta caryophyllene 0.5 → caryophyllene 1.5."""
        merged = merge_terpenes(
            [{"name": "β-Caryophyllene", "pct": 1.0}, {"name": "beta caryophyllene", "pct": 0.5}],
            cfg,
        )
        assert merged == [TerpeneEntry(name="caryophyllene", pct=1.5)]

    def test_merge_is_order_independent(self, cfg):
        entries = [
            TerpeneCandidate(name="beta-Myrcene", pct=0.4, pattern="bare"),
            TerpeneCandidate(name="Limonene", pct=0.3, pattern="bare"),
            TerpeneCandidate(name="Myrcene", pct=0.2, pattern="bare"),
        ]
        assert merge_terpenes(entries, cfg) == merge_terpenes(list(reversed(entries)), cfg)
        assert terpene_map(entries, cfg) == {"myrcene": pytest.approx(0.6), "limonene": pytest.approx(0.3)}

    def test_invalid_percentages_dropped(self, cfg):
        merged = merge_terpenes(
            [
                {"name": "Myrcene", "pct": 0},
                {"name": "Limonene", "pct": -0.2},
                {"name": "Pinene", "pct": math.nan},
                {"name": "Linalool", "pct": "n/a"},
                {"name": "", "pct": 0.5},
                {"name": "Humulene", "pct": 0.25},
            ],
            cfg,
        )
        assert merged == [TerpeneEntry(name="humulene", pct=0.25)]

    def test_sorted_descending_and_rounded(self, cfg):
        merged = merge_terpenes(
            [{"name": "Pinene", "pct": 0.12345}, {"name": "Myrcene", "pct": 0.9}],
            cfg,
        )
        assert [t.name for t in merged] == ["myrcene", "pinene"]
        assert merged[1].pct == pytest.approx(0.123)


class TestTopTerpenesAndBands:
    """Top-N selection and concentration bands."""

    def test_top_terpenes_default_limit(self, cfg):
        entries = [{"name": f"terp{chr(97 + i)}", "pct": 0.1 * (i + 1)} for i in range(8)]
        assert len(top_terpenes(entries, cfg=cfg)) == 6

    def test_top_terpenes_explicit_limit(self, cfg):
        entries = [{"name": "Myrcene", "pct": 0.9}, {"name": "Limonene", "pct": 0.4}]
        assert [t.name for t in top_terpenes(entries, limit=1, cfg=cfg)] == ["myrcene"]

    @pytest.mark.parametrize("pct, band", [
        (1.2, "primary"),
        (1.0, "primary"),
        (0.6, "dominant"),
        (0.2, "supporting"),
        (0.1, "none"),
        (0, "none"),
        (None, "none"),
    ])
    def test_terpene_band(self, pct, band, cfg):
        assert terpene_band(pct, cfg) == band
