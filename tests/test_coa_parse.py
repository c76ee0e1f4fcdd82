"""
Test the COA parse entry point and batch parsing.
"""
import sys
from pathlib import Path

import pytest

repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root))

from mmet.coa.parse import (
    EMPTY_INPUT,
    UNRECOVERABLE_INPUT,
    parse_coa_batch,
    parse_coa_text,
)


class TestParseCoaText:
    """Text → Product, or a named failure."""

    def test_flower_product(self, flower_coa, cfg):
        outcome = parse_coa_text(flower_coa, "blue_dream.txt", cfg)
        assert outcome.ok
        assert outcome.failure is None

        product = outcome.product
        assert product.name == "Blue Dream"
        assert product.form_key == "flower"
        assert product.source_file_name == "blue_dream.txt"
        assert product.metrics.total_thc_pct == pytest.approx(22.4)
        assert product.metrics.total_terpenes_pct == pytest.approx(1.70)
        assert [t.name for t in product.terpenes] == ["myrcene", "caryophyllene", "limonene", "pinene"]

    def test_component_product(self, component_coa, cfg):
        """THC derived from components; live badder → live_resin."""
        product = parse_coa_text(component_coa, cfg=cfg).product
        assert product.metrics.total_thc_pct == pytest.approx(72.6)
        assert product.form_raw == "Live Badder"
        assert product.form_key == "live_resin"
        assert product.metrics.total_terpenes_pct is None

    def test_missing_fields_reported(self, flower_coa, component_coa, cfg):
        """Partial field loss is recorded on the outcome, not raised."""
        assert parse_coa_text(flower_coa, cfg=cfg).missing_fields == []
        assert parse_coa_text(component_coa, cfg=cfg).missing_fields == ["total_terpenes_pct"]

        outcome = parse_coa_text("- Myrcene 0.80%", cfg=cfg)
        assert outcome.ok
        assert "total_thc_pct" in outcome.missing_fields
        assert "form_raw" in outcome.missing_fields

    def test_duplicate_raw_names_are_summed(self, cfg):
        text = "Total THC: 19.0%\nTerpenes\nβ-Caryophyllene 1.0%\nCaryophyllene 0.5%"
        product = parse_coa_text(text, cfg=cfg).product
        assert [(t.name, t.pct) for t in product.terpenes] == [("caryophyllene", 1.5)]

    def test_greek_isomers_are_summed(self, cfg):
        text = (
            "Total THC: 22.0%\nTerpenes\n- α-Pinene 0.10%\n- β-Pinene 0.15%\n"
            "- α-Humulene 0.20%\n- Humulene 0.05%"
        )
        product = parse_coa_text(text, cfg=cfg).product
        terpenes = {t.name: t.pct for t in product.terpenes}
        assert terpenes["pinene"] == pytest.approx(0.25)
        assert terpenes["humulene"] == pytest.approx(0.25)

    def test_spelled_out_greek_prefix_is_same_raw_name(self, cfg):
        """'β-Caryophyllene' and 'beta caryophyllene' are one raw name: first wins."""
        text = "Total THC: 19.0%\nTerpenes\nβ-Caryophyllene 1.0%\nbeta caryophyllene 0.5%"
        product = parse_coa_text(text, cfg=cfg).product
        assert [(t.name, t.pct) for t in product.terpenes] == [("caryophyllene", 1.0)]

    def test_terpene_table_after_summary_panel(self, cfg):
        text = (
            "Summary\nCannabinoids Complete\nTerpenes Complete\nPesticides Pass\n"
            "Total THC: 21.0%\nTERPENES\n- Myrcene 0.80%\n- Limonene 0.40%"
        )
        product = parse_coa_text(text, cfg=cfg).product
        assert [(t.name, t.pct) for t in product.terpenes] == [("myrcene", 0.8), ("limonene", 0.4)]

    def test_terpenes_without_thc_still_parse(self, tabular_coa, cfg):
        """Missing THC is partial field loss, not a failure."""
        outcome = parse_coa_text(tabular_coa, cfg=cfg)
        assert outcome.ok
        assert outcome.product.metrics.total_thc_pct is None
        assert outcome.product.metrics.total_terpenes_pct == pytest.approx(8.09)

    @pytest.mark.parametrize("text", ["", None, "   \r\n\t  "])
    def test_empty_input_fails(self, text, cfg):
        outcome = parse_coa_text(text, "empty.txt", cfg)
        assert not outcome.ok
        assert outcome.product is None
        assert outcome.failure.error == EMPTY_INPUT
        assert outcome.failure.source == "empty.txt"

    def test_unrecoverable_input_fails(self, cfg):
        """No THC and no terpenes → no Product."""
        outcome = parse_coa_text("Invoice #1234\nThank you for your order", cfg=cfg)
        assert not outcome.ok
        assert outcome.failure.error == UNRECOVERABLE_INPUT

    def test_each_parse_gets_a_new_id(self, flower_coa, cfg):
        a = parse_coa_text(flower_coa, cfg=cfg).product
        b = parse_coa_text(flower_coa, cfg=cfg).product
        assert a.id != b.id


class TestParseCoaBatch:
    """One failure never aborts the batch."""

    def test_partial_success(self, flower_coa, component_coa, cfg):
        result = parse_coa_batch(
            [("a.txt", flower_coa), ("b.txt", ""), component_coa, "no numbers here"],
            cfg,
        )
        assert [p.name for p in result.products] == ["Blue Dream", "Gelato 41 Live Badder"]
        assert [(e.source, e.error) for e in result.errors] == [
            ("b.txt", EMPTY_INPUT),
            ("item 4", UNRECOVERABLE_INPUT),
        ]

    def test_empty_batch(self, cfg):
        result = parse_coa_batch([], cfg)
        assert result.products == []
        assert result.errors == []

    def test_batch_summary_is_quiet_by_default(self, flower_coa, cfg, capsys, monkeypatch):
        monkeypatch.delenv("MMET_VERBOSE", raising=False)
        parse_coa_batch([flower_coa], cfg)
        assert capsys.readouterr().out == ""

    def test_batch_summary_when_verbose(self, flower_coa, cfg, capsys, monkeypatch):
        monkeypatch.setenv("MMET_VERBOSE", "1")
        parse_coa_batch([flower_coa, ""], cfg)
        assert "[PARSE] Batch: 1 parsed, 1 failed" in capsys.readouterr().out
