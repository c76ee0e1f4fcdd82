"""
Two-product blends at fixed ratio presets.
"""
from typing import Dict, Optional, Tuple

from mmet.config_loader import ModelConfig, get_default_config
from mmet.effects.baseline import baseline_for_product
from mmet.effects.score_map import clamp_score, map_scores, round_half
from mmet.schemas import BlendResult, Product, ProductMetrics


# label → (share of product A, share of product B)
BLEND_RATIOS: Dict[str, Tuple[float, float]] = {
    "50/50": (0.5, 0.5),
    "70/30": (0.7, 0.3),
    "30/70": (0.3, 0.7),
}


def _weighted(a: Optional[float], b: Optional[float], wa: float, wb: float) -> Optional[float]:
    if a is None or b is None:
        return None
    return a * wa + b * wb


def blend_metrics(a: ProductMetrics, b: ProductMetrics, wa: float, wb: float) -> ProductMetrics:
    """Weighted label totals; a total missing on either side stays None."""
    return ProductMetrics(
        total_thc_pct=_weighted(a.total_thc_pct, b.total_thc_pct, wa, wb),
        total_terpenes_pct=_weighted(a.total_terpenes_pct, b.total_terpenes_pct, wa, wb),
        total_cannabinoids_pct=_weighted(a.total_cannabinoids_pct, b.total_cannabinoids_pct, wa, wb),
        thc_per_unit_mg=_weighted(a.thc_per_unit_mg, b.thc_per_unit_mg, wa, wb),
    )


def blend_products(
    product_a: Product,
    product_b: Product,
    ratio_label: str = "50/50",
    cfg: Optional[ModelConfig] = None
) -> BlendResult:
    """
    Blend two products at a ratio preset.

    Scores are the weighted average of each product's baseline scores,
    rounded to the half-step grid.

    Raises:
        ValueError: If ratio_label is not one of BLEND_RATIOS
    """
    if ratio_label not in BLEND_RATIOS:
        raise ValueError(f"Unknown blend ratio {ratio_label!r}; expected one of {list(BLEND_RATIOS)}")
    cfg = cfg or get_default_config()
    wa, wb = BLEND_RATIOS[ratio_label]
    mapper = cfg.score_mapper

    scores_a = map_scores(baseline_for_product(product_a, cfg), cfg)
    scores_b = map_scores(baseline_for_product(product_b, cfg), cfg)
    scores = {
        dim: clamp_score(round_half(scores_a[dim] * wa + scores_b[dim] * wb, mapper.step), mapper.max_score)
        for dim in scores_a
    }

    return BlendResult(
        name=f"{product_a.name} + {product_b.name} ({ratio_label})",
        product_a_id=product_a.id,
        product_b_id=product_b.id,
        ratio_label=ratio_label,
        metrics=blend_metrics(product_a.metrics, product_b.metrics, wa, wb),
        scores=scores,
    )
