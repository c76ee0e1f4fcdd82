"""
Personalization calibrator.

Learns a per-dimension offset (actual - predicted) from the session log and
applies it to baseline scores, weighted by a sample-count confidence that is
capped so a handful of early sessions cannot fully override the model.
"""
import math
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Union

import numpy as np

from mmet.config_loader import ModelConfig, get_default_config
from mmet.effects.baseline import baseline_for_product
from mmet.effects.score_map import clamp_score, map_scores, round_half
from mmet.feature_flags import log_verbose
from mmet.schemas import DimensionCalibration, Product, SessionLogEntry


ProductLookup = Union[Mapping[str, Product], Callable[[str], Optional[Product]]]


def calibration_confidence(sample_count: int, cfg: Optional[ModelConfig] = None) -> float:
    """confidence = min(n / samples_for_full_weight, max_confidence); 0 for n <= 0."""
    calib = (cfg or get_default_config()).calibration
    if sample_count <= 0:
        return 0.0
    return min(sample_count / calib.samples_for_full_weight, calib.max_confidence)


def _resolve(lookup: ProductLookup, product_id: str) -> Optional[Product]:
    if isinstance(lookup, Mapping):
        return lookup.get(product_id)
    return lookup(product_id)


def _actual(entry: SessionLogEntry, dim: str) -> Optional[float]:
    value = entry.actuals.get(dim)
    if value is None:
        return None
    try:
        v = float(value)
    except (TypeError, ValueError):
        return None
    return v if math.isfinite(v) else None


def collect_deltas(
    session_log: Iterable[SessionLogEntry],
    product_lookup: ProductLookup,
    cfg: Optional[ModelConfig] = None
) -> Dict[str, List[float]]:
    """
    (actual - predicted) per dimension over every usable session entry.

    Entries whose product cannot be resolved are skipped. Predictions are
    computed once per product.
    """
    cfg = cfg or get_default_config()
    dims = cfg.calibration.dimensions
    deltas: Dict[str, List[float]] = {dim: [] for dim in dims}
    predicted_cache: Dict[str, Dict[str, float]] = {}

    for entry in session_log:
        product = _resolve(product_lookup, entry.product_id)
        if product is None:
            log_verbose("CALIB", f"Skipping session {entry.id}: unknown product {entry.product_id}")
            continue
        if product.id not in predicted_cache:
            predicted_cache[product.id] = map_scores(baseline_for_product(product, cfg), cfg)
        predicted = predicted_cache[product.id]

        for dim in dims:
            actual = _actual(entry, dim)
            if actual is None or dim not in predicted:
                continue
            deltas[dim].append(actual - predicted[dim])
    return deltas


def compute_calibration(
    session_log: Iterable[SessionLogEntry],
    product_lookup: ProductLookup,
    cfg: Optional[ModelConfig] = None
) -> Dict[str, DimensionCalibration]:
    """
    Fit per-dimension calibration from the session log.

    Args:
        session_log: Logged sessions (read only)
        product_lookup: Mapping or callable resolving a product id to a Product
        cfg: Model config (default: packaged config)

    Returns:
        Dimension → DimensionCalibration; dimensions without samples get
        adjustment 0 and confidence 0
    """
    cfg = cfg or get_default_config()
    calibration = {}
    for dim, values in collect_deltas(session_log, product_lookup, cfg).items():
        n = len(values)
        adjustment = float(np.mean(values)) if n else 0.0
        calibration[dim] = DimensionCalibration(
            adjustment=adjustment,
            confidence=calibration_confidence(n, cfg),
            sample_count=n,
        )
    log_verbose(
        "CALIB",
        ", ".join(f"{d}: {c.adjustment:+.2f}@{c.confidence:.1f} (n={c.sample_count})" for d, c in calibration.items())
    )
    return calibration


def personalize_scores(
    baseline_scores: Mapping[str, float],
    calibration: Mapping[str, DimensionCalibration],
    cfg: Optional[ModelConfig] = None
) -> Dict[str, float]:
    """
    Apply calibration: round_half(clamp(baseline + confidence * adjustment, 0, 5)).

    Dimensions without calibration samples are returned unchanged.
    """
    mapper = (cfg or get_default_config()).score_mapper
    personalized = {}
    for dim, base in baseline_scores.items():
        cal = calibration.get(dim)
        if cal is None or cal.sample_count == 0:
            personalized[dim] = base
            continue
        shifted = clamp_score(base + cal.confidence * cal.adjustment, mapper.max_score)
        personalized[dim] = clamp_score(round_half(shifted, mapper.step), mapper.max_score)
    return personalized
