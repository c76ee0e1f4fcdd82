"""
Baseline effect engine.

Pure function of (Total THC %, Total Terpenes %, form key, terpenes) →
EffectVector + anxiety risk + form metadata. Every constant comes from
configs/effect_model.yml, thc_bands.yml and form_profiles.yml.

Pipeline:
    1. THC band → potency p
    2. THC base vector: intercept + slope·p per dimension
    3. Terpene modifiers on a copy of the base vector (strength-scaled + capped concentration term)
    4. Weighted average THC : TERP
    5. Form direct vector blended in at the form weight
    6. Additive intensity shaping (i = max(0, intensity_mod - 1)); topical zeroes everything
    7. Anxiety risk: band + form, then limonene / terpinolene / retention rules
    8. Myrcene couch rule
    9. Duration / onset metadata
"""
import math
from typing import Dict, Iterable, Optional

from mmet.config_loader import ModelConfig, get_default_config
from mmet.feature_flags import log_verbose
from mmet.forms import get_form_profile
from mmet.schemas import (
    EFFECT_DIMENSIONS,
    BaselineMeta,
    BaselineResult,
    EffectVector,
    Product,
    ThcBand,
)
from mmet.terpenes import terpene_map


def clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


def _num(value, default: float = 0.0) -> float:
    """Coerce to a finite float (missing / non-numeric / inf / nan → default)."""
    try:
        v = float(value)
    except (TypeError, ValueError):
        return default
    return v if math.isfinite(v) else default


def get_thc_band(thc_pct, cfg: Optional[ModelConfig] = None) -> ThcBand:
    """
    Potency band for a Total THC percent.

    Missing or negative values fall into the lowest band.
    """
    bands = (cfg or get_default_config()).thc_bands
    thc = max(0.0, _num(thc_pct))
    for band in bands:
        if band.contains(thc):
            return band
    return bands[-1]


def _thc_base_vector(potency: float, cfg: ModelConfig) -> Dict[str, float]:
    terms = cfg.effect_model.thc_base_vector
    return {dim: clamp01(terms[dim].intercept + terms[dim].slope * potency) for dim in EFFECT_DIMENSIONS}


def _apply_terpene_modifiers(
    base: Dict[str, float],
    terps: Dict[str, float],
    terp_strength: float,
    cfg: ModelConfig
) -> Dict[str, float]:
    vec = dict(base)
    modifiers = cfg.effect_model.terpene_modifiers
    for name, pct in terps.items():
        modifier = modifiers.get(name)
        if modifier is None:
            continue
        for dim, strength in modifier.strength.items():
            vec[dim] += strength * terp_strength
        for term in modifier.concentration:
            vec[term.dim] += term.weight * clamp01(pct / term.cap_pct)
    return {dim: clamp01(v) for dim, v in vec.items()}


def _mix(a: Dict[str, float], b: Dict[str, float], wa: float, wb: float) -> Dict[str, float]:
    total = wa + wb
    return {dim: clamp01((wa * a[dim] + wb * b[dim]) / total) for dim in EFFECT_DIMENSIONS}


def _form_direct_vector(form_key: str, cfg: ModelConfig) -> Dict[str, float]:
    vectors = cfg.effect_model.form_direct_vectors
    vec = vectors.get(form_key) or vectors.get(cfg.forms.default_key) or {}
    return {dim: clamp01(_num(vec.get(dim))) for dim in EFFECT_DIMENSIONS}


def _apply_intensity_shaping(vec: Dict[str, float], intensity: float, cfg: ModelConfig) -> Dict[str, float]:
    i = max(0.0, intensity - 1.0)
    shaping = cfg.effect_model.intensity_shaping
    return {dim: clamp01(vec[dim] + shaping.get(dim, 0.0) * i) for dim in EFFECT_DIMENSIONS}


def calculate_baseline(
    total_thc_pct,
    total_terpenes_pct,
    form_key: Optional[str],
    terpenes: Optional[Iterable] = None,
    cfg: Optional[ModelConfig] = None
) -> BaselineResult:
    """
    Compute the baseline effect prediction.

    Never raises on numeric input: missing or non-finite values count as 0
    (an absent THC value lands in the lowest band), unknown form keys use
    the default form profile.

    Args:
        total_thc_pct: Total THC percent
        total_terpenes_pct: Total terpenes percent
        form_key: Form key (flower, vape, concentrate, live_resin, edible, topical)
        terpenes: TerpeneEntry objects or {"name", "pct"} dicts (canonicalized here)
        cfg: Model config (default: packaged config)

    Returns:
        BaselineResult with every vector dimension and anxiety_risk in [0, 1]
    """
    cfg = cfg or get_default_config()
    model = cfg.effect_model

    thc = max(0.0, _num(total_thc_pct))
    total_terps = max(0.0, _num(total_terpenes_pct))
    form = get_form_profile(form_key, cfg)
    band = get_thc_band(thc, cfg)
    terps = terpene_map(terpenes or [], cfg)

    thc_vec = _thc_base_vector(band.potency, cfg)

    terp_strength = clamp01(total_terps / model.terp_strength_divisor)
    terp_vec = _apply_terpene_modifiers(thc_vec, terps, terp_strength, cfg)

    blended = _mix(thc_vec, terp_vec, model.weights.thc, model.weights.terp)
    blended = _mix(blended, _form_direct_vector(form.key, cfg), 1.0 - model.weights.form, model.weights.form)

    intensity = form.intensity_mod
    if intensity == 0:
        # Absorbing: no felt effect, and no later rule may raise a dimension
        vec = {dim: 0.0 for dim in EFFECT_DIMENSIONS}
    else:
        vec = _apply_intensity_shaping(blended, intensity, cfg)

    rules = model.anxiety_rules
    anxiety = clamp01(band.anxiety_risk + form.anxiety_risk_add)
    if terps.get("limonene", 0.0) > rules.limonene.threshold_pct:
        anxiety = clamp01(anxiety + rules.limonene.delta)
    if terps.get("terpinolene", 0.0) > rules.terpinolene.threshold_pct:
        anxiety = clamp01(anxiety + rules.terpinolene.delta)
    if form.terpene_retention < rules.low_retention.threshold:
        anxiety = clamp01(anxiety * rules.low_retention.multiplier)

    if intensity != 0 and terps.get("myrcene", 0.0) > model.myrcene_couch.threshold_pct:
        vec["couch"] = clamp01(vec["couch"] + model.myrcene_couch.boost)

    meta = BaselineMeta(
        thc_pct=thc,
        thc_band=band.label,
        form_key=form.key,
        intensity_mod=intensity,
        duration_hours=form.base_duration_hours * form.duration_mod,
        onset_minutes=form.onset_minutes,
        terpene_retention=form.terpene_retention,
        total_terpenes_pct=total_terps,
    )
    log_verbose(
        "BASELINE",
        f"thc={thc} band={band.key} form={form.key} terp_strength={terp_strength:.2f} "
        f"anxiety={anxiety:.3f}"
    )
    return BaselineResult(vector=EffectVector(**vec), anxiety_risk=anxiety, meta=meta)


def baseline_for_product(product: Product, cfg: Optional[ModelConfig] = None) -> BaselineResult:
    """Baseline prediction for a stored Product."""
    return calculate_baseline(
        product.metrics.total_thc_pct,
        product.metrics.total_terpenes_pct,
        product.form_key,
        product.terpenes,
        cfg,
    )
