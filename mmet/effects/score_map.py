"""
0..1 effect signals → 0..5 half-step scores.
"""
import math
from typing import Dict, Optional

from mmet.config_loader import ModelConfig, ScoreCurve, get_default_config
from mmet.schemas import EFFECT_DIMENSIONS, BaselineResult


SCORE_DIMENSIONS = EFFECT_DIMENSIONS + ("duration", "functionality", "anxiety")


def round_half(x: float, step: float = 0.5) -> float:
    """Round to the nearest multiple of `step`; exact halves round up."""
    return math.floor(x / step + 0.5) * step


def clamp_score(x: float, max_score: float = 5.0) -> float:
    if not math.isfinite(x):
        return 0.0
    return max(0.0, min(max_score, x))


def to_score5(
    x: float,
    lo: float = 0.0,
    hi: float = 1.0,
    gamma: float = 1.0,
    max_score: float = 5.0,
    step: float = 0.5
) -> float:
    """
    Map a 0..1 signal onto the score scale.

    score = round_half(max_score * clamp01((x - lo) / (hi - lo)) ** gamma)

    Non-finite input maps to 0.
    """
    try:
        x = float(x)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(x) or hi <= lo:
        return 0.0
    t = max(0.0, min(1.0, (x - lo) / (hi - lo)))
    return clamp_score(round_half(max_score * t ** gamma, step), max_score)


def _curve_score(x: float, curve: ScoreCurve, cfg: ModelConfig) -> float:
    mapper = cfg.score_mapper
    return to_score5(x, curve.lo, curve.hi, curve.gamma, mapper.max_score, mapper.step)


def duration_score(duration_hours: float, cfg: Optional[ModelConfig] = None) -> float:
    """Duration mapped linearly over 0..max_hours."""
    mapper = (cfg or get_default_config()).score_mapper
    return to_score5(duration_hours / mapper.duration.max_hours, max_score=mapper.max_score, step=mapper.step)


def anxiety_score(anxiety_risk: float, cfg: Optional[ModelConfig] = None) -> float:
    """Anxiety risk rescaled by (x - offset) / scale, then curved."""
    cfg = cfg or get_default_config()
    scale = cfg.score_mapper.anxiety
    return _curve_score((anxiety_risk - scale.offset) / scale.scale, scale, cfg)


def functionality_score(clarity: float, sedation: float, couch: float, cfg: Optional[ModelConfig] = None) -> float:
    """How usable the user stays: clarity weighed against the sedation/couch load."""
    cfg = cfg or get_default_config()
    fn = cfg.score_mapper.functionality
    load = fn.sedation_weight * sedation + fn.couch_weight * couch
    x = fn.clarity_weight * clarity + (1 - fn.clarity_weight) * (1 - load)
    return _curve_score(max(0.0, min(1.0, x)), fn, cfg)


def map_scores(baseline: BaselineResult, cfg: Optional[ModelConfig] = None) -> Dict[str, float]:
    """
    Score every dimension of a baseline prediction.

    Returns:
        {head, clarity, sedation, couch, pain, duration, functionality, anxiety} → multiple of 0.5 in [0, 5]
    """
    cfg = cfg or get_default_config()
    curves = cfg.score_mapper.dimensions
    vector = baseline.vector.as_dict()

    scores = {dim: _curve_score(vector[dim], curves[dim], cfg) for dim in EFFECT_DIMENSIONS}
    scores["duration"] = duration_score(baseline.meta.duration_hours, cfg)
    scores["functionality"] = functionality_score(vector["clarity"], vector["sedation"], vector["couch"], cfg)
    scores["anxiety"] = anxiety_score(baseline.anxiety_risk, cfg)
    return scores
