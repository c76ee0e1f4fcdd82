"""
Derived effect profile (energy, focus, mood, relax, sleep, pain, anxiety relief).

Each output is a linear combination of the baseline signals, clamped to 0..1
and reported on a 0..5 scale with one decimal. Weights live in
configs/effect_profile.yml. Anxiety is reported as relief (1 - risk), so
higher is better on every output.
"""
import math
from typing import Dict, Optional

from mmet.config_loader import ModelConfig, get_default_config
from mmet.effects.baseline import clamp01
from mmet.schemas import BaselineResult


def _to5(x: float) -> float:
    return math.floor(clamp01(x) * 50 + 0.5) / 10


def compute_effect_profile(baseline: BaselineResult, cfg: Optional[ModelConfig] = None) -> Dict[str, float]:
    """
    Args:
        baseline: Output of calculate_baseline
        cfg: Model config (default: packaged config)

    Returns:
        Output name → value in [0, 5], one decimal
    """
    outputs = (cfg or get_default_config()).effect_profile.outputs
    inputs = baseline.vector.as_dict()
    inputs["anxiety_relief"] = clamp01(1.0 - baseline.anxiety_risk)

    profile = {}
    for name, weights in outputs.items():
        value = sum(weight * inputs.get(signal, 0.0) for signal, weight in weights.items())
        profile[name] = _to5(value)
    return profile
