"""
Baseline effect engine, score mapper and derived effect profile.
"""

from .baseline import baseline_for_product, calculate_baseline, get_thc_band
from .profile import compute_effect_profile
from .score_map import map_scores, round_half, to_score5

__all__ = [
    "calculate_baseline",
    "baseline_for_product",
    "get_thc_band",
    "map_scores",
    "round_half",
    "to_score5",
    "compute_effect_profile",
]
