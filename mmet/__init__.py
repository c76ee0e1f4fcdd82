"""
MMET predictor: COA text → chemical profile → effect scores → personalized scores.
"""

from .coa.parse import parse_coa_batch, parse_coa_text
from .effects.baseline import baseline_for_product, calculate_baseline
from .effects.score_map import map_scores
from .personalize.calibration import compute_calibration, personalize_scores
from .profile_io import export_profile, import_profile
from .repository import InMemoryProfileRepository, ProfileRepository
from .run import personalized_scores_for, run_once, score_product

__version__ = "0.2.0"

__all__ = [
    "parse_coa_text",
    "parse_coa_batch",
    "calculate_baseline",
    "baseline_for_product",
    "map_scores",
    "compute_calibration",
    "personalize_scores",
    "export_profile",
    "import_profile",
    "ProfileRepository",
    "InMemoryProfileRepository",
    "score_product",
    "personalized_scores_for",
    "run_once",
]
