"""
Per-user calibration from the session log.
"""

from .calibration import calibration_confidence, compute_calibration, personalize_scores

__all__ = ["calibration_confidence", "compute_calibration", "personalize_scores"]
