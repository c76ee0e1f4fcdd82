"""
Feature flags for the MMET predictor.

Enable/disable fallback heuristics via environment variables or direct
modification. Both COA fallbacks default to True.

Usage:
    from mmet.feature_flags import FLAGS

    if FLAGS.potency_summary_fallback:
        # Scan the POTENCY SUMMARY block as a last resort
        ...
"""
import os


class FeatureFlags:
    """
    Feature flags for COA parsing fallbacks.

    Set via environment variables or modify defaults here.
    Example: export MMET_POTENCY_SUMMARY_FALLBACK=false
    """

    # Last-resort Total THC: max plausible % (5..99) inside POTENCY SUMMARY
    potency_summary_fallback: bool = os.getenv("MMET_POTENCY_SUMMARY_FALLBACK", "true").lower() == "true"

    # Total Terpenes given as a bare number (unit missing); magnitude decides the unit
    bare_terpene_total_fallback: bool = os.getenv("MMET_BARE_TERPENE_TOTAL_FALLBACK", "true").lower() == "true"

    @classmethod
    def print_status(cls):
        """Print current flag status for debugging."""
        print("\n[FLAGS] ===== Feature Flags Status =====")
        print(f"[FLAGS]   potency_summary_fallback: {cls.potency_summary_fallback}")
        print(f"[FLAGS]   bare_terpene_total_fallback: {cls.bare_terpene_total_fallback}")
        print(f"[FLAGS]   verbose (MMET_VERBOSE): {verbose_enabled()}")
        print("[FLAGS] ================================\n")


FLAGS = FeatureFlags()


def verbose_enabled() -> bool:
    """Verbose diagnostics (behind env var, read at call time)."""
    return os.getenv("MMET_VERBOSE", "0") == "1"


def log_verbose(tag: str, message: str) -> None:
    """Print a tagged diagnostic line when MMET_VERBOSE=1."""
    if verbose_enabled():
        print(f"[{tag}] {message}")
