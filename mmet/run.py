"""
Orchestrator: COA text → Product → baseline → scores (→ personalized scores).

run_once() is the single path used by the CLI entrypoints, so batch reports
and interactive use cannot drift apart.
"""
from typing import Dict, Optional

from mmet.coa.parse import parse_coa_text
from mmet.config_loader import ModelConfig, get_default_config
from mmet.effects.baseline import baseline_for_product
from mmet.effects.profile import compute_effect_profile
from mmet.effects.score_map import map_scores
from mmet.personalize.calibration import compute_calibration, personalize_scores
from mmet.repository import ProfileRepository
from mmet.schemas import Product, ProductReport, RunResult


def score_product(product: Product, cfg: Optional[ModelConfig] = None) -> Dict[str, float]:
    """Baseline 0..5 scores for a product."""
    cfg = cfg or get_default_config()
    return map_scores(baseline_for_product(product, cfg), cfg)


def personalized_scores_for(
    product_id: str,
    repo: ProfileRepository,
    cfg: Optional[ModelConfig] = None
) -> Optional[Dict[str, float]]:
    """
    Baseline scores of a stored product, adjusted by the repository's session log.

    Returns:
        Personalized scores, or None when the product id is unknown
    """
    cfg = cfg or get_default_config()
    product = repo.get_product(product_id)
    if product is None:
        return None
    calibration = compute_calibration(repo.session_log(), repo.get_product, cfg)
    return personalize_scores(score_product(product, cfg), calibration, cfg)


def report_for_product(
    product: Product,
    repo: Optional[ProfileRepository] = None,
    cfg: Optional[ModelConfig] = None
) -> ProductReport:
    """Baseline, scores, derived profile and (with a repository) personalized scores."""
    cfg = cfg or get_default_config()
    baseline = baseline_for_product(product, cfg)
    scores = map_scores(baseline, cfg)

    personalized = None
    calibration = {}
    if repo is not None:
        calibration = compute_calibration(repo.session_log(), repo.get_product, cfg)
        personalized = personalize_scores(scores, calibration, cfg)

    return ProductReport(
        product=product,
        baseline=baseline,
        scores=scores,
        personalized_scores=personalized,
        calibration=calibration,
        effect_profile=compute_effect_profile(baseline, cfg),
        config_version=cfg.config_version,
    )


def run_once(
    text: str,
    filename: Optional[str] = None,
    repo: Optional[ProfileRepository] = None,
    cfg: Optional[ModelConfig] = None
) -> RunResult:
    """
    Parse one COA and score it.

    When a repository is given the parsed product is added to it and the
    report carries personalized scores fitted on its session log.

    Args:
        text: Raw COA text
        filename: Source filename (name fallback, recorded on the Product)
        repo: Optional profile repository
        cfg: Model config (default: packaged config)

    Returns:
        RunResult with a ProductReport, or the ParseFailure

    Example:
        >>> from mmet.run import run_once
        >>> result = run_once("Product Name: Blue Dream\\nTotal THC: 22.4%\\nMyrcene 0.8%")
        >>> result.report.scores["couch"]
    """
    cfg = cfg or get_default_config()
    outcome = parse_coa_text(text, filename, cfg)
    if not outcome.ok:
        return RunResult(failure=outcome.failure)

    if repo is not None:
        repo.add_product(outcome.product)
    return RunResult(report=report_for_product(outcome.product, repo, cfg))
