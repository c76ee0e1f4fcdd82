"""
Fit personalization calibration from an exported profile.

Usage:
    mmet-calibrate profile.json
    mmet-calibrate profile.json --out runs/calibration.csv --scores runs/personalized.csv
"""
import argparse
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
from dotenv import load_dotenv

from mmet.config_loader import load_model_config
from mmet.personalize.calibration import compute_calibration
from mmet.profile_io import import_profile
from mmet.repository import InMemoryProfileRepository
from mmet.run import personalized_scores_for, score_product
from mmet.schemas import DimensionCalibration


def calibration_table(calibration: Dict[str, DimensionCalibration]) -> pd.DataFrame:
    return pd.DataFrame([
        {
            "dimension": dim,
            "adjustment": round(cal.adjustment, 3),
            "confidence": cal.confidence,
            "sample_count": cal.sample_count,
        }
        for dim, cal in calibration.items()
    ])


def personalized_table(repo: InMemoryProfileRepository, cfg) -> pd.DataFrame:
    """One row per product: baseline and personalized score per dimension."""
    rows = []
    for product in repo.list_products():
        baseline = score_product(product, cfg)
        personalized = personalized_scores_for(product.id, repo, cfg) or {}
        row = {"product_id": product.id, "name": product.name}
        for dim, score in baseline.items():
            row[f"baseline_{dim}"] = score
            row[f"personalized_{dim}"] = personalized.get(dim, score)
        rows.append(row)
    return pd.DataFrame(rows)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Fit per-dimension calibration from a profile's session log")
    parser.add_argument("profile", type=Path, help="Exported profile JSON")
    parser.add_argument("--out", type=Path, default=None, help="Write the calibration table as CSV")
    parser.add_argument("--scores", type=Path, default=None,
                        help="Write baseline vs personalized scores per product as CSV")
    parser.add_argument("--config-dir", type=Path, default=None,
                        help="Config directory (default: $MMET_CONFIG_DIR or packaged configs)")
    args = parser.parse_args(argv)

    load_dotenv()

    if not args.profile.exists():
        print(f"ERROR: Profile not found: {args.profile}")
        return 1
    try:
        doc = import_profile(args.profile.read_text(encoding="utf-8"))
    except ValueError as e:
        print(f"ERROR: {e}")
        return 1

    cfg = load_model_config(root=str(args.config_dir) if args.config_dir else None)
    repo = InMemoryProfileRepository.from_document(doc)
    print(f"Profile: {doc.profile_name} ({len(doc.products)} products, {len(doc.session_log)} sessions)")
    print(f"Config version: {cfg.config_version}")

    calibration = compute_calibration(repo.session_log(), repo.get_product, cfg)
    table = calibration_table(calibration)
    print(table.to_string(index=False))

    if args.out:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        table.to_csv(args.out, index=False)
        print(f"✓ Wrote calibration to {args.out}")

    if args.scores:
        args.scores.parent.mkdir(parents=True, exist_ok=True)
        personalized_table(repo, cfg).to_csv(args.scores, index=False)
        print(f"✓ Wrote personalized scores to {args.scores}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
