"""
Score COA text files - batch harness around mmet.run.run_once().

Usage:
    mmet-score coas/*.txt --out runs/scores.csv
    mmet-score coas/ --profile profile.json --save-profile profile.json
    mmet-score blue_dream.txt --format json
"""
import argparse
import json
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pandas as pd
from dotenv import load_dotenv

from mmet.config_loader import load_model_config
from mmet.feature_flags import FLAGS, verbose_enabled
from mmet.profile_io import export_profile, import_profile
from mmet.repository import InMemoryProfileRepository
from mmet.run import run_once
from mmet.schemas import ParseFailure, ProductReport
from mmet.terpenes import top_terpenes


def collect_inputs(paths: Iterable[str]) -> List[Path]:
    """Expand directories to their *.txt files; files are kept as given."""
    files = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            files.extend(sorted(path.glob("*.txt")))
        else:
            files.append(path)
    return files


def report_row(report: ProductReport) -> Dict:
    """Flatten one report into a CSV row."""
    product = report.product
    row = {
        "product_id": product.id,
        "name": product.name,
        "source_file": product.source_file_name,
        "form_raw": product.form_raw,
        "form_key": product.form_key,
        "total_thc_pct": product.metrics.total_thc_pct,
        "total_terpenes_pct": product.metrics.total_terpenes_pct,
        "thc_band": report.baseline.meta.thc_band,
        "top_terpenes": "; ".join(f"{t.name} {t.pct}%" for t in top_terpenes(product.terpenes)),
        "anxiety_risk": round(report.baseline.anxiety_risk, 3),
    }
    for dim, score in report.scores.items():
        row[f"score_{dim}"] = score
    for dim, score in (report.personalized_scores or {}).items():
        row[f"personalized_{dim}"] = score
    for name, value in report.effect_profile.items():
        row[f"effect_{name}"] = value
    row["config_version"] = report.config_version
    return row


def reports_to_dataframe(reports: List[ProductReport]) -> pd.DataFrame:
    return pd.DataFrame([report_row(r) for r in reports])


def score_files(
    files: List[Path],
    repo: Optional[InMemoryProfileRepository] = None,
    config_dir: Optional[Path] = None
):
    """
    Run every file through run_once().

    Returns:
        (reports, failures)
    """
    cfg = load_model_config(root=str(config_dir) if config_dir else None)
    print(f"Config version: {cfg.config_version}")

    reports: List[ProductReport] = []
    failures: List[ParseFailure] = []
    for idx, path in enumerate(files):
        print(f"[{idx + 1}/{len(files)}] {path.name}")
        if not path.exists():
            failures.append(ParseFailure(source=str(path), error="file_not_found", message="No such file"))
            print("  ERROR: file not found")
            continue

        text = path.read_text(encoding="utf-8", errors="replace")
        result = run_once(text, filename=path.name, repo=repo, cfg=cfg)
        if not result.ok:
            failures.append(result.failure)
            print(f"  FAILED: {result.failure.error} ({result.failure.message})")
            continue

        report = result.report
        reports.append(report)
        print(
            f"  {report.product.name} | {report.product.form_key} | "
            f"THC {report.product.metrics.total_thc_pct} | {len(report.product.terpenes)} terpenes"
        )
    return reports, failures


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Score COA text files with the MMET baseline model")
    parser.add_argument("inputs", nargs="+", help="COA .txt files or directories of them")
    parser.add_argument("--out", type=Path, default=None,
                        help="Write the report here (default: print to stdout)")
    parser.add_argument("--format", choices=["csv", "json"], default="csv",
                        help="Report format")
    parser.add_argument("--profile", type=Path, default=None,
                        help="Profile JSON whose session log personalizes the scores")
    parser.add_argument("--save-profile", type=Path, default=None,
                        help="Write the profile (with the newly parsed products) here")
    parser.add_argument("--config-dir", type=Path, default=None,
                        help="Config directory (default: $MMET_CONFIG_DIR or packaged configs)")
    args = parser.parse_args(argv)

    load_dotenv()
    if verbose_enabled():
        FLAGS.print_status()

    repo = None
    if args.profile or args.save_profile:
        repo = InMemoryProfileRepository()
        if args.profile:
            if not args.profile.exists():
                print(f"ERROR: Profile not found: {args.profile}")
                return 1
            try:
                repo = InMemoryProfileRepository.from_document(import_profile(args.profile.read_text(encoding="utf-8")))
            except ValueError as e:
                print(f"ERROR: {e}")
                return 1

    files = collect_inputs(args.inputs)
    if not files:
        print("ERROR: No COA files found")
        return 1

    reports, failures = score_files(files, repo, args.config_dir)

    if args.format == "csv":
        df = reports_to_dataframe(reports)
        if args.out:
            args.out.parent.mkdir(parents=True, exist_ok=True)
            df.to_csv(args.out, index=False)
            print(f"✓ Wrote {len(df)} row(s) to {args.out}")
        else:
            print(df.to_string(index=False))
    else:
        payload = json.dumps(
            {
                "reports": [r.model_dump(mode="json", by_alias=True) for r in reports],
                "errors": [f.model_dump(mode="json", by_alias=True) for f in failures],
            },
            indent=2,
        )
        if args.out:
            args.out.parent.mkdir(parents=True, exist_ok=True)
            args.out.write_text(payload, encoding="utf-8")
            print(f"✓ Wrote {len(reports)} report(s) to {args.out}")
        else:
            print(payload)

    if repo is not None and args.save_profile:
        args.save_profile.parent.mkdir(parents=True, exist_ok=True)
        args.save_profile.write_text(export_profile(repo.to_document()), encoding="utf-8")
        print(f"✓ Saved profile to {args.save_profile}")

    print(f"\nScored: {len(reports)}  Failed: {len(failures)}")
    for failure in failures:
        print(f"  {failure.source}: {failure.error}")
    return 0 if reports or not failures else 2


if __name__ == "__main__":
    sys.exit(main())
