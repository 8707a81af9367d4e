"""Score customer health, churn risk, expansion, usage trends and cohorts."""

from __future__ import annotations

import argparse
import json
from datetime import datetime
from pathlib import Path
from typing import Sequence

import pandas as pd

from cshealth.config import CONFIG_PATH, load_config
from cshealth.engine import ANALYSES, resolve_as_of, run_engine
from cshealth.etl.loader import load_from_database, load_from_files
from cshealth.quality import validate_outputs
from cshealth.reporting.portfolio import (
    churn_portfolio_summary,
    cohort_executive_summary,
    expansion_pipeline_summary,
    trend_portfolio_summary,
)

ROOT = Path(__file__).resolve().parents[3]

OUTPUT_NAMES = {
    "health": "customer_health",
    "churn": "churn_risk",
    "expansion": "expansion_opportunities",
    "trends": "usage_trends",
    "cohorts": "cohort_retention",
}


def _write_output(name: str, table: pd.DataFrame, meta: dict, out_dir: Path) -> Path:
    csv_path = out_dir / f"{name}.csv"
    table.to_csv(csv_path, index=False)
    meta_out = {
        **meta,
        "generated_at": datetime.now().isoformat(timespec="seconds"),
        "output": str(csv_path),
    }
    with (out_dir / f"{name}_meta.json").open("w", encoding="utf-8") as handle:
        json.dump(meta_out, handle, indent=2)
    print(f"[INFO] Wrote {len(table):,} rows to {csv_path}")
    return csv_path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Score customer health and lifecycle analyses.")
    parser.add_argument("--customers", type=str, default=None, help="Customer relation (CSV or Parquet).")
    parser.add_argument("--activity", type=str, default=None, help="Weekly activity relation (CSV or Parquet).")
    parser.add_argument(
        "--db",
        action="store_true",
        help="Read both relations from the database at CSH_DATABASE_URL instead of files.",
    )
    parser.add_argument("--db-url", type=str, default=None, help="Optional database URL override.")
    parser.add_argument(
        "--as-of",
        type=str,
        default=None,
        help="Reference date YYYY-MM-DD (defaults to today).",
    )
    parser.add_argument("--config", type=str, default=str(CONFIG_PATH), help="Engine configuration TOML.")
    parser.add_argument(
        "--out-root",
        type=str,
        default=str(ROOT / "reports" / "health"),
        help="Root directory for dated exports.",
    )
    parser.add_argument("--strict", action="store_true", help="Fail on input schema violations.")
    return parser


def run(argv: Sequence[str] | None = None) -> Path:
    """Run the engine end to end and return the dated output directory."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.db and not (args.customers and args.activity):
        parser.error("provide --customers and --activity, or --db")

    config = load_config(Path(args.config))
    as_of = resolve_as_of(args.as_of)

    if args.db:
        customers, activity = load_from_database(as_of, config.windows, url=args.db_url)
    else:
        customers, activity = load_from_files(args.customers, args.activity)

    print(f"--- Scoring {len(customers):,} customers as of {as_of.date()} ---")
    result = run_engine(customers, activity, as_of=as_of, config=config, strict=args.strict)

    out_dir = Path(args.out_root) / as_of.strftime("%Y%m%d")
    out_dir.mkdir(parents=True, exist_ok=True)

    for analysis in ANALYSES:
        table = result[analysis]
        meta = {
            "analysis": analysis,
            "as_of": as_of.date().isoformat(),
            "rows": len(table),
        }
        _write_output(OUTPUT_NAMES[analysis], table, meta, out_dir)

    summaries = [
        ("churn_portfolio",) + churn_portfolio_summary(result["churn"]),
        ("expansion_pipeline",) + expansion_pipeline_summary(result["expansion"]),
        ("trend_portfolio",) + trend_portfolio_summary(result["trends"]),
        ("cohort_executive",) + cohort_executive_summary(result["cohorts"]),
    ]
    for name, table, meta in summaries:
        _write_output(name, table, meta, out_dir)

    curve = result.retention_curve
    curve_meta = {
        "summary": "cohort_retention_curve",
        "as_of": as_of.date().isoformat(),
        "rows": len(curve),
        "cohorts": int(curve["cohort_month"].nunique()) if len(curve) else 0,
    }
    _write_output("cohort_retention_curve", curve, curve_meta, out_dir)

    print("Validating outputs...")
    validate_outputs(result, raise_error=args.strict)
    print("All done.")
    return out_dir


def main(argv: Sequence[str] | None = None) -> None:
    run(argv)


if __name__ == "__main__":
    main()
