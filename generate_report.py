"""
Master script to generate the district revenue disparities report.

Runs the whole pipeline in one pass, in order:
1. Fetch finance, enrollment by race, directory and cost-of-living data (or load the download cache)
2. Adjust revenue (capital outlay, property sales, charter payments)
3. Reshape enrollment by race to one row per district
4. Link finance, enrollment and cost-of-living; derive per-pupil and concentration fields
5. Aggregate report tables (CSV)
6. Association tests
7. Charts (PNG)
8. PDF composition

Usage:
    python generate_report.py
    python generate_report.py --year 2016 --vintage ccd-2016 --cola-source data/cola_2016.csv
    python generate_report.py --force-refetch --no-pdf
"""

import argparse
import sys
import time
from pathlib import Path
from typing import Dict, Optional

import pandas as pd

from district_shared import (
    DEFAULT_YEAR, DEFAULT_VINTAGE, DEFAULT_COLA_SOURCE, OUTPUT_DIR, CACHE_DIR,
)
import cache_manager
from education_data import fetch_all
from revenue_adjust import adjust_revenue
from enrollment_reshape import reshape_enrollment
from link_tables import link_tables
from aggregate_reports import build_all_reports, export_reports
from statistical_analysis import run_all_analyses, format_results_for_report
from revenue_plots import plot_all
from compose_pdf import build_sections, build_pdf

N_STEPS = 8


def _step(i: int, description: str):
    print("\n" + "=" * 70)
    print(f"[Step {i}/{N_STEPS}] {description}")
    print("=" * 70)


def run_analysis(raw: Dict[str, pd.DataFrame], year: int, vintage: str, out_dir: Path,
                 make_pdf: bool = True) -> dict:
    """
    Steps 2-8 over already-fetched data.

    Args:
        raw: Dict with 'finance', 'enrollment', 'directory', 'cola' DataFrames
        year: School year, used in titles and file names
        vintage: Data vintage identifier, stamped on charts and the PDF
        out_dir: Directory for CSV, PNG and PDF output
        make_pdf: If False, stop after the charts

    Returns:
        Dict with linked, counts, reports, stats, charts and pdf (Path or None)
    """
    out_dir = Path(out_dir)

    _step(2, "Adjusting revenue")
    finance_adjusted = adjust_revenue(raw["finance"])
    print(f"  Adjusted {len(finance_adjusted)} finance rows")

    _step(3, "Reshaping enrollment by race")
    enrollment_wide = reshape_enrollment(raw["enrollment"])
    print(f"  {len(enrollment_wide)} districts with enrollment")

    _step(4, "Linking tables")
    linked, counts = link_tables(enrollment_wide, finance_adjusted, raw["cola"])
    if linked.empty:
        raise ValueError("No districts left after linking; check the cost-of-living source and year")

    _step(5, "Aggregating report tables")
    reports = build_all_reports(linked, raw.get("directory"))
    export_reports(reports, out_dir / "tables")

    _step(6, "Association tests")
    stats_results = run_all_analyses(linked)

    _step(7, "Rendering charts")
    note = f"{year}–{str(year + 1)[-2:]}, {vintage}"
    charts = plot_all(reports, linked, out_dir / "charts", stats_results, note)

    pdf_path = None
    if make_pdf:
        _step(8, "Composing PDF")
        sections = build_sections(reports, charts, counts, year, vintage,
                                  format_results_for_report(stats_results))
        pdf_path = build_pdf(sections, out_dir / f"revenue_disparities_{year}.pdf")
    else:
        print(f"\n[SKIP] Step 8/{N_STEPS}: PDF composition (--no-pdf)")

    return {
        "linked": linked,
        "counts": counts,
        "reports": reports,
        "stats": stats_results,
        "charts": charts,
        "pdf": pdf_path,
    }


def run_pipeline(year: int, vintage: str, cola_source, out_dir: Path = OUTPUT_DIR,
                 force_refetch: bool = False, make_pdf: bool = True,
                 filters: Optional[dict] = None, cache_dir: Path = CACHE_DIR) -> dict:
    """Fetch (step 1) then run_analysis (steps 2-8)."""
    _step(1, f"Fetching {year} data")
    raw = fetch_all(year, vintage, cola_source, force_refetch=force_refetch,
                    filters=filters, cache_dir=cache_dir)
    return run_analysis(raw, year, vintage, out_dir, make_pdf=make_pdf)


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="District revenue per pupil by race")
    p.add_argument("--year", type=int, default=DEFAULT_YEAR, help=f"school year (fall), default {DEFAULT_YEAR}")
    p.add_argument("--vintage", default=DEFAULT_VINTAGE, help=f"data vintage identifier, default {DEFAULT_VINTAGE}")
    p.add_argument("--cola-source", default=str(DEFAULT_COLA_SOURCE),
                   help="CSV path or URL with leaid and cola columns")
    p.add_argument("--fips", type=int, default=None, help="restrict the API queries to one state")
    p.add_argument("--output-dir", type=Path, default=OUTPUT_DIR)
    p.add_argument("--force-refetch", action="store_true", help="bypass the download cache")
    p.add_argument("--clear-cache", action="store_true", help="delete the download cache first")
    p.add_argument("--no-pdf", action="store_true", help="skip PDF composition")
    return p.parse_args(argv)


def main(argv=None):
    """Execute the complete report generation pipeline."""
    args = parse_args(argv)

    print("\n" + "=" * 70)
    print("DISTRICT REVENUE DISPARITIES REPORT GENERATOR")
    print("=" * 70)
    print(f"Working directory: {Path.cwd()}")
    print(f"Year: {args.year}  Vintage: {args.vintage}")
    print(f"Cost-of-living source: {args.cola_source}")

    if args.clear_cache:
        cache_manager.clear_cache()

    start_time = time.time()
    try:
        result = run_pipeline(
            args.year, args.vintage, args.cola_source,
            out_dir=args.output_dir,
            force_refetch=args.force_refetch,
            make_pdf=not args.no_pdf,
            filters={"fips": args.fips} if args.fips is not None else None,
        )
    except Exception as e:
        elapsed = time.time() - start_time
        print("\n" + "=" * 70)
        print(f"[FAIL] Pipeline failed after {elapsed:.1f} seconds")
        print(f"Error: {type(e).__name__}: {e}")
        print("=" * 70)
        sys.exit(1)

    elapsed = time.time() - start_time
    print("\n" + "=" * 70)
    print("PIPELINE SUMMARY")
    print("=" * 70)
    print(f"Total time: {elapsed:.1f} seconds")
    print(f"Districts linked: {result['counts']['linked']:,}")
    print(f"Report tables: {len(result['reports'])}  Charts: {len(result['charts'])}")
    if result["pdf"] is not None:
        print(f"PDF: {result['pdf']}")
    print("\n[OK] Report generation complete!")


if __name__ == "__main__":
    main()
