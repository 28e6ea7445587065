"""
Link adjusted finance, wide enrollment and cost-of-living into one table.

Steps (each returns a new DataFrame):
1. join_tables      left join enrollment -> finance on leaid, then inner join -> cost-of-living
2. filter_districts keep Total > 0, drop rev_total < 0
3. derive_fields    COLA and per-pupil revenue, race percentages, concentration labels
4. drop_incomplete  drop rows with any missing value (count is reported)
5. add_bins         10 equal-width bins of % black and % nonwhite

Bin convention: right-inclusive intervals labeled by their upper bound,
(40, 50] -> 50, with 0 placed in bin 10.
"""

from __future__ import annotations

from typing import Dict, Tuple

import numpy as np
import pandas as pd

from district_shared import (
    ADJUSTED_COLUMNS, FINANCE_COLUMNS, TOTAL_LABEL,
    CONCENTRATION_HIGH, CONCENTRATION_LOW, NOT_CONCENTRATED,
    BIN_EDGES, BIN_LABELS,
    require_columns,
)

# Finance columns carried into the linked table
FINANCE_KEEP = ["leaid"] + FINANCE_COLUMNS + ["pct_local", "pct_state", "pct_fed"] + ADJUSTED_COLUMNS


def join_tables(enrollment_wide: pd.DataFrame, finance_adjusted: pd.DataFrame,
                cola: pd.DataFrame) -> pd.DataFrame:
    """
    Left join enrollment to adjusted finance, then inner join to cost-of-living.

    Enrollment is the kept side of the first join: districts without finance
    rows stay with NaN finance fields; finance rows without enrollment are
    dropped. Districts without a cost-of-living entry are dropped here.
    """
    require_columns(enrollment_wide, ["leaid", "fips", TOTAL_LABEL], "wide enrollment")
    require_columns(finance_adjusted, FINANCE_KEEP, "adjusted finance")
    require_columns(cola, ["leaid", "cola"], "cost-of-living data")

    fin = finance_adjusted[FINANCE_KEEP]
    joined = enrollment_wide.merge(fin, on="leaid", how="left")
    joined = joined.merge(cola[["leaid", "cola"]], on="leaid", how="inner")
    return joined


def filter_districts(joined: pd.DataFrame) -> pd.DataFrame:
    """
    Keep districts with pupils and non-negative revenue.

    Only a known negative rev_total excludes a row; NaN rev_total (no finance
    match) is left for drop_incomplete so it is counted as missing data.
    """
    keep = (joined[TOTAL_LABEL] > 0) & ~(joined["rev_total"] < 0)
    return joined[keep].copy()


def concentration_by_nonwhite(pct_nonwhite: pd.Series) -> pd.Series:
    labels = np.select(
        [pct_nonwhite >= CONCENTRATION_HIGH, pct_nonwhite <= CONCENTRATION_LOW],
        ["nonwhite", "white"],
        default=NOT_CONCENTRATED,
    )
    return pd.Series(labels, index=pct_nonwhite.index)


def concentration_by_black(pct_black: pd.Series, pct_white: pd.Series) -> pd.Series:
    # black is tested on % black, white on % white (not on 100 - % black)
    labels = np.select(
        [pct_black >= CONCENTRATION_HIGH, pct_white >= CONCENTRATION_HIGH],
        ["black", "white"],
        default=NOT_CONCENTRATED,
    )
    return pd.Series(labels, index=pct_black.index)


def derive_fields(filtered: pd.DataFrame) -> pd.DataFrame:
    """
    Add COLA-adjusted and per-pupil revenue, race percentages and concentration labels.

    For each adjusted revenue column X this adds X_cola, X_pp and X_cola_pp.
    Percentages are 0-100 of total enrollment; pct_nonwhite = 100 - pct_white.
    """
    out = filtered.copy()
    total = out[TOTAL_LABEL]

    for c in ADJUSTED_COLUMNS:
        out[f"{c}_cola"] = out[c] * out["cola"]
    for c in ADJUSTED_COLUMNS:
        out[f"{c}_pp"] = out[c] / total
        out[f"{c}_cola_pp"] = out[f"{c}_cola"] / total

    for race, col in (("Black", "pct_black"), ("Hispanic", "pct_hispanic"), ("White", "pct_white")):
        pct = out[race] / total * 100.0
        # outside [0, 100] only from missing-data codes; left for drop_incomplete
        out[col] = pct.where(pct.between(0.0, 100.0))
    out["pct_nonwhite"] = 100.0 - out["pct_white"]

    out["concentration_by_nonwhite"] = concentration_by_nonwhite(out["pct_nonwhite"])
    out["concentration_by_black"] = concentration_by_black(out["pct_black"], out["pct_white"])
    return out


def drop_incomplete(derived: pd.DataFrame) -> Tuple[pd.DataFrame, int]:
    """Drop rows with a missing value in any column; returns (table, dropped count)."""
    complete = derived.replace([np.inf, -np.inf], np.nan).dropna()
    dropped = len(derived) - len(complete)
    if dropped:
        print(f"  [WARN] Dropped {dropped} of {len(derived)} districts with missing values")
    return complete, dropped


def pct_bins(pct: pd.Series) -> pd.Series:
    return pd.cut(pct, bins=BIN_EDGES, labels=BIN_LABELS, right=True, include_lowest=True)


def add_bins(complete: pd.DataFrame) -> pd.DataFrame:
    out = complete.copy()
    out["black_bin"] = pct_bins(out["pct_black"])
    out["nonwhite_bin"] = pct_bins(out["pct_nonwhite"])
    return out


def link_tables(enrollment_wide: pd.DataFrame, finance_adjusted: pd.DataFrame,
                cola: pd.DataFrame) -> Tuple[pd.DataFrame, Dict[str, int]]:
    """
    Run the full linking sequence.

    Returns:
        Tuple of (linked, counts):
        - linked: one row per district with every derived field and both bins
        - counts: row counts in and out of each step, for the methods appendix
    """
    print("\n[Link] Linking enrollment, finance and cost-of-living...")
    joined = join_tables(enrollment_wide, finance_adjusted, cola)
    filtered = filter_districts(joined)
    derived = derive_fields(filtered)
    complete, dropped_missing = drop_incomplete(derived)
    linked = add_bins(complete).reset_index(drop=True)

    matched = enrollment_wide["leaid"].isin(cola["leaid"])
    counts = {
        "enrollment_districts": len(enrollment_wide),
        "finance_districts": len(finance_adjusted),
        "cola_districts": len(cola),
        "dropped_no_cola": int((~matched).sum()),
        "joined": len(joined),
        "dropped_filter": len(joined) - len(filtered),
        "dropped_missing": dropped_missing,
        "linked": len(linked),
    }
    print(f"  Joined: {counts['joined']} districts ({counts['dropped_no_cola']} without cost-of-living)")
    print(f"  Removed by enrollment/revenue filter: {counts['dropped_filter']}")
    print(f"  Linked: {counts['linked']} districts")
    return linked, counts
