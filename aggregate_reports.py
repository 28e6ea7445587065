"""
Grouped summary tables over the linked district table.

Every per-pupil figure here is enrollment-weighted: the sum of revenue in a
group divided by the sum of pupils in that group. Means of per-district
per-pupil values are never used.

Reports:
1. Revenue per pupil by % black bin and by % nonwhite bin
2. Majority-black vs majority-white districts, majority-nonwhite vs majority-white
3. National revenue per pupil for the average black / nonwhite / white student
4. The same comparison per state
5. Federal / state / local revenue per pupil by concentration category
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from district_shared import (
    TOTAL_LABEL, NOT_CONCENTRATED, SOURCE_COLUMNS,
    weighted_per_pupil, pct_difference, state_label, require_columns,
)

REVENUE_COLUMN = "adjusted_total_cola"
STATE_LOCAL_COLUMN = "adjusted_state_local_cola"
PER_PUPIL_COLUMN = "adjusted_total_cola_pp"

# Display order of concentration categories
CONCENTRATION_ORDER = {
    "concentration_by_black": ["black", "white", NOT_CONCENTRATED],
    "concentration_by_nonwhite": ["nonwhite", "white", NOT_CONCENTRATED],
}

# Student groups for the student-weighted comparison
STUDENT_GROUPS = ["Black", "Nonwhite", "White"]

# Directory columns that may carry a state postal code
_STATE_COLUMNS = ("state_location", "state_mailing", "state_abbr")


def _group_totals(linked: pd.DataFrame, by: str, observed: bool = True) -> pd.DataFrame:
    out = linked.groupby(by, observed=observed).agg(
        districts=("leaid", "size"),
        students=(TOTAL_LABEL, "sum"),
        revenue=(REVENUE_COLUMN, "sum"),
        state_local_revenue=(STATE_LOCAL_COLUMN, "sum"),
    ).reset_index()
    students = out["students"].astype(float)
    # empty bins keep NaN per-pupil, not 0
    out["revenue_per_pupil"] = out["revenue"] / students.where(students > 0)
    out["state_local_per_pupil"] = out["state_local_revenue"] / students.where(students > 0)
    return out


def revenue_by_bin(linked: pd.DataFrame, bin_column: str = "black_bin") -> pd.DataFrame:
    """
    Weighted revenue per pupil for each 10-point bin.

    Args:
        linked: Output of link_tables.link_tables
        bin_column: 'black_bin' or 'nonwhite_bin'

    Returns:
        One row per bin (all ten, empty bins with zero districts and NaN
        per-pupil), columns [bin_column, districts, students, revenue,
        state_local_revenue, revenue_per_pupil, state_local_per_pupil]
    """
    require_columns(linked, [bin_column, TOTAL_LABEL, REVENUE_COLUMN], "linked table")
    out = _group_totals(linked, bin_column, observed=False)
    out[bin_column] = out[bin_column].astype(int)
    return out.sort_values(bin_column).reset_index(drop=True)


def concentration_summary(linked: pd.DataFrame, concentration_column: str) -> pd.DataFrame:
    """
    Revenue per pupil and student count for concentrated districts.

    NotConcentrated districts are excluded. pct_difference_vs_white compares
    each category's per-pupil revenue with the 'white' category.
    """
    require_columns(linked, [concentration_column, TOTAL_LABEL, REVENUE_COLUMN], "linked table")
    subset = linked[linked[concentration_column] != NOT_CONCENTRATED]
    out = _group_totals(subset, concentration_column)

    order = [c for c in CONCENTRATION_ORDER.get(concentration_column, []) if c != NOT_CONCENTRATED]
    out = out.set_index(concentration_column).reindex(order).dropna(how="all").reset_index()

    white = out.loc[out[concentration_column] == "white", "revenue_per_pupil"]
    baseline = float(white.iloc[0]) if not white.empty else float("nan")
    out["pct_difference_vs_white"] = [pct_difference(v, baseline) for v in out["revenue_per_pupil"]]
    return out


def _group_counts(df: pd.DataFrame, group: str) -> pd.Series:
    if group == "Nonwhite":
        return df[TOTAL_LABEL] - df["White"]
    return df[group]


def _student_weighted_rows(df: pd.DataFrame) -> List[dict]:
    rows = []
    for group in STUDENT_GROUPS:
        n = _group_counts(df, group).astype(float)
        rows.append({
            "group": group,
            "students": float(n.sum()),
            # pupils of this group times their district's per-pupil revenue, per pupil of the group
            "revenue_per_pupil": weighted_per_pupil(df[PER_PUPIL_COLUMN] * n, n),
            "state_local_per_pupil": weighted_per_pupil(df["adjusted_state_local_cola_pp"] * n, n),
        })
    return rows


def student_weighted_comparison(linked: pd.DataFrame) -> pd.DataFrame:
    """
    National revenue per pupil for the average black, nonwhite and white student.

    Each group's figure weights every district's per-pupil revenue by that
    group's enrollment there. pct_difference_vs_white is
    (group - white) / white * 100.
    """
    require_columns(linked, ["Black", "White", TOTAL_LABEL, PER_PUPIL_COLUMN], "linked table")
    out = pd.DataFrame(_student_weighted_rows(linked))
    baseline = float(out.loc[out["group"] == "White", "revenue_per_pupil"].iloc[0])
    out["pct_difference_vs_white"] = [pct_difference(v, baseline) for v in out["revenue_per_pupil"]]
    return out


def state_labels(directory: Optional[pd.DataFrame]) -> Dict[int, str]:
    """FIPS -> postal code, from the directory when it has a state column."""
    if directory is None or directory.empty or "fips" not in directory.columns:
        return {}
    for col in _STATE_COLUMNS:
        if col in directory.columns:
            pairs = directory[["fips", col]].dropna()
            pairs = pairs.assign(fips=pd.to_numeric(pairs["fips"], errors="coerce")).dropna()
            return {int(f): str(s) for f, s in pairs.groupby("fips")[col].first().items()}
    return {}


def state_comparison(linked: pd.DataFrame, directory: Optional[pd.DataFrame] = None) -> pd.DataFrame:
    """
    Student-weighted black / nonwhite / white revenue per pupil for each state.

    Returns:
        One row per fips with columns [fips, state, black_students,
        nonwhite_students, white_students, black_per_pupil, nonwhite_per_pupil,
        white_per_pupil, black_vs_white_pct, nonwhite_vs_white_pct]
    """
    require_columns(linked, ["fips", "Black", "White", TOTAL_LABEL, PER_PUPIL_COLUMN], "linked table")
    labels = state_labels(directory)

    rows = []
    for fips, grp in linked.groupby("fips"):
        by_group = {r["group"]: r for r in _student_weighted_rows(grp)}
        white = by_group["White"]["revenue_per_pupil"]
        rows.append({
            "fips": fips,
            "state": labels.get(int(fips), state_label(fips)),
            "black_students": by_group["Black"]["students"],
            "nonwhite_students": by_group["Nonwhite"]["students"],
            "white_students": by_group["White"]["students"],
            "black_per_pupil": by_group["Black"]["revenue_per_pupil"],
            "nonwhite_per_pupil": by_group["Nonwhite"]["revenue_per_pupil"],
            "white_per_pupil": white,
            "black_vs_white_pct": pct_difference(by_group["Black"]["revenue_per_pupil"], white),
            "nonwhite_vs_white_pct": pct_difference(by_group["Nonwhite"]["revenue_per_pupil"], white),
        })
    cols = ["fips", "state", "black_students", "nonwhite_students", "white_students",
            "black_per_pupil", "nonwhite_per_pupil", "white_per_pupil",
            "black_vs_white_pct", "nonwhite_vs_white_pct"]
    return pd.DataFrame(rows, columns=cols).sort_values("state").reset_index(drop=True)


def revenue_by_source(linked: pd.DataFrame, concentration_column: str) -> pd.DataFrame:
    """
    Federal, state and local revenue per pupil for each concentration category.

    Returns:
        One row per category (NotConcentrated last) with columns
        [concentration_column, districts, students, Federal, State, Local, Total]
    """
    require_columns(linked, [concentration_column, TOTAL_LABEL] + list(SOURCE_COLUMNS.values()), "linked table")
    rows = []
    for cat in CONCENTRATION_ORDER.get(concentration_column, sorted(linked[concentration_column].unique())):
        grp = linked[linked[concentration_column] == cat]
        if grp.empty:
            continue
        row = {concentration_column: cat, "districts": len(grp), "students": float(grp[TOTAL_LABEL].sum())}
        for label, col in SOURCE_COLUMNS.items():
            row[label] = weighted_per_pupil(grp[col], grp[TOTAL_LABEL])
        row["Total"] = sum(row[label] for label in SOURCE_COLUMNS)
        rows.append(row)
    cols = [concentration_column, "districts", "students"] + list(SOURCE_COLUMNS) + ["Total"]
    return pd.DataFrame(rows, columns=cols)


def build_all_reports(linked: pd.DataFrame, directory: Optional[pd.DataFrame] = None) -> Dict[str, pd.DataFrame]:
    """Run every report; keys are also used as CSV/PNG file stems."""
    return {
        "revenue_by_black_bin": revenue_by_bin(linked, "black_bin"),
        "revenue_by_nonwhite_bin": revenue_by_bin(linked, "nonwhite_bin"),
        "black_vs_white_districts": concentration_summary(linked, "concentration_by_black"),
        "nonwhite_vs_white_districts": concentration_summary(linked, "concentration_by_nonwhite"),
        "student_weighted_national": student_weighted_comparison(linked),
        "state_comparison": state_comparison(linked, directory),
        "revenue_by_source_black": revenue_by_source(linked, "concentration_by_black"),
        "revenue_by_source_nonwhite": revenue_by_source(linked, "concentration_by_nonwhite"),
    }


def export_reports(reports: Dict[str, pd.DataFrame], out_dir: Path) -> List[Path]:
    """Write each report table to <out_dir>/<name>.csv."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    paths = []
    for name, table in reports.items():
        path = out_dir / f"{name}.csv"
        table.to_csv(path, index=False)
        print(f"[OK] Saved {path} ({len(table)} rows)")
        paths.append(path)
    return paths
